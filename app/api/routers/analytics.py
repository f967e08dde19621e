"""
app/api/routers/analytics.py

Read-only reports over the mirrored Shopify and Stripe data.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_shopify_runtime, get_stripe_runtime
from app.schemas.analytics import (
    ActiveSubscriptionRow,
    CustomerValueRow,
    DailySalesResponse,
    DailySalesRow,
    FailedPaymentRow,
    LowInventoryRow,
    MrrRow,
    TopProductRow,
)
from app.services.analytics_service import (
    LOW_INVENTORY_THRESHOLD,
    ShopifyAnalytics,
    StripeAnalytics,
    clamp_days,
)
from app.services.provider_registry import ProviderRuntime

router = APIRouter(prefix="/analytics", tags=["analytics"])


def get_shopify_analytics(runtime: ProviderRuntime = Depends(get_shopify_runtime)) -> ShopifyAnalytics:
    return ShopifyAnalytics(runtime.records)


def get_stripe_analytics(runtime: ProviderRuntime = Depends(get_stripe_runtime)) -> StripeAnalytics:
    return StripeAnalytics(runtime.records)


# ---------------------------------------------------------------------------
# Shopify
# ---------------------------------------------------------------------------


@router.get("/shopify/daily-sales", response_model=DailySalesResponse)
def daily_sales(
    days: int = Query(default=30, description="Window in days, clamped to 1..365"),
    analytics: ShopifyAnalytics = Depends(get_shopify_analytics),
) -> DailySalesResponse:
    window = clamp_days(days)
    rows = analytics.daily_sales(window)
    return DailySalesResponse(days=window, daily_sales=[DailySalesRow(**row) for row in rows])


@router.get("/shopify/top-products", response_model=list[TopProductRow])
def top_products(
    limit: int = Query(default=10, ge=1, le=100),
    analytics: ShopifyAnalytics = Depends(get_shopify_analytics),
) -> list[TopProductRow]:
    return [TopProductRow(**row) for row in analytics.top_products(limit)]


@router.get("/shopify/low-inventory", response_model=list[LowInventoryRow])
def low_inventory(
    threshold: int = Query(default=LOW_INVENTORY_THRESHOLD, ge=0),
    analytics: ShopifyAnalytics = Depends(get_shopify_analytics),
) -> list[LowInventoryRow]:
    return [LowInventoryRow(**row) for row in analytics.low_inventory(threshold)]


@router.get("/shopify/customer-value", response_model=list[CustomerValueRow])
def customer_value(
    limit: int = Query(default=100, ge=1, le=500),
    analytics: ShopifyAnalytics = Depends(get_shopify_analytics),
) -> list[CustomerValueRow]:
    return [CustomerValueRow(**row) for row in analytics.customer_value(limit)]


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------


@router.get("/stripe/active-subscriptions", response_model=list[ActiveSubscriptionRow])
def active_subscriptions(
    analytics: StripeAnalytics = Depends(get_stripe_analytics),
) -> list[ActiveSubscriptionRow]:
    return [ActiveSubscriptionRow(**row) for row in analytics.active_subscriptions()]


@router.get("/stripe/mrr", response_model=list[MrrRow])
def monthly_recurring_revenue(analytics: StripeAnalytics = Depends(get_stripe_analytics)) -> list[MrrRow]:
    return [MrrRow(**row) for row in analytics.mrr()]


@router.get("/stripe/failed-payments", response_model=list[FailedPaymentRow])
def failed_payments(
    limit: int = Query(default=100, ge=1, le=500),
    analytics: StripeAnalytics = Depends(get_stripe_analytics),
) -> list[FailedPaymentRow]:
    return [FailedPaymentRow(**row) for row in analytics.failed_payments(limit)]
