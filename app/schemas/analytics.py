"""
Schemas for reports computed over the local mirror.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class DailySalesRow(BaseModel):
    order_date: date
    order_count: int
    revenue: Decimal
    avg_order_value: Decimal
    unique_customers: int


class DailySalesResponse(BaseModel):
    days: int
    daily_sales: list[DailySalesRow] = Field(default_factory=list)


class TopProductRow(BaseModel):
    product_id: str
    title: str | None = None
    vendor: str | None = None
    order_count: int
    units_sold: int
    revenue: Decimal


class LowInventoryRow(BaseModel):
    product_id: str
    product_title: str | None = None
    variant_id: str
    variant_title: str | None = None
    sku: str | None = None
    available: int


class CustomerValueRow(BaseModel):
    customer_id: str
    email: str | None = None
    name: str | None = None
    orders_count: int
    total_spent: Decimal
    avg_order_value: Decimal
    customer_since: datetime | None = None


class ActiveSubscriptionRow(BaseModel):
    subscription_id: str
    status: str
    customer_id: str
    customer_email: str | None = None
    customer_name: str | None = None
    current_period_start: datetime | None = None
    current_period_end: datetime | None = None
    cancel_at_period_end: bool = False


class MrrRow(BaseModel):
    month: str
    currency: str
    mrr_cents: int


class FailedPaymentRow(BaseModel):
    payment_intent_id: str
    amount: int
    currency: str | None = None
    status: str
    error_code: str | None = None
    error_message: str | None = None
    customer_id: str | None = None
    customer_email: str | None = None
    customer_name: str | None = None
    created_at: datetime | None = None
