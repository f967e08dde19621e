"""
tests/test_analytics.py

Pytest unit tests for the reports computed over the local mirror.

Coverage
--------
- RecordStore.iter_records pages through every live record
- Shopify: daily sales window and clamping, top products by revenue,
  low inventory summed across locations, customer value ranking
- Stripe: active subscriptions joined to live customers, MRR by start
  month and currency, failed payments newest first
- /analytics routes
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.dependencies import get_shopify_runtime, get_stripe_runtime
from app.api.routers import analytics_router
from app.config import SyncSettings
from app.domain.shopify_resources import SHOPIFY_CATALOG
from app.domain.stripe_resources import STRIPE_CATALOG
from app.domain.sync import ExternalRecord
from app.services.analytics_service import ShopifyAnalytics, StripeAnalytics
from app.services.provider_registry import build_provider_runtime
from tests.fakes import FakeConnector, InMemoryEventStore, InMemoryRecordStore

TODAY = date(2024, 3, 11)


def _store(provider: str, documents: dict[str, list[dict]]) -> InMemoryRecordStore:
    store = InMemoryRecordStore()
    store.upsert_many(
        provider,
        [
            ExternalRecord(resource=resource, id=str(document.get("id", index)), data=document)
            for resource, items in documents.items()
            for index, document in enumerate(items)
        ],
    )
    return store


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def shopify_records() -> InMemoryRecordStore:
    return _store(
        "shopify",
        {
            "orders": [
                {
                    "id": 1,
                    "financial_status": "paid",
                    "test": False,
                    "created_at": "2024-03-10T09:00:00-05:00",
                    "total_price": "100.00",
                    "customer": {"id": 7},
                    "line_items": [
                        {"product_id": 10, "quantity": 2, "price": "30.00", "title": "Mug (line)", "vendor": "Acme"},
                        {"product_id": 11, "quantity": 1, "price": "40.00", "title": "Tee"},
                    ],
                },
                {
                    "id": 2,
                    "financial_status": "paid",
                    "created_at": "2024-03-10T18:00:00Z",
                    "total_price": "50.00",
                    "customer": {"id": 8},
                    "line_items": [
                        {"product_id": 10, "quantity": 1, "price": "30.00"},
                        {"product_id": None, "quantity": 1, "price": "20.00", "title": "Gift wrap"},
                    ],
                },
                {
                    "id": 3,
                    "financial_status": "paid",
                    "created_at": "2024-03-09T12:00:00Z",
                    "total_price": "25.50",
                    "customer": {"id": 7},
                    "line_items": [{"product_id": 11, "quantity": 1, "price": "25.50"}],
                },
                {"id": 4, "financial_status": "pending", "created_at": "2024-03-10T10:00:00Z", "total_price": "9.00"},
                {
                    "id": 5,
                    "financial_status": "paid",
                    "test": True,
                    "created_at": "2024-03-10T10:00:00Z",
                    "total_price": "999.00",
                },
                {"id": 6, "financial_status": "paid", "created_at": "2023-12-01T00:00:00Z", "total_price": "10.00"},
            ],
            "products": [
                {"id": 10, "title": "Mug", "vendor": "Acme", "status": "active"},
                {"id": 12, "title": "Poster", "status": "draft"},
            ],
            "variants": [
                {"id": 100, "product_id": 10, "inventory_item_id": 500, "sku": "MUG-1", "title": "Blue"},
                {"id": 101, "product_id": 10, "inventory_item_id": 501, "sku": "", "title": "Red"},
                {"id": 120, "product_id": 12, "inventory_item_id": 520, "sku": "POS-1", "title": "A2"},
            ],
            "inventory_levels": [
                {"id": "500:1", "inventory_item_id": 500, "location_id": 1, "available": 2},
                {"id": "500:2", "inventory_item_id": 500, "location_id": 2, "available": 2},
                {"id": "501:1", "inventory_item_id": 501, "location_id": 1, "available": 9},
                {"id": "520:1", "inventory_item_id": 520, "location_id": 1, "available": 0},
            ],
            "customers": [
                {
                    "id": 7,
                    "email": "ada@example.com",
                    "first_name": "Ada",
                    "last_name": "L",
                    "orders_count": 2,
                    "total_spent": "125.50",
                    "created_at": "2023-01-01T00:00:00Z",
                },
                {"id": 8, "first_name": "Bo", "last_name": None, "orders_count": 1, "total_spent": "50.00"},
                {"id": 9, "first_name": "Cy", "orders_count": 0, "total_spent": "0.00"},
            ],
        },
    )


@pytest.fixture
def stripe_records() -> InMemoryRecordStore:
    def price(amount: int, currency: str = "usd", interval: str = "month") -> dict:
        return {"unit_amount": amount, "currency": currency, "recurring": {"interval": interval, "interval_count": 1}}

    store = _store(
        "stripe",
        {
            "customers": [
                {"id": "cus_1", "email": "ann@example.com", "name": "Ann"},
                {"id": "cus_2", "email": "gone@example.com", "name": "Gone"},
            ],
            "subscriptions": [
                {
                    "id": "sub_1",
                    "status": "active",
                    "customer": "cus_1",
                    "current_period_start": 1_700_000_000,
                    "start_date": 1_704_067_200,
                    "items": {"data": [{"quantity": 2, "price": price(1000)}]},
                },
                {
                    "id": "sub_2",
                    "status": "trialing",
                    "customer": "cus_1",
                    "start_date": 1_704_153_600,
                    "items": {"data": [{"price": price(12000, "USD", "year")}]},
                },
                {
                    "id": "sub_3",
                    "status": "past_due",
                    "customer": "cus_1",
                    "start_date": 1_706_745_600,
                    "items": {"data": [{"quantity": 1, "price": price(500)}]},
                },
                {
                    "id": "sub_4",
                    "status": "active",
                    "customer": "cus_2",
                    "start_date": 1_706_745_600,
                    "items": {"data": [{"quantity": 1, "price": price(700, "eur")}]},
                },
                {
                    "id": "sub_5",
                    "status": "canceled",
                    "customer": "cus_1",
                    "start_date": 1_706_745_600,
                    "items": {"data": [{"quantity": 1, "price": price(900)}]},
                },
            ],
            "payment_intents": [
                {
                    "id": "pi_1",
                    "status": "requires_payment_method",
                    "amount": 2000,
                    "currency": "usd",
                    "customer": "cus_1",
                    "created": 1_704_067_200,
                    "last_payment_error": {"code": "card_declined", "message": "Your card was declined."},
                },
                {
                    "id": "pi_2",
                    "status": "canceled",
                    "amount": 500,
                    "currency": "usd",
                    "customer": None,
                    "created": 1_706_745_600,
                    "last_payment_error": {"code": "expired_card", "message": "Expired."},
                },
                {"id": "pi_3", "status": "requires_payment_method", "amount": 100, "created": 1_706_745_600},
                {"id": "pi_4", "status": "succeeded", "amount": 100, "created": 1_706_745_600},
            ],
        },
    )
    store.soft_delete("stripe", "customers", "cus_2")
    return store


# ---------------------------------------------------------------------------
# RecordStore.iter_records
# ---------------------------------------------------------------------------


class TestIterRecords:
    def test_pages_through_every_live_record(self) -> None:
        store = _store("stripe", {"customers": [{"id": f"cus_{index}"} for index in range(5)]})
        store.soft_delete("stripe", "customers", "cus_4")

        ids = [record.id for record in store.iter_records("stripe", "customers", page_size=2)]

        assert sorted(ids) == ["cus_0", "cus_1", "cus_2", "cus_3"]


# ---------------------------------------------------------------------------
# Shopify
# ---------------------------------------------------------------------------


class TestShopifyAnalytics:
    def test_daily_sales(self, shopify_records: InMemoryRecordStore) -> None:
        rows = ShopifyAnalytics(shopify_records).daily_sales(30, today=TODAY)

        assert [row["order_date"] for row in rows] == [date(2024, 3, 10), date(2024, 3, 9)]
        latest = rows[0]
        assert latest["order_count"] == 2
        assert latest["revenue"] == Decimal("150.00")
        assert latest["avg_order_value"] == Decimal("75.00")
        assert latest["unique_customers"] == 2
        assert rows[1]["revenue"] == Decimal("25.50")

    @pytest.mark.parametrize(
        "days, expected_dates",
        [
            (0, [date(2024, 3, 10)]),
            (10_000, [date(2024, 3, 10), date(2024, 3, 9), date(2023, 12, 1)]),
        ],
    )
    def test_daily_sales_window_is_clamped(
        self,
        shopify_records: InMemoryRecordStore,
        days: int,
        expected_dates: list[date],
    ) -> None:
        rows = ShopifyAnalytics(shopify_records).daily_sales(days, today=TODAY)
        assert [row["order_date"] for row in rows] == expected_dates

    def test_top_products(self, shopify_records: InMemoryRecordStore) -> None:
        rows = ShopifyAnalytics(shopify_records).top_products()

        assert [row["product_id"] for row in rows] == ["10", "11"]
        mug, tee = rows
        assert (mug["title"], mug["vendor"]) == ("Mug", "Acme")
        assert (mug["order_count"], mug["units_sold"], mug["revenue"]) == (2, 3, Decimal("90.00"))
        assert (tee["title"], tee["vendor"]) == ("Tee", None)
        assert tee["revenue"] == Decimal("65.50")

    def test_top_products_limit(self, shopify_records: InMemoryRecordStore) -> None:
        assert [row["product_id"] for row in ShopifyAnalytics(shopify_records).top_products(1)] == ["10"]

    def test_low_inventory_sums_locations(self, shopify_records: InMemoryRecordStore) -> None:
        rows = ShopifyAnalytics(shopify_records).low_inventory()

        assert rows == [
            {
                "product_id": "10",
                "product_title": "Mug",
                "variant_id": "100",
                "variant_title": "Blue",
                "sku": "MUG-1",
                "available": 4,
            }
        ]

    def test_low_inventory_threshold_and_inactive_products(self, shopify_records: InMemoryRecordStore) -> None:
        rows = ShopifyAnalytics(shopify_records).low_inventory(threshold=10)

        assert [(row["variant_id"], row["available"], row["sku"]) for row in rows] == [
            ("100", 4, "MUG-1"),
            ("101", 9, None),
        ]

    def test_customer_value(self, shopify_records: InMemoryRecordStore) -> None:
        rows = ShopifyAnalytics(shopify_records).customer_value()

        assert [row["customer_id"] for row in rows] == ["7", "8"]
        assert rows[0]["name"] == "Ada L"
        assert rows[0]["avg_order_value"] == Decimal("62.75")
        assert rows[0]["customer_since"] == datetime(2023, 1, 1, tzinfo=timezone.utc)
        assert rows[1]["name"] == "Bo"


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------


class TestStripeAnalytics:
    def test_active_subscriptions_need_a_live_customer(self, stripe_records: InMemoryRecordStore) -> None:
        rows = StripeAnalytics(stripe_records).active_subscriptions()

        assert [row["subscription_id"] for row in rows] == ["sub_1", "sub_2", "sub_3"]
        assert rows[0]["customer_email"] == "ann@example.com"
        assert rows[0]["current_period_start"] == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert rows[1]["current_period_start"] is None

    def test_mrr_by_start_month_and_currency(self, stripe_records: InMemoryRecordStore) -> None:
        assert StripeAnalytics(stripe_records).mrr() == [
            {"month": "2024-01", "currency": "usd", "mrr_cents": 3000},
            {"month": "2024-02", "currency": "eur", "mrr_cents": 700},
        ]

    def test_failed_payments_newest_first(self, stripe_records: InMemoryRecordStore) -> None:
        rows = StripeAnalytics(stripe_records).failed_payments()

        assert [row["payment_intent_id"] for row in rows] == ["pi_2", "pi_1"]
        assert rows[0]["customer_id"] is None
        assert rows[1]["customer_email"] == "ann@example.com"
        assert rows[1]["error_code"] == "card_declined"


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
def client(shopify_records: InMemoryRecordStore, stripe_records: InMemoryRecordStore) -> TestClient:
    def runtime(catalog, records):
        return build_provider_runtime(
            connector=FakeConnector(catalog),
            records=records,
            events=InMemoryEventStore(),
            sync_settings=SyncSettings(),
        )

    shopify_runtime = runtime(SHOPIFY_CATALOG, shopify_records)
    stripe_runtime = runtime(STRIPE_CATALOG, stripe_records)

    application = FastAPI()
    application.include_router(analytics_router)
    application.dependency_overrides[get_shopify_runtime] = lambda: shopify_runtime
    application.dependency_overrides[get_stripe_runtime] = lambda: stripe_runtime
    return TestClient(application)


class TestAnalyticsEndpoints:
    @pytest.mark.parametrize("days, expected", [(0, 1), (30, 30), (1000, 365)])
    def test_daily_sales_days_are_clamped(self, client: TestClient, days: int, expected: int) -> None:
        response = client.get("/analytics/shopify/daily-sales", params={"days": days})

        assert response.status_code == 200
        assert response.json()["days"] == expected

    def test_top_products(self, client: TestClient) -> None:
        body = client.get("/analytics/shopify/top-products", params={"limit": 1}).json()

        assert len(body) == 1
        assert body[0]["product_id"] == "10"
        assert Decimal(str(body[0]["revenue"])) == Decimal("90.00")

    def test_low_inventory_and_customer_value(self, client: TestClient) -> None:
        assert [row["variant_id"] for row in client.get("/analytics/shopify/low-inventory").json()] == ["100"]
        assert [row["customer_id"] for row in client.get("/analytics/shopify/customer-value").json()] == ["7", "8"]

    def test_stripe_reports(self, client: TestClient) -> None:
        assert client.get("/analytics/stripe/mrr").json() == [
            {"month": "2024-01", "currency": "usd", "mrr_cents": 3000},
            {"month": "2024-02", "currency": "eur", "mrr_cents": 700},
        ]
        subscriptions = client.get("/analytics/stripe/active-subscriptions").json()
        assert [row["subscription_id"] for row in subscriptions] == ["sub_1", "sub_2", "sub_3"]
        failed = client.get("/analytics/stripe/failed-payments").json()
        assert [row["payment_intent_id"] for row in failed] == ["pi_2", "pi_1"]
