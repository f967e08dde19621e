"""
app/services/analytics_service.py

Reporting over mirrored provider documents.

Reports read the stored JSON documents through the RecordStore, so they work
against any store and always reflect the local mirror, not the remote API.

Shopify reports
---------------
daily_sales        paid, non-test orders grouped by order date
top_products       revenue and units per product from paid order line items
low_inventory      active-product variants whose summed availability is low
customer_value     customers with orders, ranked by total spent

Stripe reports
--------------
active_subscriptions   active, trialing and past_due subscriptions with customer details
mrr                    monthly recurring revenue by subscription start month and currency
failed_payments        payment intents that failed with a recorded payment error

Money from Shopify arrives as decimal strings and is summed as Decimal.
Stripe amounts are integer minor units.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Final

from app.domain.shopify_resources import SHOPIFY_PROVIDER
from app.domain.stripe_resources import STRIPE_PROVIDER
from app.storage.base import RecordStore

MAX_REPORT_DAYS: Final[int] = 365
LOW_INVENTORY_THRESHOLD: Final[int] = 5

ACTIVE_SUBSCRIPTION_STATUSES: Final[frozenset[str]] = frozenset({"active", "trialing", "past_due"})
MRR_SUBSCRIPTION_STATUSES: Final[frozenset[str]] = frozenset({"active", "trialing"})
FAILED_PAYMENT_STATUSES: Final[frozenset[str]] = frozenset({"requires_payment_method", "canceled"})

_ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _decimal(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return _ZERO
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return _ZERO


def _int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _parse_iso(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _from_epoch(value: Any) -> datetime | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def clamp_days(days: int) -> int:
    """Clamp a report window to 1..365 days."""
    return min(max(days, 1), MAX_REPORT_DAYS)


def _nested_id(document: dict[str, Any], field: str) -> str | None:
    value = document.get(field)
    if isinstance(value, dict):
        value = value.get("id")
    return str(value) if value not in (None, "") else None


# ---------------------------------------------------------------------------
# Shopify
# ---------------------------------------------------------------------------


class ShopifyAnalytics:
    """
    Sales, product, inventory and customer reports over the Shopify mirror.
    """

    provider = SHOPIFY_PROVIDER

    def __init__(self, records: RecordStore) -> None:
        self._records = records

    def _documents(self, resource: str) -> Iterator[dict[str, Any]]:
        for record in self._records.iter_records(self.provider, resource):
            yield record.data

    def _paid_orders(self) -> Iterator[dict[str, Any]]:
        for order in self._documents("orders"):
            if order.get("financial_status") == "paid" and not order.get("test", False):
                yield order

    def daily_sales(self, days: int = 30, *, today: date | None = None) -> list[dict[str, Any]]:
        """
        Paid orders per day for the last ``days`` days (clamped to 1..365), newest first.
        """

        window = clamp_days(days)
        since = (today or datetime.now(timezone.utc).date()) - timedelta(days=window)

        buckets: dict[date, dict[str, Any]] = {}
        for order in self._paid_orders():
            created = _parse_iso(order.get("created_at"))
            if created is None or created.date() < since:
                continue
            bucket = buckets.setdefault(
                created.date(),
                {"order_count": 0, "revenue": _ZERO, "customers": set()},
            )
            bucket["order_count"] += 1
            bucket["revenue"] += _decimal(order.get("total_price"))
            customer_id = _nested_id(order, "customer")
            if customer_id is not None:
                bucket["customers"].add(customer_id)

        return [
            {
                "order_date": order_date,
                "order_count": bucket["order_count"],
                "revenue": bucket["revenue"],
                "avg_order_value": (bucket["revenue"] / bucket["order_count"]).quantize(Decimal("0.01")),
                "unique_customers": len(bucket["customers"]),
            }
            for order_date, bucket in sorted(buckets.items(), reverse=True)
        ]

    def top_products(self, limit: int = 10) -> list[dict[str, Any]]:
        """
        Products ranked by revenue across paid order line items.
        """

        totals: dict[str, dict[str, Any]] = {}
        for order in self._paid_orders():
            order_id = _nested_id(order, "id")
            for item in order.get("line_items") or []:
                product_id = _nested_id(item, "product_id")
                if product_id is None:
                    continue
                quantity = _int(item.get("quantity"))
                entry = totals.setdefault(
                    product_id,
                    {
                        "title": item.get("title"),
                        "vendor": item.get("vendor"),
                        "orders": set(),
                        "units_sold": 0,
                        "revenue": _ZERO,
                    },
                )
                entry["orders"].add(order_id)
                entry["units_sold"] += quantity
                entry["revenue"] += _decimal(item.get("price")) * quantity

        if not totals:
            return []

        for product_id, entry in totals.items():
            product = self._records.get(self.provider, "products", product_id)
            if product is not None:
                entry["title"] = product.data.get("title", entry["title"])
                entry["vendor"] = product.data.get("vendor", entry["vendor"])

        ranked = sorted(totals.items(), key=lambda pair: (-pair[1]["revenue"], pair[0]))
        return [
            {
                "product_id": product_id,
                "title": entry["title"],
                "vendor": entry["vendor"],
                "order_count": len(entry["orders"]),
                "units_sold": entry["units_sold"],
                "revenue": entry["revenue"],
            }
            for product_id, entry in ranked[: max(1, limit)]
        ]

    def low_inventory(self, threshold: int = LOW_INVENTORY_THRESHOLD) -> list[dict[str, Any]]:
        """
        Variants of active products whose availability across locations is at most ``threshold``.
        """

        available: dict[str, int] = defaultdict(int)
        for level in self._documents("inventory_levels"):
            item_id = _nested_id(level, "inventory_item_id")
            if item_id is not None and level.get("available") is not None:
                available[item_id] += _int(level.get("available"))

        active_products = {
            str(product.get("id")): product
            for product in self._documents("products")
            if product.get("status") == "active"
        }

        rows: list[dict[str, Any]] = []
        for variant in self._documents("variants"):
            product = active_products.get(str(variant.get("product_id")))
            item_id = _nested_id(variant, "inventory_item_id")
            if product is None or item_id is None or item_id not in available:
                continue
            if available[item_id] > threshold:
                continue
            rows.append(
                {
                    "product_id": str(product.get("id")),
                    "product_title": product.get("title"),
                    "variant_id": str(variant.get("id")),
                    "variant_title": variant.get("title"),
                    "sku": variant.get("sku") or None,
                    "available": available[item_id],
                }
            )
        rows.sort(key=lambda row: (row["available"], row["variant_id"]))
        return rows

    def customer_value(self, limit: int = 100) -> list[dict[str, Any]]:
        """
        Customers with at least one order, ranked by total spent.
        """

        rows: list[dict[str, Any]] = []
        for customer in self._documents("customers"):
            orders_count = _int(customer.get("orders_count"))
            if orders_count <= 0:
                continue
            total_spent = _decimal(customer.get("total_spent"))
            name = " ".join(part for part in (customer.get("first_name"), customer.get("last_name")) if part)
            rows.append(
                {
                    "customer_id": str(customer.get("id")),
                    "email": customer.get("email"),
                    "name": name or None,
                    "orders_count": orders_count,
                    "total_spent": total_spent,
                    "avg_order_value": (total_spent / orders_count).quantize(Decimal("0.01")),
                    "customer_since": _parse_iso(customer.get("created_at")),
                }
            )
        rows.sort(key=lambda row: (-row["total_spent"], row["customer_id"]))
        return rows[: max(1, limit)]


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------


class StripeAnalytics:
    """
    Subscription, recurring revenue and payment failure reports over the Stripe mirror.
    """

    provider = STRIPE_PROVIDER

    def __init__(self, records: RecordStore) -> None:
        self._records = records

    def _documents(self, resource: str) -> Iterator[dict[str, Any]]:
        for record in self._records.iter_records(self.provider, resource):
            yield record.data

    def _customers(self, ids: Iterable[str]) -> dict[str, dict[str, Any]]:
        customers: dict[str, dict[str, Any]] = {}
        for customer_id in set(ids):
            record = self._records.get(self.provider, "customers", customer_id)
            if record is not None and record.deleted_at is None:
                customers[customer_id] = record.data
        return customers

    def active_subscriptions(self) -> list[dict[str, Any]]:
        """
        Active, trialing and past-due subscriptions whose customer is still mirrored.
        """

        subscriptions = [
            subscription
            for subscription in self._documents("subscriptions")
            if subscription.get("status") in ACTIVE_SUBSCRIPTION_STATUSES
        ]
        customers = self._customers(
            customer_id
            for customer_id in (_nested_id(subscription, "customer") for subscription in subscriptions)
            if customer_id is not None
        )

        rows: list[dict[str, Any]] = []
        for subscription in subscriptions:
            customer = customers.get(_nested_id(subscription, "customer") or "")
            if customer is None:
                continue
            rows.append(
                {
                    "subscription_id": subscription.get("id"),
                    "status": subscription.get("status"),
                    "customer_id": customer.get("id"),
                    "customer_email": customer.get("email"),
                    "customer_name": customer.get("name"),
                    "current_period_start": _from_epoch(subscription.get("current_period_start")),
                    "current_period_end": _from_epoch(subscription.get("current_period_end")),
                    "cancel_at_period_end": bool(subscription.get("cancel_at_period_end")),
                }
            )
        rows.sort(key=lambda row: str(row["subscription_id"]))
        return rows

    def mrr(self) -> list[dict[str, Any]]:
        """
        Monthly recurring revenue in minor units, by subscription start month and currency.

        Yearly prices count as 1/12 per month; other intervals are not recurring monthly revenue.
        """

        totals: dict[tuple[str, str], int] = defaultdict(int)
        for subscription in self._documents("subscriptions"):
            if subscription.get("status") not in MRR_SUBSCRIPTION_STATUSES:
                continue
            started = _from_epoch(subscription.get("start_date") or subscription.get("created"))
            if started is None:
                continue
            month = started.strftime("%Y-%m")
            items = subscription.get("items")
            for item in (items.get("data") if isinstance(items, dict) else None) or []:
                price = item.get("price") or {}
                monthly = _monthly_amount(price, _int(item.get("quantity", 1)) or 1)
                if monthly:
                    totals[(month, str(price.get("currency") or "").lower())] += monthly

        return [
            {"month": month, "currency": currency, "mrr_cents": amount}
            for (month, currency), amount in sorted(totals.items())
        ]

    def failed_payments(self, limit: int = 100) -> list[dict[str, Any]]:
        """
        Payment intents that need a new payment method or were canceled after an error, newest first.
        """

        failures = [
            intent
            for intent in self._documents("payment_intents")
            if intent.get("status") in FAILED_PAYMENT_STATUSES and intent.get("last_payment_error")
        ]
        customers = self._customers(
            customer_id
            for customer_id in (_nested_id(intent, "customer") for intent in failures)
            if customer_id is not None
        )

        rows: list[dict[str, Any]] = []
        for intent in failures:
            customer = customers.get(_nested_id(intent, "customer") or "") or {}
            error = intent.get("last_payment_error") or {}
            rows.append(
                {
                    "payment_intent_id": intent.get("id"),
                    "amount": _int(intent.get("amount")),
                    "currency": intent.get("currency"),
                    "status": intent.get("status"),
                    "error_code": error.get("code") if isinstance(error, dict) else None,
                    "error_message": error.get("message") if isinstance(error, dict) else str(error),
                    "customer_id": _nested_id(intent, "customer"),
                    "customer_email": customer.get("email"),
                    "customer_name": customer.get("name"),
                    "created_at": _from_epoch(intent.get("created")),
                }
            )
        rows.sort(
            key=lambda row: row["created_at"] or datetime.min.replace(tzinfo=timezone.utc),
            reverse=True,
        )
        return rows[: max(1, limit)]


def _monthly_amount(price: dict[str, Any], quantity: int) -> int:
    recurring = price.get("recurring") or {}
    interval = recurring.get("interval")
    interval_count = _int(recurring.get("interval_count", 1)) or 1
    unit_amount = _int(price.get("unit_amount"))
    if interval == "month":
        return unit_amount * quantity // interval_count
    if interval == "year":
        return unit_amount * quantity // (12 * interval_count)
    return 0
