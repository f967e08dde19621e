"""
app/services/webhook_handlers/shopify.py

Shopify topic -> handler table.

Shopify posts the object itself as the webhook body; child objects
(fulfillments, refunds, transactions) carry ``order_id``.
"""

from __future__ import annotations

import logging

from app.services.webhook_handlers.base import (
    HardDelete,
    LogOnly,
    Resync,
    ResyncParent,
    WebhookHandler,
    chain,
    register,
)

_INVENTORY_LEVEL_KEY = ("inventory_item_id", "location_id")
_ORDER_CHILDREN = ("fulfillments", "transactions", "refunds")


def _build_table() -> dict[str, WebhookHandler]:
    table: dict[str, WebhookHandler] = {}

    register(
        table,
        (
            "orders/create",
            "orders/updated",
            "orders/paid",
            "orders/fulfilled",
            "orders/partially_fulfilled",
            "orders/cancelled",
            "orders/edited",
        ),
        Resync("orders"),
    )
    table["orders/delete"] = HardDelete("orders", cascade=_ORDER_CHILDREN)

    register(
        table,
        ("products/create", "products/update"),
        chain(Resync("products"), ResyncParent("variants", parent_field="id")),
    )
    table["products/delete"] = HardDelete("products", cascade=("variants",))

    register(
        table,
        ("customers/create", "customers/update", "customers/enable", "customers/disable"),
        Resync("customers"),
    )
    table["customers/delete"] = HardDelete("customers")

    register(
        table,
        ("inventory_levels/update", "inventory_levels/connect"),
        Resync("inventory_levels", id_fields=_INVENTORY_LEVEL_KEY),
    )
    table["inventory_levels/disconnect"] = HardDelete("inventory_levels", id_fields=_INVENTORY_LEVEL_KEY)

    register(table, ("locations/create", "locations/update"), Resync("locations"))
    table["locations/delete"] = HardDelete("locations", cascade=("inventory_levels",))

    register(
        table,
        ("fulfillments/create", "fulfillments/update"),
        chain(
            Resync("fulfillments", parent_field="order_id"),
            Resync("orders", id_fields=("order_id",)),
        ),
    )
    table["refunds/create"] = chain(
        Resync("refunds", parent_field="order_id"),
        Resync("orders", id_fields=("order_id",)),
    )
    table["order_transactions/create"] = chain(
        Resync("transactions", parent_field="order_id"),
        Resync("orders", id_fields=("order_id",)),
    )

    register(table, ("collections/create", "collections/update"), Resync("collections"))
    table["collections/delete"] = HardDelete("collections")

    table["shop/update"] = Resync("shop")

    register(table, ("draft_orders/create", "draft_orders/update"), Resync("draft_orders"))
    table["draft_orders/delete"] = HardDelete("draft_orders")

    register(table, ("checkouts/create", "checkouts/update"), Resync("checkouts", id_fields=("token",)))
    table["checkouts/delete"] = HardDelete("checkouts", id_fields=("token",))

    register(
        table,
        ("themes/create", "themes/update", "themes/delete", "themes/publish"),
        LogOnly("Theme event"),
    )
    table["app/uninstalled"] = LogOnly("App uninstalled from shop", level=logging.WARNING)

    return table


SHOPIFY_WEBHOOK_HANDLERS: dict[str, WebhookHandler] = _build_table()
