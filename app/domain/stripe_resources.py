"""
app/domain/stripe_resources.py

Stripe resource catalog in dependency order.
"""

from __future__ import annotations

from app.domain.resources import ResourceCatalog, ResourceType

STRIPE_PROVIDER = "stripe"

STRIPE_RESOURCES: tuple[ResourceType, ...] = (
    ResourceType("products", "product"),
    ResourceType("prices", "price"),
    ResourceType("coupons", "coupon"),
    ResourceType("tax_rates", "tax_rate"),
    ResourceType("customers", "customer"),
    ResourceType("promotion_codes", "promotion_code"),
    ResourceType("subscriptions", "subscription"),
    ResourceType(
        "subscription_items",
        "subscription_item",
        parent="subscriptions",
        parent_filter=(("status", "active"),),
        parent_field="subscription",
    ),
    ResourceType("subscription_schedules", "subscription_schedule"),
    ResourceType("invoices", "invoice"),
    ResourceType("invoice_items", "invoiceitem"),
    ResourceType("credit_notes", "credit_note"),
    ResourceType("payment_intents", "payment_intent"),
    ResourceType("setup_intents", "setup_intent"),
    ResourceType("charges", "charge"),
    ResourceType("refunds", "refund"),
    ResourceType("disputes", "dispute"),
    ResourceType("balance_transactions", "balance_transaction"),
    ResourceType("checkout_sessions", "checkout.session"),
    ResourceType("payment_methods", "payment_method", parent="customers", parent_field="customer"),
    ResourceType("tax_ids", "tax_id", parent="customers", parent_field="customer"),
)

STRIPE_CORE_RESOURCES = (
    "customers",
    "products",
    "prices",
    "coupons",
    "subscriptions",
    "invoices",
    "charges",
    "refunds",
    "payment_intents",
    "payment_methods",
)

STRIPE_CATALOG = ResourceCatalog(STRIPE_PROVIDER, STRIPE_RESOURCES, STRIPE_CORE_RESOURCES)
