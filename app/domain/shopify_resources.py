"""
app/domain/shopify_resources.py

Shopify resource catalog in dependency order.
"""

from __future__ import annotations

from app.domain.resources import ResourceCatalog, ResourceType

SHOPIFY_PROVIDER = "shopify"

SHOPIFY_RESOURCES: tuple[ResourceType, ...] = (
    ResourceType("shop", "shop"),
    ResourceType("locations", "location"),
    ResourceType("products", "product"),
    ResourceType("variants", "variant", parent="products", parent_field="product_id"),
    ResourceType("collections", "collection"),
    ResourceType("customers", "customer"),
    ResourceType("orders", "order"),
    ResourceType("fulfillments", "fulfillment", parent="orders", parent_field="order_id"),
    ResourceType("transactions", "transaction", parent="orders", parent_field="order_id"),
    ResourceType("refunds", "refund", parent="orders", parent_field="order_id"),
    ResourceType("draft_orders", "draft_order"),
    ResourceType("inventory_levels", "inventory_level", parent="locations", parent_field="location_id"),
    ResourceType("price_rules", "price_rule"),
    ResourceType("discount_codes", "discount_code", parent="price_rules", parent_field="price_rule_id"),
    ResourceType("gift_cards", "gift_card"),
    ResourceType("metafields", "metafield"),
    ResourceType("checkouts", "checkout"),
)

SHOPIFY_CORE_RESOURCES = (
    "shop",
    "locations",
    "products",
    "variants",
    "collections",
    "customers",
    "orders",
    "draft_orders",
    "inventory_levels",
    "price_rules",
)

SHOPIFY_CATALOG = ResourceCatalog(SHOPIFY_PROVIDER, SHOPIFY_RESOURCES, SHOPIFY_CORE_RESOURCES)
