"""
app/connectors/shopify_connector.py

Shopify Admin REST connector. Lists follow the ``Link: <...>; rel="next"``
page_info cursor until the provider stops returning one.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

import requests

from app.config import ExternalHTTPSettings, ShopifySettings
from app.connectors.base import BaseConnector, ConnectorError, EndpointSpec, ResourceNotFoundError
from app.connectors.rate_limiter import TokenBucketRateLimiter
from app.domain.resources import ResourceType
from app.domain.shopify_resources import SHOPIFY_CATALOG, SHOPIFY_PROVIDER
from app.domain.sync import ExternalRecord

logger = logging.getLogger(__name__)

SHOPIFY_ENDPOINTS: dict[str, EndpointSpec] = {
    "shop": EndpointSpec("shop.json", "shop", "shop.json", "shop"),
    "locations": EndpointSpec("locations.json", "locations", "locations/{id}.json", "location"),
    "products": EndpointSpec("products.json", "products", "products/{id}.json", "product"),
    "variants": EndpointSpec(
        "products/{parent_id}/variants.json", "variants", "variants/{id}.json", "variant"
    ),
    "collections": EndpointSpec(
        "custom_collections.json", "custom_collections", "collections/{id}.json", "collection"
    ),
    "customers": EndpointSpec("customers.json", "customers", "customers/{id}.json", "customer"),
    "orders": EndpointSpec(
        "orders.json",
        "orders",
        "orders/{id}.json",
        "order",
        list_params=(("status", "any"),),
    ),
    "fulfillments": EndpointSpec(
        "orders/{parent_id}/fulfillments.json",
        "fulfillments",
        "orders/{parent_id}/fulfillments/{id}.json",
        "fulfillment",
    ),
    "transactions": EndpointSpec(
        "orders/{parent_id}/transactions.json",
        "transactions",
        "orders/{parent_id}/transactions/{id}.json",
        "transaction",
    ),
    "refunds": EndpointSpec(
        "orders/{parent_id}/refunds.json",
        "refunds",
        "orders/{parent_id}/refunds/{id}.json",
        "refund",
    ),
    "draft_orders": EndpointSpec(
        "draft_orders.json", "draft_orders", "draft_orders/{id}.json", "draft_order"
    ),
    "inventory_levels": EndpointSpec(
        "inventory_levels.json",
        "inventory_levels",
        "inventory_levels.json",
        "inventory_levels",
        parent_param="location_ids",
    ),
    "price_rules": EndpointSpec("price_rules.json", "price_rules", "price_rules/{id}.json", "price_rule"),
    "discount_codes": EndpointSpec(
        "price_rules/{parent_id}/discount_codes.json",
        "discount_codes",
        "price_rules/{parent_id}/discount_codes/{id}.json",
        "discount_code",
    ),
    "gift_cards": EndpointSpec("gift_cards.json", "gift_cards", "gift_cards/{id}.json", "gift_card"),
    "metafields": EndpointSpec("metafields.json", "metafields", "metafields/{id}.json", "metafield"),
    "checkouts": EndpointSpec(
        "checkouts.json",
        "checkouts",
        "checkouts/{id}.json",
        "checkout",
        id_key="token",
    ),
}

# Listings that contribute additional pages to a resource type.
SHOPIFY_SECONDARY_LISTINGS: dict[str, tuple[EndpointSpec, ...]] = {
    "collections": (EndpointSpec("smart_collections.json", "smart_collections"),),
}


def inventory_level_id(inventory_item_id: Any, location_id: Any) -> str:
    """Composite key of an inventory level: ``"<inventory_item_id>:<location_id>"``."""
    return f"{inventory_item_id}:{location_id}"


class ShopifyConnector(BaseConnector):
    """
    Connector for the Shopify Admin REST API.
    """

    def __init__(
        self,
        *,
        settings: ShopifySettings,
        http_settings: ExternalHTTPSettings,
        rate_limiter: TokenBucketRateLimiter | None = None,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(
            provider=SHOPIFY_PROVIDER,
            catalog=SHOPIFY_CATALOG,
            http_settings=http_settings,
            rate_limiter=rate_limiter
            or TokenBucketRateLimiter(
                rate_per_second=settings.rate_limit_per_second,
                burst=settings.rate_limit_burst,
            ),
            session=session,
        )
        self._settings = settings

    @property
    def base_url(self) -> str:
        if not self._settings.shop_domain:
            raise ConnectorError("shopify: SHOPIFY_SHOP_DOMAIN is not configured.")
        domain = self._settings.shop_domain.removeprefix("https://").rstrip("/")
        return f"https://{domain}/admin/api/{self._settings.api_version}"

    def iter_pages(
        self,
        resource: str,
        parent_id: str | None = None,
    ) -> Iterator[list[ExternalRecord]]:
        resource_type = self.catalog.get(resource)
        specs = (SHOPIFY_ENDPOINTS[resource_type.name],) + SHOPIFY_SECONDARY_LISTINGS.get(
            resource_type.name, ()
        )
        for spec in specs:
            yield from self._iter_listing(resource_type, spec, parent_id)

    def get_one(
        self,
        resource: str,
        record_id: str,
        parent_id: str | None = None,
    ) -> ExternalRecord | None:
        resource_type = self.catalog.get(resource)
        if resource_type.name == "inventory_levels":
            return self._get_inventory_level(resource_type, record_id)

        spec = SHOPIFY_ENDPOINTS[resource_type.name]
        url = self._url(spec.get_path or spec.list_path, record_id=record_id, parent_id=parent_id)
        try:
            body = self._request_json(method="GET", url=url)
        except ResourceNotFoundError:
            logger.info("Shopify object not found resource=%s id=%s", resource_type.name, record_id)
            return None

        item = body.get(spec.get_key or spec.list_key) if isinstance(body, Mapping) else None
        if not item:
            return None
        return self._record(resource_type, spec, item, parent_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _iter_listing(
        self,
        resource_type: ResourceType,
        spec: EndpointSpec,
        parent_id: str | None,
    ) -> Iterator[list[ExternalRecord]]:
        url: str | None = self._url(spec.list_path, parent_id=parent_id)
        params: dict[str, Any] | None = dict(spec.list_params)
        if resource_type.name != "shop":
            params["limit"] = self._settings.page_size
        if spec.parent_param is not None:
            if parent_id is None:
                raise ConnectorError(f"shopify: {resource_type.name} listing requires a parent id.")
            params[spec.parent_param] = parent_id

        while url is not None:
            response = self._request(method="GET", url=url, params=params)
            body = self._parse_json(response)
            items = body.get(spec.list_key) or []
            if isinstance(items, Mapping):
                items = [items]
            yield [self._record(resource_type, spec, item, parent_id) for item in items]

            # page_info URLs already carry every query parameter Shopify accepts.
            url = response.links.get("next", {}).get("url")
            params = None

    def _get_inventory_level(self, resource_type: ResourceType, record_id: str) -> ExternalRecord | None:
        inventory_item_id, sep, location_id = str(record_id).partition(":")
        if not sep or not inventory_item_id or not location_id:
            raise ConnectorError(f"shopify: invalid inventory level id '{record_id}'.")

        body = self._request_json(
            method="GET",
            url=self._url("inventory_levels.json"),
            params={"inventory_item_ids": inventory_item_id, "location_ids": location_id},
        )
        levels = body.get("inventory_levels") or []
        if not levels:
            return None
        return self._record(resource_type, SHOPIFY_ENDPOINTS["inventory_levels"], levels[0], None)

    def _record(
        self,
        resource_type: ResourceType,
        spec: EndpointSpec,
        item: Mapping[str, Any],
        parent_id: str | None,
    ) -> ExternalRecord:
        if resource_type.name == "inventory_levels":
            return ExternalRecord(
                resource=resource_type.name,
                id=inventory_level_id(item.get("inventory_item_id"), item.get("location_id")),
                data=dict(item),
                parent_id=str(item.get("location_id")) if item.get("location_id") is not None else parent_id,
            )
        return self._to_record(resource_type, item, id_key=spec.id_key, parent_id=parent_id)

    def _url(self, path: str, *, record_id: str | None = None, parent_id: str | None = None) -> str:
        if "{parent_id}" in path and parent_id is None:
            raise ConnectorError(f"shopify: endpoint {path} requires a parent id.")
        return f"{self.base_url}/{path.format(id=record_id, parent_id=parent_id)}"

    def _default_headers(self) -> dict[str, str]:
        if not self._settings.access_token:
            raise ConnectorError("shopify: SHOPIFY_ACCESS_TOKEN is not configured.")
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self._settings.access_token,
        }
