"""
app/connectors/stripe_connector.py

Stripe REST connector. Lists use ``starting_after`` cursor pagination.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

import requests

from app.config import ExternalHTTPSettings, StripeSettings
from app.connectors.base import BaseConnector, ConnectorError, EndpointSpec, ResourceNotFoundError
from app.connectors.rate_limiter import TokenBucketRateLimiter
from app.domain.stripe_resources import STRIPE_CATALOG, STRIPE_PROVIDER
from app.domain.sync import ExternalRecord

logger = logging.getLogger(__name__)

STRIPE_ENDPOINTS: dict[str, EndpointSpec] = {
    "products": EndpointSpec("/v1/products", "data", "/v1/products/{id}"),
    "prices": EndpointSpec("/v1/prices", "data", "/v1/prices/{id}"),
    "coupons": EndpointSpec("/v1/coupons", "data", "/v1/coupons/{id}"),
    "tax_rates": EndpointSpec("/v1/tax_rates", "data", "/v1/tax_rates/{id}"),
    "customers": EndpointSpec("/v1/customers", "data", "/v1/customers/{id}"),
    "promotion_codes": EndpointSpec("/v1/promotion_codes", "data", "/v1/promotion_codes/{id}"),
    "subscriptions": EndpointSpec(
        "/v1/subscriptions",
        "data",
        "/v1/subscriptions/{id}",
        list_params=(("status", "all"),),
    ),
    "subscription_items": EndpointSpec(
        "/v1/subscription_items",
        "data",
        "/v1/subscription_items/{id}",
        parent_param="subscription",
    ),
    "subscription_schedules": EndpointSpec(
        "/v1/subscription_schedules", "data", "/v1/subscription_schedules/{id}"
    ),
    "invoices": EndpointSpec("/v1/invoices", "data", "/v1/invoices/{id}"),
    "invoice_items": EndpointSpec("/v1/invoiceitems", "data", "/v1/invoiceitems/{id}"),
    "credit_notes": EndpointSpec("/v1/credit_notes", "data", "/v1/credit_notes/{id}"),
    "payment_intents": EndpointSpec("/v1/payment_intents", "data", "/v1/payment_intents/{id}"),
    "setup_intents": EndpointSpec("/v1/setup_intents", "data", "/v1/setup_intents/{id}"),
    "charges": EndpointSpec("/v1/charges", "data", "/v1/charges/{id}"),
    "refunds": EndpointSpec("/v1/refunds", "data", "/v1/refunds/{id}"),
    "disputes": EndpointSpec("/v1/disputes", "data", "/v1/disputes/{id}"),
    "balance_transactions": EndpointSpec(
        "/v1/balance_transactions", "data", "/v1/balance_transactions/{id}"
    ),
    "checkout_sessions": EndpointSpec("/v1/checkout/sessions", "data", "/v1/checkout/sessions/{id}"),
    "payment_methods": EndpointSpec(
        "/v1/customers/{parent_id}/payment_methods",
        "data",
        "/v1/payment_methods/{id}",
    ),
    "tax_ids": EndpointSpec(
        "/v1/customers/{parent_id}/tax_ids",
        "data",
        "/v1/customers/{parent_id}/tax_ids/{id}",
    ),
}


class StripeConnector(BaseConnector):
    """
    Connector for the Stripe ``/v1`` API.
    """

    def __init__(
        self,
        *,
        settings: StripeSettings,
        http_settings: ExternalHTTPSettings,
        rate_limiter: TokenBucketRateLimiter | None = None,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(
            provider=STRIPE_PROVIDER,
            catalog=STRIPE_CATALOG,
            http_settings=http_settings,
            rate_limiter=rate_limiter
            or TokenBucketRateLimiter(
                rate_per_second=settings.rate_limit_per_second,
                burst=settings.rate_limit_burst,
            ),
            session=session,
        )
        self._settings = settings

    def iter_pages(
        self,
        resource: str,
        parent_id: str | None = None,
    ) -> Iterator[list[ExternalRecord]]:
        resource_type = self.catalog.get(resource)
        spec = STRIPE_ENDPOINTS[resource_type.name]
        url = self._url(spec.list_path, parent_id=parent_id)

        params: dict[str, Any] = {"limit": self._settings.page_size, **dict(spec.list_params)}
        if spec.parent_param is not None:
            if parent_id is None:
                raise ConnectorError(f"stripe: {resource_type.name} listing requires a parent id.")
            params[spec.parent_param] = parent_id

        while True:
            body = self._request_json(method="GET", url=url, params=params)
            items = body.get(spec.list_key) or []
            yield [self._to_record(resource_type, item, parent_id=parent_id) for item in items]

            if not body.get("has_more") or not items:
                return
            params["starting_after"] = items[-1]["id"]

    def get_one(
        self,
        resource: str,
        record_id: str,
        parent_id: str | None = None,
    ) -> ExternalRecord | None:
        resource_type = self.catalog.get(resource)
        spec = STRIPE_ENDPOINTS[resource_type.name]
        url = self._url(spec.get_path or spec.list_path, record_id=record_id, parent_id=parent_id)
        try:
            body = self._request_json(method="GET", url=url)
        except ResourceNotFoundError:
            logger.info("Stripe object not found resource=%s id=%s", resource_type.name, record_id)
            return None

        if body.get("deleted"):
            return None
        return self._to_record(resource_type, body, parent_id=parent_id)

    def _url(self, path: str, *, record_id: str | None = None, parent_id: str | None = None) -> str:
        if "{parent_id}" in path and parent_id is None:
            raise ConnectorError(f"stripe: endpoint {path} requires a parent id.")
        formatted = path.format(id=record_id, parent_id=parent_id)
        return f"{self._settings.api_base_url}{formatted}"

    def _default_headers(self) -> dict[str, str]:
        if not self._settings.api_key:
            raise ConnectorError("stripe: STRIPE_API_KEY is not configured.")
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self._settings.api_key}",
            "Stripe-Version": self._settings.api_version,
        }
