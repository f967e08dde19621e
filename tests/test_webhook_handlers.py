"""
tests/test_webhook_handlers.py

Consistency checks between the handler tables and the resource catalogs.

Coverage
--------
- Every handler step names a resource type that exists in its catalog
- Parent re-lists only target dependent types
- Deletion topics map to deletion signals, informational topics to LogOnly
- payload_id reduces expanded references
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from app.domain.resources import ResourceCatalog
from app.domain.shopify_resources import SHOPIFY_CATALOG
from app.domain.stripe_resources import STRIPE_CATALOG
from app.services.webhook_handlers import SHOPIFY_WEBHOOK_HANDLERS, STRIPE_WEBHOOK_HANDLERS
from app.services.webhook_handlers.base import (
    Chain,
    Detach,
    HardDelete,
    LogOnly,
    Resync,
    ResyncParent,
    ResyncRelated,
    SoftDelete,
    WebhookHandler,
    payload_id,
)

TABLES = [
    pytest.param(STRIPE_WEBHOOK_HANDLERS, STRIPE_CATALOG, id="stripe"),
    pytest.param(SHOPIFY_WEBHOOK_HANDLERS, SHOPIFY_CATALOG, id="shopify"),
]


def _steps(handler: WebhookHandler) -> Iterator[WebhookHandler]:
    if isinstance(handler, Chain):
        for step in handler.steps:
            yield from _steps(step)
    else:
        yield handler


# ---------------------------------------------------------------------------
# Table integrity
# ---------------------------------------------------------------------------


class TestHandlerTables:
    @pytest.mark.parametrize("table, catalog", TABLES)
    def test_every_step_targets_a_known_resource(
        self,
        table: dict[str, WebhookHandler],
        catalog: ResourceCatalog,
    ) -> None:
        for topic, handler in table.items():
            for step in _steps(handler):
                if isinstance(step, ResyncRelated):
                    for resource, _field in step.related:
                        assert resource in catalog, topic
                elif isinstance(step, LogOnly):
                    continue
                else:
                    assert step.resource in catalog, topic

    @pytest.mark.parametrize("table, catalog", TABLES)
    def test_parent_relists_target_dependent_types(
        self,
        table: dict[str, WebhookHandler],
        catalog: ResourceCatalog,
    ) -> None:
        for topic, handler in table.items():
            for step in _steps(handler):
                if isinstance(step, ResyncParent):
                    assert catalog.get(step.resource).is_dependent, topic

    @pytest.mark.parametrize("table, catalog", TABLES)
    def test_cascades_only_name_children(
        self,
        table: dict[str, WebhookHandler],
        catalog: ResourceCatalog,
    ) -> None:
        for topic, handler in table.items():
            for step in _steps(handler):
                if isinstance(step, HardDelete):
                    children = {child.name for child in catalog.children_of(step.resource)}
                    assert set(step.cascade) <= children, topic

    def test_stripe_deletion_topics(self) -> None:
        assert isinstance(STRIPE_WEBHOOK_HANDLERS["customer.deleted"], SoftDelete)
        assert isinstance(STRIPE_WEBHOOK_HANDLERS["product.deleted"], SoftDelete)
        assert isinstance(STRIPE_WEBHOOK_HANDLERS["invoice.deleted"], HardDelete)
        assert isinstance(STRIPE_WEBHOOK_HANDLERS["customer.subscription.deleted"], Resync)
        detached = list(_steps(STRIPE_WEBHOOK_HANDLERS["payment_method.detached"]))
        assert isinstance(detached[0], Detach)

    def test_informational_topics_are_log_only(self) -> None:
        assert isinstance(STRIPE_WEBHOOK_HANDLERS["invoice.upcoming"], LogOnly)
        assert isinstance(STRIPE_WEBHOOK_HANDLERS["payout.paid"], LogOnly)
        assert isinstance(SHOPIFY_WEBHOOK_HANDLERS["app/uninstalled"], LogOnly)

    def test_shopify_order_delete_cascades(self) -> None:
        handler = SHOPIFY_WEBHOOK_HANDLERS["orders/delete"]
        assert isinstance(handler, HardDelete)
        assert set(handler.cascade) == {"fulfillments", "transactions", "refunds"}


# ---------------------------------------------------------------------------
# payload_id
# ---------------------------------------------------------------------------


class TestPayloadId:
    def test_plain_value(self) -> None:
        assert payload_id({"customer": "cus_1"}, "customer") == "cus_1"

    def test_expanded_reference(self) -> None:
        assert payload_id({"customer": {"id": "cus_1", "object": "customer"}}, "customer") == "cus_1"

    def test_numeric_id_is_stringified(self) -> None:
        assert payload_id({"order_id": 4501}, "order_id") == "4501"

    @pytest.mark.parametrize("payload", [{}, {"customer": None}, {"customer": ""}])
    def test_absent_values(self, payload: dict) -> None:
        assert payload_id(payload, "customer") is None
