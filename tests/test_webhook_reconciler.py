"""
tests/test_webhook_reconciler.py

Pytest unit tests for WebhookReconciler and the provider handler tables.

Coverage
--------
- Events are persisted before dispatch, including failed ones
- Re-fetch convergence: stored state equals remote state, not the payload
- Unhandled event types are recorded and marked processed without writes
- Handler failures are recorded on the event and re-raised
- Redelivery of the same event id keeps a single row
- Deletion signals: soft delete, hard delete, cascade, detach
- Chained handlers: subscription items, checkout related objects
- Shopify composite inventory keys and checkout tokens
- Operator replay of failed events with a retry ceiling
"""

from __future__ import annotations

from typing import Any

import pytest

from app.config import SyncSettings
from app.connectors.base import ConnectorRequestError
from app.domain.shopify_resources import SHOPIFY_CATALOG, SHOPIFY_PROVIDER
from app.domain.stripe_resources import STRIPE_CATALOG, STRIPE_PROVIDER
from app.domain.sync import ExternalRecord
from app.domain.webhooks import WebhookEvent
from app.services.provider_registry import ProviderRuntime, build_provider_runtime
from app.services.webhook_handlers.base import MissingObjectIdError
from tests.fakes import FakeConnector, InMemoryEventStore, InMemoryRecordStore


def _runtime(connector: FakeConnector) -> ProviderRuntime:
    return build_provider_runtime(
        connector=connector,
        records=InMemoryRecordStore(),
        events=InMemoryEventStore(),
        sync_settings=SyncSettings(),
    )


def _stripe_event(event_id: str, event_type: str, obj: dict[str, Any]) -> WebhookEvent:
    return WebhookEvent(
        provider=STRIPE_PROVIDER,
        id=event_id,
        event_type=event_type,
        data={"id": event_id, "type": event_type, "data": {"object": obj}},
        object_type=obj.get("object"),
        object_id=obj.get("id"),
    )


def _shopify_event(webhook_id: str, topic: str, body: dict[str, Any]) -> WebhookEvent:
    return WebhookEvent(
        provider=SHOPIFY_PROVIDER,
        id=webhook_id,
        event_type=topic,
        data=body,
        object_type=topic.partition("/")[0],
    )


def _seed(runtime: ProviderRuntime, resource: str, record_id: str, data: dict[str, Any], parent_id: str | None = None) -> None:
    runtime.records.upsert_many(
        runtime.provider,
        [ExternalRecord(resource=resource, id=record_id, data=data, parent_id=parent_id)],
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stripe_connector() -> FakeConnector:
    return FakeConnector(
        STRIPE_CATALOG,
        objects={
            ("customers", "cus_1"): {"id": "cus_1", "object": "customer", "email": "new@example.com"},
            ("subscriptions", "sub_1"): {"id": "sub_1", "object": "subscription", "status": "active"},
            ("checkout_sessions", "cs_1"): {"id": "cs_1", "object": "checkout.session", "customer": "cus_1"},
            ("payment_intents", "pi_1"): {"id": "pi_1", "object": "payment_intent"},
            ("payment_methods", "pm_1"): {"id": "pm_1", "object": "payment_method", "customer": None},
        },
        pages={
            ("subscription_items", "sub_1"): [
                [{"id": "si_1", "subscription": "sub_1"}, {"id": "si_2", "subscription": "sub_1"}]
            ],
        },
    )


@pytest.fixture
def stripe(stripe_connector: FakeConnector) -> ProviderRuntime:
    return _runtime(stripe_connector)


@pytest.fixture
def shopify_connector() -> FakeConnector:
    return FakeConnector(
        SHOPIFY_CATALOG,
        objects={
            ("inventory_levels", "11:22"): {"inventory_item_id": 11, "location_id": 22, "available": 7},
            ("orders", "500"): {"id": 500, "financial_status": "refunded"},
            ("refunds", "900"): {"id": 900, "order_id": 500},
            ("checkouts", "tok_abc"): {"token": "tok_abc", "id": 77},
        },
    )


@pytest.fixture
def shopify(shopify_connector: FakeConnector) -> ProviderRuntime:
    return _runtime(shopify_connector)


# ---------------------------------------------------------------------------
# Persistence and convergence
# ---------------------------------------------------------------------------


class TestPersistAndConverge:
    def test_stored_state_matches_remote_not_payload(self, stripe: ProviderRuntime) -> None:
        event = _stripe_event("evt_1", "customer.updated", {"id": "cus_1", "email": "stale@example.com"})

        stripe.reconciler.handle(event)

        stored = stripe.records.get(STRIPE_PROVIDER, "customers", "cus_1")
        assert stored.data["email"] == "new@example.com"
        assert stripe.events.get(STRIPE_PROVIDER, "evt_1").processed is True

    def test_out_of_order_delivery_converges(self, stripe: ProviderRuntime) -> None:
        newer = _stripe_event("evt_2", "customer.updated", {"id": "cus_1", "email": "newer@example.com"})
        older = _stripe_event("evt_1", "customer.created", {"id": "cus_1", "email": "oldest@example.com"})

        stripe.reconciler.handle(newer)
        stripe.reconciler.handle(older)

        assert stripe.records.get(STRIPE_PROVIDER, "customers", "cus_1").data["email"] == "new@example.com"

    def test_unhandled_type_is_recorded_without_writes(
        self,
        stripe: ProviderRuntime,
        stripe_connector: FakeConnector,
    ) -> None:
        event = _stripe_event("evt_9", "issuing_card.created", {"id": "ic_1"})

        stripe.reconciler.handle(event)

        stored = stripe.events.get(STRIPE_PROVIDER, "evt_9")
        assert stored.processed is True
        assert stored.error is None
        assert stripe.records.write_count == 0
        assert stripe_connector.get_calls == []

    def test_redelivery_keeps_one_row(self, stripe: ProviderRuntime) -> None:
        event = _stripe_event("evt_1", "customer.updated", {"id": "cus_1"})

        stripe.reconciler.handle(event)
        stripe.reconciler.handle(_stripe_event("evt_1", "customer.updated", {"id": "cus_1"}))

        assert len(stripe.events.rows) == 1
        assert stripe.events.record_calls == ["evt_1", "evt_1"]
        assert stripe.records.count(STRIPE_PROVIDER, "customers") == 1

    def test_remote_gone_is_not_an_error(self, stripe: ProviderRuntime) -> None:
        stripe.reconciler.handle(_stripe_event("evt_3", "customer.updated", {"id": "cus_missing"}))
        stored = stripe.events.get(STRIPE_PROVIDER, "evt_3")
        assert stored.processed is True
        assert stored.error is None


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestHandlerFailure:
    def test_failure_is_recorded_and_reraised(
        self,
        stripe: ProviderRuntime,
        stripe_connector: FakeConnector,
    ) -> None:
        stripe_connector.get_failures[("customers", "cus_1")] = ConnectorRequestError(
            "stripe: request failed after retries.",
            status_code=503,
        )

        with pytest.raises(ConnectorRequestError):
            stripe.reconciler.handle(_stripe_event("evt_1", "customer.updated", {"id": "cus_1"}))

        stored = stripe.events.get(STRIPE_PROVIDER, "evt_1")
        assert stored is not None
        assert stored.error == "stripe: request failed after retries."

    def test_missing_object_id_is_a_failure(self, stripe: ProviderRuntime) -> None:
        with pytest.raises(MissingObjectIdError):
            stripe.reconciler.handle(_stripe_event("evt_2", "customer.updated", {"email": "x@example.com"}))
        assert "payload has no 'id'" in stripe.events.get(STRIPE_PROVIDER, "evt_2").error


# ---------------------------------------------------------------------------
# Deletion signals
# ---------------------------------------------------------------------------


class TestDeletionSignals:
    def test_customer_deleted_soft_deletes(self, stripe: ProviderRuntime) -> None:
        _seed(stripe, "customers", "cus_1", {"id": "cus_1"})

        stripe.reconciler.handle(_stripe_event("evt_1", "customer.deleted", {"id": "cus_1", "deleted": True}))

        stored = stripe.records.get(STRIPE_PROVIDER, "customers", "cus_1")
        assert stored.deleted_at is not None
        assert stripe.records.count(STRIPE_PROVIDER, "customers") == 0

    def test_invoice_deleted_hard_deletes(self, stripe: ProviderRuntime) -> None:
        _seed(stripe, "invoices", "in_1", {"id": "in_1"})

        stripe.reconciler.handle(_stripe_event("evt_1", "invoice.deleted", {"id": "in_1"}))

        assert stripe.records.get(STRIPE_PROVIDER, "invoices", "in_1") is None

    def test_tax_id_deleted_hard_deletes(self, stripe: ProviderRuntime) -> None:
        _seed(stripe, "tax_ids", "txi_1", {"id": "txi_1", "customer": "cus_1"}, parent_id="cus_1")

        stripe.reconciler.handle(
            _stripe_event("evt_1", "customer.tax_id.deleted", {"id": "txi_1", "customer": "cus_1"})
        )

        assert stripe.records.get(STRIPE_PROVIDER, "tax_ids", "txi_1") is None

    def test_payment_method_detached_clears_parent(self, stripe: ProviderRuntime) -> None:
        _seed(stripe, "payment_methods", "pm_1", {"id": "pm_1", "customer": "cus_1"}, parent_id="cus_1")

        stripe.reconciler.handle(_stripe_event("evt_1", "payment_method.detached", {"id": "pm_1", "customer": None}))

        stored = stripe.records.get(STRIPE_PROVIDER, "payment_methods", "pm_1")
        assert stored.parent_id is None
        assert stored.data["customer"] is None

    def test_order_delete_cascades_to_children(self, shopify: ProviderRuntime) -> None:
        _seed(shopify, "orders", "500", {"id": 500})
        _seed(shopify, "fulfillments", "f_1", {"id": "f_1", "order_id": 500}, parent_id="500")
        _seed(shopify, "refunds", "r_1", {"id": "r_1", "order_id": 500}, parent_id="500")
        _seed(shopify, "fulfillments", "f_2", {"id": "f_2", "order_id": 501}, parent_id="501")

        shopify.reconciler.handle(_shopify_event("wh_1", "orders/delete", {"id": 500}))

        assert shopify.records.get(SHOPIFY_PROVIDER, "orders", "500") is None
        assert shopify.records.get(SHOPIFY_PROVIDER, "fulfillments", "f_1") is None
        assert shopify.records.get(SHOPIFY_PROVIDER, "refunds", "r_1") is None
        assert shopify.records.get(SHOPIFY_PROVIDER, "fulfillments", "f_2") is not None


# ---------------------------------------------------------------------------
# Chained handlers
# ---------------------------------------------------------------------------


class TestChainedHandlers:
    def test_subscription_update_refreshes_items(self, stripe: ProviderRuntime) -> None:
        stripe.reconciler.handle(
            _stripe_event("evt_1", "customer.subscription.updated", {"id": "sub_1", "status": "past_due"})
        )

        assert stripe.records.get(STRIPE_PROVIDER, "subscriptions", "sub_1").data["status"] == "active"
        assert stripe.records.count(STRIPE_PROVIDER, "subscription_items") == 2

    def test_checkout_completed_refreshes_related_objects(
        self,
        stripe: ProviderRuntime,
        stripe_connector: FakeConnector,
    ) -> None:
        stripe.reconciler.handle(
            _stripe_event(
                "evt_1",
                "checkout.session.completed",
                {"id": "cs_1", "customer": "cus_1", "subscription": None, "payment_intent": "pi_1"},
            )
        )

        fetched = [(resource, record_id) for resource, record_id, _ in stripe_connector.get_calls]
        assert fetched == [
            ("checkout_sessions", "cs_1"),
            ("customers", "cus_1"),
            ("payment_intents", "pi_1"),
        ]

    def test_refund_create_resyncs_refund_and_order(
        self,
        shopify: ProviderRuntime,
        shopify_connector: FakeConnector,
    ) -> None:
        shopify.reconciler.handle(_shopify_event("wh_1", "refunds/create", {"id": 900, "order_id": 500}))

        assert shopify_connector.get_calls == [("refunds", "900", "500"), ("orders", "500", None)]
        assert shopify.records.get(SHOPIFY_PROVIDER, "refunds", "900").parent_id == "500"

    def test_inventory_level_uses_composite_key(
        self,
        shopify: ProviderRuntime,
        shopify_connector: FakeConnector,
    ) -> None:
        shopify.reconciler.handle(
            _shopify_event(
                "wh_2",
                "inventory_levels/update",
                {"inventory_item_id": 11, "location_id": 22, "available": 3},
            )
        )

        assert shopify_connector.get_calls == [("inventory_levels", "11:22", None)]
        assert shopify.records.get(SHOPIFY_PROVIDER, "inventory_levels", "11:22").data["available"] == 7

    def test_checkout_keyed_by_token(
        self,
        shopify: ProviderRuntime,
        shopify_connector: FakeConnector,
    ) -> None:
        shopify.reconciler.handle(_shopify_event("wh_3", "checkouts/update", {"token": "tok_abc", "id": 77}))
        assert shopify_connector.get_calls == [("checkouts", "tok_abc", None)]


# ---------------------------------------------------------------------------
# Replay
# ---------------------------------------------------------------------------


class TestReplay:
    def test_replay_succeeds_after_upstream_recovers(
        self,
        stripe: ProviderRuntime,
        stripe_connector: FakeConnector,
    ) -> None:
        stripe_connector.get_failures[("customers", "cus_1")] = ConnectorRequestError("timeout")
        with pytest.raises(ConnectorRequestError):
            stripe.reconciler.handle(_stripe_event("evt_1", "customer.updated", {"id": "cus_1"}))

        del stripe_connector.get_failures[("customers", "cus_1")]
        summary = stripe.reconciler.replay_failed(max_retries=3)

        assert (summary.attempted, summary.succeeded, summary.failed) == (1, 1, 0)
        stored = stripe.events.get(STRIPE_PROVIDER, "evt_1")
        assert stored.error is None
        assert stored.retry_count == 1
        assert stripe.records.get(STRIPE_PROVIDER, "customers", "cus_1") is not None

    def test_replay_stops_at_retry_ceiling(
        self,
        stripe: ProviderRuntime,
        stripe_connector: FakeConnector,
    ) -> None:
        stripe_connector.get_failures[("customers", "cus_1")] = ConnectorRequestError("timeout")
        with pytest.raises(ConnectorRequestError):
            stripe.reconciler.handle(_stripe_event("evt_1", "customer.updated", {"id": "cus_1"}))

        for _ in range(2):
            summary = stripe.reconciler.replay_failed(max_retries=2)
            assert summary.failed == 1
            assert summary.errors == {"evt_1": "timeout"}

        assert stripe.reconciler.replay_failed(max_retries=2).attempted == 0
        assert stripe.events.get(STRIPE_PROVIDER, "evt_1").retry_count == 2

    def test_successful_events_are_not_replayed(self, stripe: ProviderRuntime) -> None:
        stripe.reconciler.handle(_stripe_event("evt_1", "customer.updated", {"id": "cus_1"}))
        assert stripe.reconciler.replay_failed().attempted == 0
