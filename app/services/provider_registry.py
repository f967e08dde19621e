"""
app/services/provider_registry.py

Wires catalog, connector, stores, orchestrator and reconciler per provider.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache

from app.config import (
    SyncSettings,
    get_external_http_settings,
    get_shopify_settings,
    get_stripe_settings,
    get_sync_settings,
)
from app.connectors import BaseConnector, ShopifyConnector, StripeConnector
from app.domain.resources import ResourceCatalog
from app.domain.shopify_resources import SHOPIFY_PROVIDER
from app.domain.stripe_resources import STRIPE_PROVIDER
from app.services.sync_orchestrator import SyncOrchestrator
from app.services.webhook_handlers import (
    SHOPIFY_WEBHOOK_HANDLERS,
    STRIPE_WEBHOOK_HANDLERS,
    HandlerContext,
    WebhookHandler,
)
from app.services.webhook_reconciler import WebhookReconciler
from app.storage import EventStore, RecordStore, SQLAlchemyEventStore, SQLAlchemyRecordStore

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS: tuple[str, ...] = (STRIPE_PROVIDER, SHOPIFY_PROVIDER)

WEBHOOK_HANDLERS: Mapping[str, Mapping[str, WebhookHandler]] = {
    STRIPE_PROVIDER: STRIPE_WEBHOOK_HANDLERS,
    SHOPIFY_PROVIDER: SHOPIFY_WEBHOOK_HANDLERS,
}


class UnknownProviderError(ValueError):
    """Raised when a provider name is not supported or not enabled."""


@dataclass(frozen=True)
class ProviderRuntime:
    """
    Everything needed to sync and reconcile one provider.
    """

    provider: str
    catalog: ResourceCatalog
    connector: BaseConnector
    records: RecordStore
    events: EventStore
    orchestrator: SyncOrchestrator
    reconciler: WebhookReconciler


def build_provider_runtime(
    *,
    connector: BaseConnector,
    records: RecordStore,
    events: EventStore,
    sync_settings: SyncSettings,
) -> ProviderRuntime:
    orchestrator = SyncOrchestrator(
        catalog=connector.catalog,
        connector=connector,
        records=records,
        upsert_batch_size=sync_settings.upsert_batch_size,
        upsert_concurrency=sync_settings.upsert_concurrency,
    )
    reconciler = WebhookReconciler(
        handlers=WEBHOOK_HANDLERS[connector.provider],
        events=events,
        context=HandlerContext(
            provider=connector.provider,
            orchestrator=orchestrator,
            records=records,
        ),
    )
    return ProviderRuntime(
        provider=connector.provider,
        catalog=connector.catalog,
        connector=connector,
        records=records,
        events=events,
        orchestrator=orchestrator,
        reconciler=reconciler,
    )


def enabled_providers() -> list[str]:
    enabled: list[str] = []
    if get_stripe_settings().enabled:
        enabled.append(STRIPE_PROVIDER)
    if get_shopify_settings().enabled:
        enabled.append(SHOPIFY_PROVIDER)
    return enabled


def normalize_provider(provider: str) -> str:
    normalized = provider.strip().lower()
    if normalized not in SUPPORTED_PROVIDERS:
        allowed = ", ".join(SUPPORTED_PROVIDERS)
        raise UnknownProviderError(f"Unsupported provider '{provider}'. Allowed providers: {allowed}.")
    if normalized not in enabled_providers():
        raise UnknownProviderError(f"Provider '{normalized}' is not enabled.")
    return normalized


def get_provider_runtime(provider: str) -> ProviderRuntime:
    """
    Return the cached runtime for ``provider``.

    One runtime (and so one single-flight orchestrator) exists per provider
    per process.
    """

    return _build_cached_runtime(normalize_provider(provider))


@lru_cache(maxsize=None)
def _build_cached_runtime(provider: str) -> ProviderRuntime:
    http_settings = get_external_http_settings()
    sync_settings = get_sync_settings()

    connector: BaseConnector
    if provider == STRIPE_PROVIDER:
        connector = StripeConnector(settings=get_stripe_settings(), http_settings=http_settings)
    else:
        connector = ShopifyConnector(settings=get_shopify_settings(), http_settings=http_settings)

    logger.info("Provider runtime created provider=%s", provider)
    return build_provider_runtime(
        connector=connector,
        records=SQLAlchemyRecordStore(batch_size=sync_settings.upsert_batch_size),
        events=SQLAlchemyEventStore(),
        sync_settings=sync_settings,
    )
