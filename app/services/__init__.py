"""
app/services package marker.
"""

from app.services.provider_registry import (
    ProviderRuntime,
    UnknownProviderError,
    build_provider_runtime,
    get_provider_runtime,
)
from app.services.sync_orchestrator import SyncOrchestrator
from app.services.webhook_reconciler import WebhookReconciler

__all__ = [
    "ProviderRuntime",
    "UnknownProviderError",
    "build_provider_runtime",
    "get_provider_runtime",
    "SyncOrchestrator",
    "WebhookReconciler",
]
