"""
app/domain package marker.
"""

from app.domain.resources import ResourceCatalog, ResourceType, UnknownResourceError
from app.domain.sync import ExternalRecord, StoredRecord, SyncAlreadyRunningError, SyncRun, SyncStatus
from app.domain.webhooks import ReplaySummary, WebhookEvent

__all__ = [
    "ExternalRecord",
    "ReplaySummary",
    "ResourceCatalog",
    "ResourceType",
    "StoredRecord",
    "SyncAlreadyRunningError",
    "SyncRun",
    "SyncStatus",
    "UnknownResourceError",
    "WebhookEvent",
]
