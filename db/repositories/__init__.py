"""
Repository layer exports.
"""

from db.repositories.synced_object_repository import SyncedObjectRepository
from db.repositories.webhook_event_repository import WebhookEventRepository

__all__ = [
    "SyncedObjectRepository",
    "WebhookEventRepository",
]
