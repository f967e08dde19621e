"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.synced_object import SyncedObject
from db.models.webhook_event import WebhookEventRecord

__all__ = [
    "SyncedObject",
    "WebhookEventRecord",
]
