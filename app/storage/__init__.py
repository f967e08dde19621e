"""
Storage backends for mirrored records and webhook events.
"""

from app.storage.base import EventStore, RecordStore
from app.storage.sqlalchemy_storage import SQLAlchemyEventStore, SQLAlchemyRecordStore

__all__ = [
    "EventStore",
    "RecordStore",
    "SQLAlchemyEventStore",
    "SQLAlchemyRecordStore",
]
