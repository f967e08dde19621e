"""
SQLAlchemy-backed storage implementations.

Each call opens its own session, commits on success, and rolls back and
re-raises on database errors. Sync runs and webhook handlers may therefore
share one store from different threads.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.sync import ExternalRecord, StoredRecord
from app.domain.webhooks import WebhookEvent
from app.storage.base import EventStore, RecordStore
from db.models.synced_object import SyncedObject
from db.models.webhook_event import WebhookEventRecord
from db.repositories.synced_object_repository import SyncedObjectRepository
from db.repositories.webhook_event_repository import WebhookEventRepository


class _SessionScoped:
    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()


class SQLAlchemyRecordStore(_SessionScoped, RecordStore):
    """
    Persist mirrored objects through the repository and DB session.
    """

    def __init__(
        self,
        *,
        session_factory: Callable[[], Session] | None = None,
        batch_size: int = 500,
    ) -> None:
        super().__init__(session_factory)
        self._batch_size = max(1, batch_size)

    def upsert_many(self, provider: str, records: Sequence[ExternalRecord]) -> int:
        if not records:
            return 0
        with self._session() as session:
            return SyncedObjectRepository(session).upsert_many(
                provider,
                [record.to_row() for record in records],
                batch_size=self._batch_size,
            )

    def count(self, provider: str, resource: str) -> int:
        with self._session() as session:
            return SyncedObjectRepository(session).count(provider, resource)

    def count_by_type(self, provider: str) -> dict[str, int]:
        with self._session() as session:
            return SyncedObjectRepository(session).count_by_type(provider)

    def list_parent_ids(
        self,
        provider: str,
        resource: str,
        filters: Mapping[str, str] | None = None,
    ) -> list[str]:
        with self._session() as session:
            return SyncedObjectRepository(session).list_parent_ids(provider, resource, filters=filters)

    def get(self, provider: str, resource: str, record_id: str) -> StoredRecord | None:
        with self._session() as session:
            row = SyncedObjectRepository(session).get(provider, resource, record_id)
            return _to_stored_record(row) if row is not None else None

    def list_records(
        self,
        provider: str,
        resource: str,
        *,
        limit: int = 100,
        offset: int = 0,
        parent_id: str | None = None,
    ) -> list[StoredRecord]:
        with self._session() as session:
            rows = SyncedObjectRepository(session).list_records(
                provider,
                resource,
                limit=limit,
                offset=offset,
                parent_id=parent_id,
            )
            return [_to_stored_record(row) for row in rows]

    def soft_delete(self, provider: str, resource: str, record_id: str) -> bool:
        with self._session() as session:
            return SyncedObjectRepository(session).soft_delete(provider, resource, record_id)

    def hard_delete(
        self,
        provider: str,
        resource: str,
        record_id: str,
        cascade: Sequence[str] = (),
    ) -> int:
        with self._session() as session:
            return SyncedObjectRepository(session).hard_delete(provider, resource, record_id, cascade=cascade)

    def detach(self, provider: str, resource: str, record_id: str) -> bool:
        with self._session() as session:
            return SyncedObjectRepository(session).detach(provider, resource, record_id)

    def last_synced_at(self, provider: str, resource: str | None = None) -> datetime | None:
        with self._session() as session:
            return SyncedObjectRepository(session).last_synced_at(provider, resource)


class SQLAlchemyEventStore(_SessionScoped, EventStore):
    """
    Persist webhook deliveries through the repository and DB session.
    """

    def record(self, event: WebhookEvent) -> None:
        with self._session() as session:
            WebhookEventRepository(session).insert_event(
                {
                    "provider": event.provider,
                    "id": event.id,
                    "event_type": event.event_type,
                    "object_type": event.object_type,
                    "object_id": event.object_id,
                    "account": event.account,
                    "api_version": event.api_version,
                    "livemode": event.livemode,
                    "data": event.data,
                    "event_created_at": event.created_at,
                    "received_at": event.received_at,
                }
            )

    def get(self, provider: str, event_id: str) -> WebhookEvent | None:
        with self._session() as session:
            row = WebhookEventRepository(session).get(provider, event_id)
            return _to_webhook_event(row) if row is not None else None

    def mark_processed(self, provider: str, event_id: str, error: str | None = None) -> None:
        with self._session() as session:
            WebhookEventRepository(session).mark_processed(provider, event_id, error=error)

    def increment_retry_count(self, provider: str, event_id: str) -> int:
        with self._session() as session:
            return WebhookEventRepository(session).increment_retry_count(provider, event_id) or 0

    def list_failed(self, provider: str, *, limit: int = 100, max_retries: int = 3) -> list[WebhookEvent]:
        with self._session() as session:
            rows = WebhookEventRepository(session).list_failed(provider, limit=limit, max_retries=max_retries)
            return [_to_webhook_event(row) for row in rows]

    def list_events(
        self,
        provider: str,
        *,
        limit: int = 100,
        offset: int = 0,
        event_type: str | None = None,
        processed: bool | None = None,
    ) -> list[WebhookEvent]:
        with self._session() as session:
            rows = WebhookEventRepository(session).list_events(
                provider,
                limit=limit,
                offset=offset,
                event_type=event_type,
                processed=processed,
            )
            return [_to_webhook_event(row) for row in rows]

    def summary(self, provider: str, since: datetime | None = None) -> list[dict[str, Any]]:
        with self._session() as session:
            return WebhookEventRepository(session).summary(provider, since=since)


def _to_stored_record(row: SyncedObject) -> StoredRecord:
    return StoredRecord(
        provider=row.provider,
        resource=row.resource_type,
        id=row.id,
        data=dict(row.data or {}),
        parent_id=row.parent_id,
        synced_at=row.synced_at,
        deleted_at=row.deleted_at,
    )


def _to_webhook_event(row: WebhookEventRecord) -> WebhookEvent:
    return WebhookEvent(
        provider=row.provider,
        id=row.id,
        event_type=row.event_type,
        data=dict(row.data or {}),
        object_type=row.object_type,
        object_id=row.object_id,
        account=row.account,
        api_version=row.api_version,
        livemode=row.livemode,
        created_at=row.event_created_at,
        received_at=row.received_at,
        processed=row.processed,
        processed_at=row.processed_at,
        error=row.error,
        retry_count=row.retry_count,
    )
