"""
Storage layer interfaces for mirrored records and webhook events.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping, Sequence
from datetime import datetime
from typing import Any

from app.domain.sync import ExternalRecord, StoredRecord
from app.domain.webhooks import WebhookEvent


class RecordStore(ABC):
    """
    Upsert-by-id store for mirrored remote objects.
    """

    @abstractmethod
    def upsert_many(self, provider: str, records: Sequence[ExternalRecord]) -> int:
        """
        Merge records by ``(provider, resource, id)`` and return the count merged.
        """

    @abstractmethod
    def count(self, provider: str, resource: str) -> int:
        """
        Count live (not soft-deleted) records of one resource type.
        """

    @abstractmethod
    def count_by_type(self, provider: str) -> dict[str, int]:
        ...

    @abstractmethod
    def list_parent_ids(
        self,
        provider: str,
        resource: str,
        filters: Mapping[str, str] | None = None,
    ) -> list[str]:
        """
        Ids of stored live records used as parents for dependent lookups.
        """

    @abstractmethod
    def get(self, provider: str, resource: str, record_id: str) -> StoredRecord | None:
        ...

    @abstractmethod
    def list_records(
        self,
        provider: str,
        resource: str,
        *,
        limit: int = 100,
        offset: int = 0,
        parent_id: str | None = None,
    ) -> list[StoredRecord]:
        ...

    @abstractmethod
    def soft_delete(self, provider: str, resource: str, record_id: str) -> bool:
        ...

    @abstractmethod
    def hard_delete(
        self,
        provider: str,
        resource: str,
        record_id: str,
        cascade: Sequence[str] = (),
    ) -> int:
        ...

    @abstractmethod
    def detach(self, provider: str, resource: str, record_id: str) -> bool:
        ...

    @abstractmethod
    def last_synced_at(self, provider: str, resource: str | None = None) -> datetime | None:
        ...

    def iter_records(self, provider: str, resource: str, *, page_size: int = 500) -> Iterator[StoredRecord]:
        """
        Yield every live record of one type, reading ``page_size`` rows at a time.
        """
        offset = 0
        while True:
            page = self.list_records(provider, resource, limit=page_size, offset=offset)
            yield from page
            if len(page) < page_size:
                return
            offset += page_size


class EventStore(ABC):
    """
    Insert-or-update audit log of webhook deliveries keyed by provider event id.
    """

    @abstractmethod
    def record(self, event: WebhookEvent) -> None:
        """
        Persist a delivery. A repeated ``(provider, id)`` updates the stored row.
        """

    @abstractmethod
    def get(self, provider: str, event_id: str) -> WebhookEvent | None:
        ...

    @abstractmethod
    def mark_processed(self, provider: str, event_id: str, error: str | None = None) -> None:
        ...

    @abstractmethod
    def increment_retry_count(self, provider: str, event_id: str) -> int:
        ...

    @abstractmethod
    def list_failed(self, provider: str, *, limit: int = 100, max_retries: int = 3) -> list[WebhookEvent]:
        ...

    @abstractmethod
    def list_events(
        self,
        provider: str,
        *,
        limit: int = 100,
        offset: int = 0,
        event_type: str | None = None,
        processed: bool | None = None,
    ) -> list[WebhookEvent]:
        ...

    @abstractmethod
    def summary(self, provider: str, since: datetime | None = None) -> list[dict[str, Any]]:
        ...
