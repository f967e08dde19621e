"""
Repository for webhook event audit rows.

The caller controls commit/rollback; this repository never commits on its own.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Integer, Select, cast, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from db.models.webhook_event import WebhookEventRecord

# Columns refreshed when the same (provider, id) is delivered again. Status
# columns (processed, error, retry_count) are owned by the reconciler.
_REFRESHABLE_COLUMNS = (
    "event_type",
    "object_type",
    "object_id",
    "account",
    "api_version",
    "livemode",
    "data",
    "event_created_at",
)


class WebhookEventRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def insert_event(self, payload: Mapping[str, Any]) -> None:
        """
        Insert a received event, or refresh the stored copy of an earlier
        delivery of the same ``(provider, id)``.
        """
        values = dict(payload)
        values.setdefault("received_at", _now_utc())
        stmt = insert(WebhookEventRecord).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["provider", "id"],
            set_={
                **{column: getattr(stmt.excluded, column) for column in _REFRESHABLE_COLUMNS},
                "updated_at": _now_utc(),
            },
        )
        self._session.execute(stmt)

    def get(self, provider: str, event_id: str) -> WebhookEventRecord | None:
        return self._session.get(WebhookEventRecord, {"provider": provider, "id": event_id})

    def mark_processed(
        self,
        provider: str,
        event_id: str,
        *,
        error: str | None = None,
    ) -> bool:
        now = _now_utc()
        stmt = (
            update(WebhookEventRecord)
            .where(
                WebhookEventRecord.provider == provider,
                WebhookEventRecord.id == event_id,
            )
            .values(processed=True, processed_at=now, error=error, updated_at=now)
        )
        return self._session.execute(stmt).rowcount > 0

    def increment_retry_count(self, provider: str, event_id: str) -> int | None:
        stmt = (
            update(WebhookEventRecord)
            .where(
                WebhookEventRecord.provider == provider,
                WebhookEventRecord.id == event_id,
            )
            .values(
                retry_count=WebhookEventRecord.retry_count + 1,
                updated_at=_now_utc(),
            )
            .returning(WebhookEventRecord.retry_count)
        )
        return self._session.scalar(stmt)

    def list_failed(
        self,
        provider: str,
        *,
        limit: int = 100,
        max_retries: int = 3,
    ) -> list[WebhookEventRecord]:
        """
        Events that never finished or finished with an error, oldest first,
        that have been retried fewer than ``max_retries`` times.
        """
        stmt: Select[tuple[WebhookEventRecord]] = (
            select(WebhookEventRecord)
            .where(
                WebhookEventRecord.provider == provider,
                or_(
                    WebhookEventRecord.processed.is_(False),
                    WebhookEventRecord.error.is_not(None),
                ),
                WebhookEventRecord.retry_count < max_retries,
            )
            .order_by(WebhookEventRecord.received_at.asc())
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def list_events(
        self,
        provider: str,
        *,
        limit: int = 100,
        offset: int = 0,
        event_type: str | None = None,
        processed: bool | None = None,
    ) -> list[WebhookEventRecord]:
        stmt: Select[tuple[WebhookEventRecord]] = select(WebhookEventRecord).where(
            WebhookEventRecord.provider == provider
        )
        if event_type:
            stmt = stmt.where(WebhookEventRecord.event_type == event_type)
        if processed is not None:
            stmt = stmt.where(WebhookEventRecord.processed.is_(processed))

        stmt = (
            stmt.order_by(WebhookEventRecord.received_at.desc())
            .offset(max(0, offset))
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def summary(self, provider: str, *, since: datetime | None = None) -> list[dict[str, Any]]:
        """Per event type: total deliveries, processed, and processed with an error."""
        stmt = select(
            WebhookEventRecord.event_type,
            func.count().label("total"),
            func.sum(cast(WebhookEventRecord.processed, Integer)).label("processed"),
            func.count(WebhookEventRecord.error).label("failed"),
        ).where(WebhookEventRecord.provider == provider)
        if since is not None:
            stmt = stmt.where(WebhookEventRecord.received_at >= since)
        stmt = stmt.group_by(WebhookEventRecord.event_type).order_by(WebhookEventRecord.event_type)

        return [
            {
                "event_type": event_type,
                "total": int(total or 0),
                "processed": int(processed or 0),
                "failed": int(failed or 0),
            }
            for event_type, total, processed, failed in self._session.execute(stmt).all()
        ]


def _now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)
