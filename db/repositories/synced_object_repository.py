"""
db/repositories/synced_object_repository.py

Persistence layer for mirrored remote objects.

All methods are transaction-safe. The caller controls commit/rollback;
this repository never commits on its own.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from db.models.synced_object import SyncedObject

_DEFAULT_BATCH_SIZE = 500
_PRIMARY_KEY = ("provider", "resource_type", "id")


class SyncedObjectRepository:
    """
    Repository for writing and querying SyncedObject rows.

    Upsert semantics: writing an object whose ``(provider, resource_type, id)``
    already exists replaces ``data`` and ``parent_id`` in place and clears
    ``deleted_at``. There is no version check; the last writer wins.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def upsert_many(
        self,
        provider: str,
        rows: Sequence[Mapping[str, Any]],
        *,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Upsert mirrored objects in batches.

        Each element of ``rows`` must contain the keys ``resource_type``,
        ``id`` and ``data``; ``parent_id`` is optional.

        Rows sharing a primary key within the same call are deduplicated in
        Python before hitting the database; the last occurrence wins.

        Parameters
        ----------
        provider:
            Upstream provider name.
        rows:
            Sequence of payload dicts.
        batch_size:
            Maximum rows per INSERT statement.

        Returns
        -------
        int
            Total number of rows written (inserted + updated).
        """
        if not rows:
            return 0

        deduped = _deduplicate(rows)
        size = max(1, batch_size)
        now = _now_utc()
        written = 0

        for start in range(0, len(deduped), size):
            chunk = deduped[start : start + size]
            payloads = [
                {
                    "provider": provider,
                    "resource_type": r["resource_type"],
                    "id": str(r["id"]),
                    "parent_id": r.get("parent_id"),
                    "data": r["data"],
                    "deleted_at": None,
                    "synced_at": now,
                }
                for r in chunk
            ]
            stmt = insert(SyncedObject).values(payloads)
            stmt = stmt.on_conflict_do_update(
                index_elements=list(_PRIMARY_KEY),
                set_={
                    "parent_id": stmt.excluded.parent_id,
                    "data": stmt.excluded.data,
                    "deleted_at": None,
                    "synced_at": stmt.excluded.synced_at,
                    "updated_at": now,
                },
            ).returning(SyncedObject.id)
            written += len(self._session.scalars(stmt).all())

        return written

    def soft_delete(self, provider: str, resource_type: str, record_id: str) -> bool:
        """
        Flag a row as deleted upstream. Returns ``False`` when no live row matched.
        """
        now = _now_utc()
        stmt = (
            update(SyncedObject)
            .where(
                SyncedObject.provider == provider,
                SyncedObject.resource_type == resource_type,
                SyncedObject.id == str(record_id),
                SyncedObject.deleted_at.is_(None),
            )
            .values(deleted_at=now, updated_at=now)
        )
        return self._session.execute(stmt).rowcount > 0

    def hard_delete(
        self,
        provider: str,
        resource_type: str,
        record_id: str,
        *,
        cascade: Sequence[str] = (),
    ) -> int:
        """
        Remove a row and, for each resource type in ``cascade``, every row whose
        ``parent_id`` points at it.

        Returns
        -------
        int
            Number of rows removed, children included.
        """
        record_id = str(record_id)
        removed = 0
        if cascade:
            child_stmt = delete(SyncedObject).where(
                SyncedObject.provider == provider,
                SyncedObject.resource_type.in_(list(cascade)),
                SyncedObject.parent_id == record_id,
            )
            removed += self._session.execute(child_stmt).rowcount

        stmt = delete(SyncedObject).where(
            SyncedObject.provider == provider,
            SyncedObject.resource_type == resource_type,
            SyncedObject.id == record_id,
        )
        removed += self._session.execute(stmt).rowcount
        return removed

    def detach(self, provider: str, resource_type: str, record_id: str) -> bool:
        """Clear the parent link of a row without touching its document."""
        stmt = (
            update(SyncedObject)
            .where(
                SyncedObject.provider == provider,
                SyncedObject.resource_type == resource_type,
                SyncedObject.id == str(record_id),
            )
            .values(parent_id=None, updated_at=_now_utc())
        )
        return self._session.execute(stmt).rowcount > 0

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get(self, provider: str, resource_type: str, record_id: str) -> SyncedObject | None:
        return self._session.get(
            SyncedObject,
            {"provider": provider, "resource_type": resource_type, "id": str(record_id)},
        )

    def count(
        self,
        provider: str,
        resource_type: str,
        *,
        include_deleted: bool = False,
    ) -> int:
        stmt = select(func.count()).select_from(SyncedObject).where(
            SyncedObject.provider == provider,
            SyncedObject.resource_type == resource_type,
        )
        if not include_deleted:
            stmt = stmt.where(SyncedObject.deleted_at.is_(None))
        return int(self._session.scalar(stmt) or 0)

    def count_by_type(self, provider: str) -> dict[str, int]:
        """Live row counts per resource type for one provider."""
        stmt = (
            select(SyncedObject.resource_type, func.count())
            .where(
                SyncedObject.provider == provider,
                SyncedObject.deleted_at.is_(None),
            )
            .group_by(SyncedObject.resource_type)
        )
        return {resource_type: int(total) for resource_type, total in self._session.execute(stmt).all()}

    def list_parent_ids(
        self,
        provider: str,
        resource_type: str,
        *,
        filters: Mapping[str, str] | None = None,
    ) -> list[str]:
        """
        Return ids of live rows of ``resource_type``, optionally filtered on
        top-level document fields (``data ->> field = value``).
        """
        stmt = select(SyncedObject.id).where(
            SyncedObject.provider == provider,
            SyncedObject.resource_type == resource_type,
            SyncedObject.deleted_at.is_(None),
        )
        for field, value in (filters or {}).items():
            stmt = stmt.where(SyncedObject.data[field].astext == str(value))
        stmt = stmt.order_by(SyncedObject.id)
        return list(self._session.scalars(stmt).all())

    def list_records(
        self,
        provider: str,
        resource_type: str,
        *,
        limit: int = 100,
        offset: int = 0,
        parent_id: str | None = None,
        include_deleted: bool = False,
    ) -> list[SyncedObject]:
        stmt: Select[tuple[SyncedObject]] = select(SyncedObject).where(
            SyncedObject.provider == provider,
            SyncedObject.resource_type == resource_type,
        )
        if parent_id is not None:
            stmt = stmt.where(SyncedObject.parent_id == str(parent_id))
        if not include_deleted:
            stmt = stmt.where(SyncedObject.deleted_at.is_(None))

        stmt = (
            stmt.order_by(SyncedObject.synced_at.desc(), SyncedObject.id)
            .offset(max(0, offset))
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def last_synced_at(self, provider: str, resource_type: str | None = None) -> datetime | None:
        stmt = select(func.max(SyncedObject.synced_at)).where(SyncedObject.provider == provider)
        if resource_type is not None:
            stmt = stmt.where(SyncedObject.resource_type == resource_type)
        return self._session.scalar(stmt)


# ---------------------------------------------------------------------------
# Module-level helpers (no business logic)
# ---------------------------------------------------------------------------


def _deduplicate(rows: Sequence[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    """Last-write-wins deduplication keyed on (resource_type, id)."""
    seen: dict[tuple[str, str], Mapping[str, Any]] = {}
    for row in rows:
        key = (row["resource_type"], str(row["id"]))
        seen[key] = row
    return list(seen.values())


def _now_utc() -> datetime:
    return datetime.now(tz=timezone.utc)
