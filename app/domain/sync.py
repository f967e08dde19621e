"""
app/domain/sync.py

Domain models for sync orchestration runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

SYNC_ALREADY_RUNNING_MESSAGE = "Sync already in progress"


class SyncAlreadyRunningError(RuntimeError):
    """Raised when a sync is requested while another one is in flight."""

    def __init__(self, provider: str) -> None:
        super().__init__(SYNC_ALREADY_RUNNING_MESSAGE)
        self.provider = provider


@dataclass(frozen=True)
class ExternalRecord:
    """
    Snapshot of one remote object at fetch time.
    """

    resource: str
    id: str
    data: dict[str, Any]
    parent_id: str | None = None

    def to_row(self) -> dict[str, Any]:
        return {
            "resource_type": self.resource,
            "id": self.id,
            "parent_id": self.parent_id,
            "data": self.data,
        }


@dataclass
class SyncRun:
    """
    Result of one orchestrator invocation.

    ``stats`` holds one entry per requested resource type (0 when nothing was
    synced for it). ``errors`` holds type-qualified messages.
    """

    provider: str
    requested: list[str]
    stats: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return not self.errors

    def finish(self) -> None:
        self.finished_at = datetime.now(timezone.utc)
        self.duration_ms = int((self.finished_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "requested": list(self.requested),
            "stats": dict(self.stats),
            "errors": list(self.errors),
            "success": self.success,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "duration_ms": self.duration_ms,
        }


@dataclass(frozen=True)
class SyncStatus:
    """
    Read-only snapshot of what is mirrored for one provider.
    """

    provider: str
    counts: dict[str, int]
    last_synced_at: datetime | None
    syncing: bool


@dataclass(frozen=True)
class StoredRecord:
    """
    A mirrored object as held in local storage.
    """

    provider: str
    resource: str
    id: str
    data: dict[str, Any]
    parent_id: str | None = None
    synced_at: datetime | None = None
    deleted_at: datetime | None = None
