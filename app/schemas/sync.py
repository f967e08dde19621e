"""
Schemas for sync trigger and status endpoints.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SyncRequest(BaseModel):
    resources: list[str] | None = Field(
        default=None,
        description="Resource types to sync; omit for the provider's core set.",
    )


class SyncRunResponse(BaseModel):
    provider: str
    requested: list[str] = Field(default_factory=list)
    stats: dict[str, int] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    success: bool
    started_at: datetime
    finished_at: datetime | None = None
    duration_ms: int


class SyncStatusResponse(BaseModel):
    provider: str
    counts: dict[str, int] = Field(default_factory=dict)
    total: int
    last_synced_at: datetime | None = None
    syncing: bool
