"""
Schemas for read-only access to mirrored records.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class RecordResponse(BaseModel):
    provider: str
    resource: str
    id: str
    parent_id: str | None = None
    synced_at: datetime | None = None
    deleted_at: datetime | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class RecordListResponse(BaseModel):
    provider: str
    resource: str
    limit: int
    offset: int
    records: list[RecordResponse] = Field(default_factory=list)
