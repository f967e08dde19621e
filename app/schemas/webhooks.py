"""
Schemas for webhook intake and event audit endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class WebhookAckResponse(BaseModel):
    received: bool = True


class WebhookEventResponse(BaseModel):
    provider: str
    id: str
    event_type: str
    object_type: str | None = None
    object_id: str | None = None
    account: str | None = None
    livemode: bool | None = None
    created_at: datetime | None = None
    received_at: datetime
    processed: bool
    processed_at: datetime | None = None
    error: str | None = None
    retry_count: int = 0
    data: dict[str, Any] | None = None


class WebhookEventListResponse(BaseModel):
    events: list[WebhookEventResponse] = Field(default_factory=list)


class WebhookEventSummaryItem(BaseModel):
    event_type: str
    total: int
    processed: int
    failed: int


class WebhookReplayRequest(BaseModel):
    limit: int = Field(default=100, ge=1, le=1000)
    max_retries: int | None = Field(default=None, ge=0)


class WebhookReplayResponse(BaseModel):
    provider: str
    attempted: int
    succeeded: int
    failed: int
    errors: dict[str, str] = Field(default_factory=dict)
