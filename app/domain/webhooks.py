"""
app/domain/webhooks.py

Provider-neutral webhook event model.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def extract_event_object(provider: str, data: dict[str, Any]) -> dict[str, Any]:
    """
    Return the object a webhook body refers to.

    Stripe wraps it in ``data.object``; Shopify posts the object itself.
    """
    if provider == "stripe":
        wrapped = data.get("data")
        if isinstance(wrapped, dict) and isinstance(wrapped.get("object"), dict):
            return wrapped["object"]
        return {}
    return data


@dataclass
class WebhookEvent:
    """
    One webhook delivery as parsed from the provider request.

    ``id`` is the idempotence boundary: the same ``(provider, id)`` is stored
    once and updated in place on redelivery.
    """

    provider: str
    id: str
    event_type: str
    data: dict[str, Any]
    object_type: str | None = None
    object_id: str | None = None
    account: str | None = None
    api_version: str | None = None
    livemode: bool | None = None
    created_at: datetime | None = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    processed: bool = False
    processed_at: datetime | None = None
    error: str | None = None
    retry_count: int = 0

    @property
    def payload(self) -> dict[str, Any]:
        return extract_event_object(self.provider, self.data)


@dataclass(frozen=True)
class ReplaySummary:
    """
    Outcome of re-dispatching stored failed events.
    """

    provider: str
    attempted: int
    succeeded: int
    failed: int
    errors: dict[str, str] = field(default_factory=dict)
