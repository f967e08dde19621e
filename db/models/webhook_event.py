"""
db/models/webhook_event.py

Audit log of received webhook deliveries, keyed by the provider event id.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, ProviderScopedMixin, TimestampMixin


class WebhookEventRecord(ProviderScopedMixin, Base, TimestampMixin):
    __tablename__ = "webhook_events"

    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Stripe event id or Shopify X-Shopify-Webhook-Id",
    )
    event_type: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        comment="Stripe event type or Shopify topic",
    )
    object_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    object_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Stripe account or Shopify shop domain",
    )
    api_version: Mapped[str | None] = mapped_column(String(64), nullable=True)
    livemode: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    data: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        comment="Raw event body",
    )
    event_created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Provider-side event timestamp",
    )
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    processed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    __table_args__ = (
        Index("ix_webhook_events_event_type", "provider", "event_type"),
        Index("ix_webhook_events_object", "provider", "object_type", "object_id"),
        Index("ix_webhook_events_processed", "provider", "processed"),
        Index("ix_webhook_events_received_at", "received_at"),
    )
