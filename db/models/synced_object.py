"""
db/models/synced_object.py

Mirrored remote object. One row per (provider, resource_type, id); the remote
document is stored verbatim in ``data``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, ProviderScopedMixin, TimestampMixin


class SyncedObject(ProviderScopedMixin, Base, TimestampMixin):
    __tablename__ = "synced_objects"

    resource_type: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Plural resource name, e.g. customers, orders",
    )
    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Provider-assigned id (stringified)",
    )
    parent_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Id of the parent object for dependent resource types",
    )
    data: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        comment="Remote document as last fetched",
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Set when the provider signals deletion",
    )
    synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_synced_objects_provider_resource", "provider", "resource_type"),
        Index("ix_synced_objects_parent", "provider", "resource_type", "parent_id"),
        Index("ix_synced_objects_synced_at", "synced_at"),
    )
