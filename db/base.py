"""
db/base.py

Declarative base and shared mixins for the mirror tables.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Project-wide declarative base.
    All models must inherit from this class.
    """

    type_annotation_map: dict[type, Any] = {}


class ProviderScopedMixin:
    """
    Mixin for rows that belong to one upstream provider (``stripe``, ``shopify``).
    The provider is always the leading primary-key column.
    """

    provider: Mapped[str] = mapped_column(
        String(32),
        primary_key=True,
        sort_order=-1,
        comment="Upstream provider name",
    )


class TimestampMixin:
    """
    Adds local bookkeeping timestamps.
    updated_at is refreshed on every ORM UPDATE via onupdate; bulk upserts set it explicitly.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )
