"""create synced_objects and webhook_events tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "synced_objects",
        sa.Column("provider", sa.String(length=32), nullable=False, comment="Upstream provider name"),
        sa.Column(
            "resource_type",
            sa.String(length=64),
            nullable=False,
            comment="Plural resource name, e.g. customers, orders",
        ),
        sa.Column("id", sa.String(length=255), nullable=False, comment="Provider-assigned id (stringified)"),
        sa.Column(
            "parent_id",
            sa.String(length=255),
            nullable=True,
            comment="Id of the parent object for dependent resource types",
        ),
        sa.Column(
            "data",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Remote document as last fetched",
        ),
        sa.Column(
            "deleted_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Set when the provider signals deletion",
        ),
        sa.Column("synced_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("provider", "resource_type", "id"),
    )
    op.create_index(
        "ix_synced_objects_provider_resource",
        "synced_objects",
        ["provider", "resource_type"],
        unique=False,
    )
    op.create_index(
        "ix_synced_objects_parent",
        "synced_objects",
        ["provider", "resource_type", "parent_id"],
        unique=False,
    )
    op.create_index("ix_synced_objects_synced_at", "synced_objects", ["synced_at"], unique=False)

    op.create_table(
        "webhook_events",
        sa.Column("provider", sa.String(length=32), nullable=False, comment="Upstream provider name"),
        sa.Column(
            "id",
            sa.String(length=255),
            nullable=False,
            comment="Stripe event id or Shopify X-Shopify-Webhook-Id",
        ),
        sa.Column("event_type", sa.String(length=128), nullable=False, comment="Stripe event type or Shopify topic"),
        sa.Column("object_type", sa.String(length=64), nullable=True),
        sa.Column("object_id", sa.String(length=255), nullable=True),
        sa.Column("account", sa.String(length=255), nullable=True, comment="Stripe account or Shopify shop domain"),
        sa.Column("api_version", sa.String(length=64), nullable=True),
        sa.Column("livemode", sa.Boolean(), nullable=True),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text()), nullable=False, comment="Raw event body"),
        sa.Column(
            "event_created_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Provider-side event timestamp",
        ),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("processed", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("retry_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("provider", "id"),
    )
    op.create_index("ix_webhook_events_event_type", "webhook_events", ["provider", "event_type"], unique=False)
    op.create_index(
        "ix_webhook_events_object",
        "webhook_events",
        ["provider", "object_type", "object_id"],
        unique=False,
    )
    op.create_index("ix_webhook_events_processed", "webhook_events", ["provider", "processed"], unique=False)
    op.create_index("ix_webhook_events_received_at", "webhook_events", ["received_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_webhook_events_received_at", table_name="webhook_events")
    op.drop_index("ix_webhook_events_processed", table_name="webhook_events")
    op.drop_index("ix_webhook_events_object", table_name="webhook_events")
    op.drop_index("ix_webhook_events_event_type", table_name="webhook_events")
    op.drop_table("webhook_events")

    op.drop_index("ix_synced_objects_synced_at", table_name="synced_objects")
    op.drop_index("ix_synced_objects_parent", table_name="synced_objects")
    op.drop_index("ix_synced_objects_provider_resource", table_name="synced_objects")
    op.drop_table("synced_objects")
