"""
app/services/webhook_handlers/base.py

Handler primitives shared by the provider dispatch tables.

A handler reads ids out of the event payload and either re-pulls the named
object through the orchestrator or applies a local deletion signal. Payload
fields are never written to storage.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from app.domain.webhooks import WebhookEvent
from app.storage.base import RecordStore

if TYPE_CHECKING:
    from app.services.sync_orchestrator import SyncOrchestrator

logger = logging.getLogger(__name__)


class MissingObjectIdError(ValueError):
    """Raised when an event payload lacks the id a handler needs."""


@dataclass(frozen=True)
class HandlerContext:
    provider: str
    orchestrator: SyncOrchestrator
    records: RecordStore


class WebhookHandler(Protocol):
    def __call__(self, event: WebhookEvent, context: HandlerContext) -> None:
        ...


def payload_id(payload: Mapping[str, Any], field: str) -> str | None:
    """
    Read an id field from a payload. Expanded objects are reduced to their ``id``.
    """

    value = payload.get(field)
    if isinstance(value, Mapping):
        value = value.get("id")
    if value is None or value == "":
        return None
    return str(value)


def _object_key(event: WebhookEvent, id_fields: tuple[str, ...]) -> str:
    parts = []
    for field in id_fields:
        value = payload_id(event.payload, field)
        if value is None:
            raise MissingObjectIdError(f"{event.event_type}: payload has no '{field}'.")
        parts.append(value)
    return ":".join(parts)


@dataclass(frozen=True)
class Resync:
    """
    Re-fetch the object named by the payload and upsert it.

    ``id_fields`` are joined with ``:`` for composite keys.
    """

    resource: str
    id_fields: tuple[str, ...] = ("id",)
    parent_field: str | None = None

    def __call__(self, event: WebhookEvent, context: HandlerContext) -> None:
        record_id = _object_key(event, self.id_fields)
        parent_id = payload_id(event.payload, self.parent_field) if self.parent_field else None
        found = context.orchestrator.sync_single_resource(self.resource, record_id, parent_id)
        if not found:
            logger.info(
                "Webhook resync found nothing provider=%s event_type=%s resource=%s id=%s",
                context.provider,
                event.event_type,
                self.resource,
                record_id,
            )


@dataclass(frozen=True)
class ResyncParent:
    """
    Re-list a dependent collection for the parent named by ``parent_field``.
    """

    resource: str
    parent_field: str

    def __call__(self, event: WebhookEvent, context: HandlerContext) -> None:
        parent_id = payload_id(event.payload, self.parent_field)
        if parent_id is None:
            raise MissingObjectIdError(f"{event.event_type}: payload has no '{self.parent_field}'.")
        context.orchestrator.refresh_children(self.resource, parent_id)


@dataclass(frozen=True)
class ResyncRelated:
    """
    Re-fetch objects referenced by the payload, e.g. a checkout session's customer.

    Each entry is ``(resource, payload_field)``; absent references are skipped.
    """

    related: tuple[tuple[str, str], ...]

    def __call__(self, event: WebhookEvent, context: HandlerContext) -> None:
        for resource, field in self.related:
            related_id = payload_id(event.payload, field)
            if related_id is None:
                continue
            context.orchestrator.sync_single_resource(resource, related_id)


@dataclass(frozen=True)
class SoftDelete:
    """Flag the local row as deleted upstream."""

    resource: str
    id_fields: tuple[str, ...] = ("id",)

    def __call__(self, event: WebhookEvent, context: HandlerContext) -> None:
        record_id = _object_key(event, self.id_fields)
        flagged = context.records.soft_delete(context.provider, self.resource, record_id)
        logger.info(
            "Webhook soft delete provider=%s resource=%s id=%s flagged=%s",
            context.provider,
            self.resource,
            record_id,
            flagged,
        )


@dataclass(frozen=True)
class HardDelete:
    """Remove the local row, and rows of ``cascade`` types parented by it."""

    resource: str
    id_fields: tuple[str, ...] = ("id",)
    cascade: tuple[str, ...] = ()

    def __call__(self, event: WebhookEvent, context: HandlerContext) -> None:
        record_id = _object_key(event, self.id_fields)
        removed = context.records.hard_delete(context.provider, self.resource, record_id, self.cascade)
        logger.info(
            "Webhook hard delete provider=%s resource=%s id=%s removed=%s",
            context.provider,
            self.resource,
            record_id,
            removed,
        )


@dataclass(frozen=True)
class Detach:
    """Clear the local parent link of the named object."""

    resource: str
    id_fields: tuple[str, ...] = ("id",)

    def __call__(self, event: WebhookEvent, context: HandlerContext) -> None:
        record_id = _object_key(event, self.id_fields)
        context.records.detach(context.provider, self.resource, record_id)


@dataclass(frozen=True)
class LogOnly:
    """Informational event; nothing is mirrored."""

    message: str
    level: int = logging.INFO

    def __call__(self, event: WebhookEvent, context: HandlerContext) -> None:
        logger.log(
            self.level,
            "%s provider=%s event_id=%s event_type=%s",
            self.message,
            context.provider,
            event.id,
            event.event_type,
        )


@dataclass(frozen=True)
class Chain:
    """Run handlers in order; the first failure stops the chain."""

    steps: tuple[WebhookHandler, ...]

    def __call__(self, event: WebhookEvent, context: HandlerContext) -> None:
        for step in self.steps:
            step(event, context)


def chain(*steps: WebhookHandler) -> Chain:
    return Chain(steps=tuple(steps))


def register(table: dict[str, WebhookHandler], topics: tuple[str, ...], handler: WebhookHandler) -> None:
    for topic in topics:
        table[topic] = handler
