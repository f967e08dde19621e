"""
app/services/webhook_reconciler.py

Persists each delivered webhook event and dispatches it to its handler.

Every event is stored before any handler runs. Redelivery of the same event
id updates the stored row and re-runs the handler; handlers re-pull remote
state, so repeated deliveries converge on the same result.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from app.domain.webhooks import ReplaySummary, WebhookEvent
from app.services.webhook_handlers.base import HandlerContext, WebhookHandler
from app.storage.base import EventStore

logger = logging.getLogger(__name__)


class WebhookReconciler:
    """
    Records and dispatches webhook events for one provider.
    """

    def __init__(
        self,
        *,
        handlers: Mapping[str, WebhookHandler],
        events: EventStore,
        context: HandlerContext,
    ) -> None:
        self._handlers = dict(handlers)
        self._events = events
        self._context = context

    @property
    def provider(self) -> str:
        return self._context.provider

    def handle(self, event: WebhookEvent) -> None:
        """
        Persist ``event`` then run its handler.

        The event is marked processed either way; on failure the error text
        is stored and the exception re-raised so the boundary can report it.
        """

        self._events.record(event)
        logger.info(
            "Webhook received provider=%s event_id=%s event_type=%s object=%s:%s",
            event.provider,
            event.id,
            event.event_type,
            event.object_type,
            event.object_id,
        )
        self._dispatch(event)

    def replay_failed(self, *, limit: int = 100, max_retries: int = 3) -> ReplaySummary:
        """
        Re-dispatch stored events that failed or never completed.

        Each attempt increments the event's retry count first, so an event is
        replayed at most ``max_retries`` times.
        """

        pending = self._events.list_failed(self.provider, limit=limit, max_retries=max_retries)
        succeeded = 0
        errors: dict[str, str] = {}

        for event in pending:
            retry_count = self._events.increment_retry_count(self.provider, event.id)
            logger.info(
                "Webhook replay provider=%s event_id=%s event_type=%s attempt=%s",
                self.provider,
                event.id,
                event.event_type,
                retry_count,
            )
            try:
                self._dispatch(event)
            except Exception as exc:
                errors[event.id] = str(exc)
                continue
            succeeded += 1

        summary = ReplaySummary(
            provider=self.provider,
            attempted=len(pending),
            succeeded=succeeded,
            failed=len(errors),
            errors=errors,
        )
        logger.info(
            "Webhook replay complete provider=%s attempted=%s succeeded=%s failed=%s",
            self.provider,
            summary.attempted,
            summary.succeeded,
            summary.failed,
        )
        return summary

    def _dispatch(self, event: WebhookEvent) -> None:
        handler = self._handlers.get(event.event_type)
        if handler is None:
            logger.debug(
                "Webhook ignored provider=%s event_id=%s event_type=%s",
                event.provider,
                event.id,
                event.event_type,
            )
            self._events.mark_processed(event.provider, event.id)
            return

        try:
            handler(event, self._context)
        except Exception as exc:
            logger.exception(
                "Webhook handler failed provider=%s event_id=%s event_type=%s error=%s",
                event.provider,
                event.id,
                event.event_type,
                exc,
            )
            self._events.mark_processed(event.provider, event.id, error=str(exc) or type(exc).__name__)
            raise

        self._events.mark_processed(event.provider, event.id)
