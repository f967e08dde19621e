"""
app/mappers/webhook_event_mapper.py

Turns raw provider webhook deliveries into WebhookEvent values.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Mapping

from app.domain.shopify_resources import SHOPIFY_PROVIDER
from app.domain.stripe_resources import STRIPE_PROVIDER
from app.domain.webhooks import WebhookEvent
from app.validators.webhook_signature import WebhookPayloadError


def decode_json_object(body: bytes | str | Mapping[str, Any]) -> dict[str, Any]:
    """
    Decode a request body that must be a JSON object.
    """

    if isinstance(body, Mapping):
        return dict(body)
    try:
        decoded = json.loads(body)
    except (TypeError, ValueError) as exc:
        raise WebhookPayloadError("Webhook body is not valid JSON.") from exc
    if not isinstance(decoded, dict):
        raise WebhookPayloadError("Webhook body must be a JSON object.")
    return decoded


def parse_stripe_event(body: bytes | str | Mapping[str, Any]) -> WebhookEvent:
    """
    Build a WebhookEvent from a Stripe event body (``{"id": "evt_...", "type": ..., "data": {"object": ...}}``).
    """

    payload = decode_json_object(body)
    event_id = payload.get("id")
    event_type = payload.get("type")
    if not isinstance(event_id, str) or not event_id:
        raise WebhookPayloadError("Stripe event has no id.")
    if not isinstance(event_type, str) or not event_type:
        raise WebhookPayloadError("Stripe event has no type.")

    data = payload.get("data")
    obj = data.get("object") if isinstance(data, Mapping) else None
    if not isinstance(obj, Mapping):
        raise WebhookPayloadError("Stripe event has no data.object.")

    return WebhookEvent(
        provider=STRIPE_PROVIDER,
        id=event_id,
        event_type=event_type,
        data=payload,
        object_type=_optional_str(obj.get("object")),
        object_id=_optional_str(obj.get("id")),
        account=_optional_str(payload.get("account")),
        api_version=_optional_str(payload.get("api_version")),
        livemode=payload.get("livemode") if isinstance(payload.get("livemode"), bool) else None,
        created_at=_parse_epoch(payload.get("created")),
    )


def parse_shopify_event(
    body: bytes | str | Mapping[str, Any],
    *,
    webhook_id: str | None,
    topic: str | None,
    shop_domain: str | None = None,
    api_version: str | None = None,
    triggered_at: str | None = None,
) -> WebhookEvent:
    """
    Build a WebhookEvent from a Shopify delivery.

    Shopify identifies the delivery by the ``X-Shopify-Webhook-Id`` header and
    posts the affected object itself as the body.
    """

    if not webhook_id:
        raise WebhookPayloadError("Missing X-Shopify-Webhook-Id header.")
    if not topic:
        raise WebhookPayloadError("Missing X-Shopify-Topic header.")

    payload = decode_json_object(body)
    object_type = topic.partition("/")[0]
    if "inventory_item_id" in payload and "location_id" in payload and object_type == "inventory_levels":
        object_id: str | None = f"{payload['inventory_item_id']}:{payload['location_id']}"
    else:
        object_id = _optional_str(payload.get("id")) or _optional_str(payload.get("token"))

    return WebhookEvent(
        provider=SHOPIFY_PROVIDER,
        id=webhook_id,
        event_type=topic,
        data=payload,
        object_type=object_type,
        object_id=object_id,
        account=shop_domain,
        api_version=api_version,
        created_at=_parse_iso_datetime(triggered_at),
    )


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _parse_iso_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_epoch(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise WebhookPayloadError("Stripe event created must be a Unix timestamp.")
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise WebhookPayloadError("Stripe event created is out of range.") from exc
