"""
app/api/routers/webhooks.py

Webhook intake and event audit HTTP endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool

from app.api.dependencies import get_runtime, get_shopify_runtime, get_stripe_runtime
from app.config import ShopifySettings, StripeSettings, get_shopify_settings, get_stripe_settings, get_sync_settings
from app.domain.webhooks import WebhookEvent
from app.mappers.webhook_event_mapper import parse_shopify_event, parse_stripe_event
from app.schemas.webhooks import (
    WebhookAckResponse,
    WebhookEventListResponse,
    WebhookEventResponse,
    WebhookEventSummaryItem,
    WebhookReplayRequest,
    WebhookReplayResponse,
)
from app.services.provider_registry import ProviderRuntime
from app.validators.webhook_signature import (
    WebhookPayloadError,
    WebhookSignatureError,
    verify_shopify_hmac,
    verify_stripe_signature,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


async def _dispatch(runtime: ProviderRuntime, event: WebhookEvent) -> WebhookAckResponse:
    try:
        await run_in_threadpool(runtime.reconciler.handle, event)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        ) from exc
    return WebhookAckResponse(received=True)


@router.post("/webhooks/stripe", response_model=WebhookAckResponse)
async def receive_stripe_webhook(
    request: Request,
    runtime: ProviderRuntime = Depends(get_stripe_runtime),
    settings: StripeSettings = Depends(get_stripe_settings),
) -> WebhookAckResponse:
    """
    Verify, record and dispatch one Stripe event.

    400 for a missing signature or malformed body, 401 for a signature that
    does not match, 500 when the handler fails (Stripe will redeliver).
    """

    body = await request.body()
    try:
        if settings.webhook_secret:
            verify_stripe_signature(
                body,
                request.headers.get("Stripe-Signature"),
                settings.webhook_secret,
                tolerance_seconds=settings.webhook_tolerance_seconds,
            )
        else:
            logger.warning("Stripe webhook accepted without verification; STRIPE_WEBHOOK_SECRET is not set.")
        event = parse_stripe_event(body)
    except WebhookSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except WebhookPayloadError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return await _dispatch(runtime, event)


@router.post("/webhooks/shopify", response_model=WebhookAckResponse)
async def receive_shopify_webhook(
    request: Request,
    runtime: ProviderRuntime = Depends(get_shopify_runtime),
    settings: ShopifySettings = Depends(get_shopify_settings),
) -> WebhookAckResponse:
    """
    Verify, record and dispatch one Shopify delivery.
    """

    body = await request.body()
    headers = request.headers
    try:
        if settings.webhook_secret:
            verify_shopify_hmac(body, headers.get("X-Shopify-Hmac-Sha256"), settings.webhook_secret)
        else:
            logger.warning("Shopify webhook accepted without verification; SHOPIFY_WEBHOOK_SECRET is not set.")
        event = parse_shopify_event(
            body,
            webhook_id=headers.get("X-Shopify-Webhook-Id"),
            topic=headers.get("X-Shopify-Topic"),
            shop_domain=headers.get("X-Shopify-Shop-Domain"),
            api_version=headers.get("X-Shopify-API-Version"),
            triggered_at=headers.get("X-Shopify-Triggered-At"),
        )
    except WebhookSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except WebhookPayloadError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return await _dispatch(runtime, event)


@router.get("/webhooks/{provider}/events", response_model=WebhookEventListResponse)
def list_webhook_events(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    event_type: str | None = Query(default=None),
    processed: bool | None = Query(default=None),
    include_data: bool = Query(default=False),
    runtime: ProviderRuntime = Depends(get_runtime),
) -> WebhookEventListResponse:
    events = runtime.events.list_events(
        runtime.provider,
        limit=limit,
        offset=offset,
        event_type=event_type,
        processed=processed,
    )
    return WebhookEventListResponse(
        events=[
            WebhookEventResponse(
                provider=event.provider,
                id=event.id,
                event_type=event.event_type,
                object_type=event.object_type,
                object_id=event.object_id,
                account=event.account,
                livemode=event.livemode,
                created_at=event.created_at,
                received_at=event.received_at,
                processed=event.processed,
                processed_at=event.processed_at,
                error=event.error,
                retry_count=event.retry_count,
                data=event.data if include_data else None,
            )
            for event in events
        ]
    )


@router.get("/webhooks/{provider}/summary", response_model=list[WebhookEventSummaryItem])
def summarize_webhook_events(runtime: ProviderRuntime = Depends(get_runtime)) -> list[WebhookEventSummaryItem]:
    return [WebhookEventSummaryItem(**row) for row in runtime.events.summary(runtime.provider)]


@router.post("/webhooks/{provider}/replay", response_model=WebhookReplayResponse)
def replay_webhook_events(
    payload: WebhookReplayRequest | None = Body(default=None),
    runtime: ProviderRuntime = Depends(get_runtime),
) -> WebhookReplayResponse:
    """
    Re-dispatch stored events that failed, up to the retry limit.
    """

    request = payload or WebhookReplayRequest()
    summary = runtime.reconciler.replay_failed(
        limit=request.limit,
        max_retries=(
            request.max_retries if request.max_retries is not None else get_sync_settings().replay_max_retries
        ),
    )
    return WebhookReplayResponse(
        provider=summary.provider,
        attempted=summary.attempted,
        succeeded=summary.succeeded,
        failed=summary.failed,
        errors=summary.errors,
    )
