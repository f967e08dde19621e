"""
app/validators/webhook_signature.py

Webhook authenticity checks for Stripe and Shopify deliveries.

Stripe signatures are checked by the Stripe SDK; Shopify sends a plain
base64 HMAC-SHA256 of the body.
"""

from __future__ import annotations

import base64
import hashlib
import hmac

import stripe


class WebhookPayloadError(ValueError):
    """
    Raised when a delivery is missing required headers or is not a valid event body.
    """


class WebhookSignatureError(ValueError):
    """
    Raised when a delivery's signature does not match the shared secret.
    """


def verify_stripe_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    *,
    tolerance_seconds: int = 300,
) -> None:
    """
    Verify a ``Stripe-Signature`` header (``t=<ts>,v1=<hex>[,v1=<hex>...]``).

    Raises WebhookPayloadError when the header is absent or the body is not
    UTF-8, and WebhookSignatureError when the SDK rejects the signature
    (malformed header, no matching ``v1`` entry, or a timestamp older than
    ``tolerance_seconds``). A tolerance of 0 disables the age check.
    """

    if not header:
        raise WebhookPayloadError("Missing Stripe-Signature header.")
    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise WebhookPayloadError("Webhook body is not valid UTF-8.") from exc

    try:
        stripe.WebhookSignature.verify_header(body, header, secret, tolerance_seconds or None)
    except stripe.SignatureVerificationError as exc:
        raise WebhookSignatureError(exc.user_message or "Invalid Stripe-Signature header.") from exc


def shopify_hmac(payload: bytes, secret: str) -> str:
    """
    Compute the base64 HMAC-SHA256 Shopify sends in ``X-Shopify-Hmac-Sha256``.
    """

    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_shopify_hmac(payload: bytes, header: str | None, secret: str) -> None:
    if not header:
        raise WebhookPayloadError("Missing X-Shopify-Hmac-Sha256 header.")
    if not hmac.compare_digest(shopify_hmac(payload, secret), header.strip()):
        raise WebhookSignatureError("Shopify HMAC does not match the payload.")
