"""
app/validators package marker.
"""

from app.validators.webhook_signature import (
    WebhookPayloadError,
    WebhookSignatureError,
    shopify_hmac,
    verify_shopify_hmac,
    verify_stripe_signature,
)

__all__ = [
    "WebhookPayloadError",
    "WebhookSignatureError",
    "shopify_hmac",
    "verify_shopify_hmac",
    "verify_stripe_signature",
]
