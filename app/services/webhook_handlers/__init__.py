"""
Static webhook dispatch tables per provider.
"""

from app.services.webhook_handlers.base import HandlerContext, MissingObjectIdError, WebhookHandler
from app.services.webhook_handlers.shopify import SHOPIFY_WEBHOOK_HANDLERS
from app.services.webhook_handlers.stripe import STRIPE_WEBHOOK_HANDLERS

__all__ = [
    "HandlerContext",
    "MissingObjectIdError",
    "SHOPIFY_WEBHOOK_HANDLERS",
    "STRIPE_WEBHOOK_HANDLERS",
    "WebhookHandler",
]
