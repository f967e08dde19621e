"""
app/mappers package marker.
"""

from app.mappers.webhook_event_mapper import decode_json_object, parse_shopify_event, parse_stripe_event

__all__ = [
    "decode_json_object",
    "parse_shopify_event",
    "parse_stripe_event",
]
