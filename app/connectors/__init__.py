"""
app/connectors package marker.
"""

from app.connectors.base import (
    BaseConnector,
    ConnectorError,
    ConnectorRequestError,
    EndpointSpec,
    ResourceNotFoundError,
)
from app.connectors.rate_limiter import TokenBucketRateLimiter
from app.connectors.shopify_connector import ShopifyConnector
from app.connectors.stripe_connector import StripeConnector

__all__ = [
    "BaseConnector",
    "ConnectorError",
    "ConnectorRequestError",
    "EndpointSpec",
    "ResourceNotFoundError",
    "ShopifyConnector",
    "StripeConnector",
    "TokenBucketRateLimiter",
]
