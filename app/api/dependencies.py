"""
app/api/dependencies.py

Shared FastAPI dependencies resolving per-provider runtimes.
"""

from __future__ import annotations

from fastapi import HTTPException, Path, status

from app.domain.shopify_resources import SHOPIFY_PROVIDER
from app.domain.stripe_resources import STRIPE_PROVIDER
from app.services.provider_registry import ProviderRuntime, UnknownProviderError, get_provider_runtime


def _resolve_runtime(provider: str) -> ProviderRuntime:
    try:
        return get_provider_runtime(provider)
    except UnknownProviderError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


def get_runtime(provider: str = Path(..., description="stripe or shopify")) -> ProviderRuntime:
    """
    Resolve the provider named in the request path.
    """

    return _resolve_runtime(provider)


def get_stripe_runtime() -> ProviderRuntime:
    return _resolve_runtime(STRIPE_PROVIDER)


def get_shopify_runtime() -> ProviderRuntime:
    return _resolve_runtime(SHOPIFY_PROVIDER)
