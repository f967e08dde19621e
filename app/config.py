"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for provider connectors.
    """

    timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    backoff_max_seconds: float = 30.0


@dataclass(frozen=True)
class StripeSettings:
    """
    Stripe connector and webhook settings.
    """

    enabled: bool = True
    api_key: str | None = None
    api_version: str = "2024-12-18.acacia"
    api_base_url: str = "https://api.stripe.com"
    webhook_secret: str | None = None
    webhook_tolerance_seconds: int = 300
    rate_limit_per_second: float = 25.0
    rate_limit_burst: int = 25
    page_size: int = 100
    sync_interval_seconds: int = 3600


@dataclass(frozen=True)
class ShopifySettings:
    """
    Shopify Admin REST connector and webhook settings.
    """

    enabled: bool = False
    shop_domain: str | None = None
    access_token: str | None = None
    api_version: str = "2024-01"
    webhook_secret: str | None = None
    rate_limit_per_second: float = 2.0
    rate_limit_burst: int = 40
    page_size: int = 250
    sync_interval_seconds: int = 3600


@dataclass(frozen=True)
class SyncSettings:
    """
    Orchestrator and scheduler tuning.
    """

    upsert_batch_size: int = 500
    upsert_concurrency: int = 1
    scheduler_enabled: bool = True
    replay_max_retries: int = 3


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared connector HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 30.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        backoff_max_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MAX_SECONDS", 30.0)),
    )


@lru_cache(maxsize=1)
def get_stripe_settings() -> StripeSettings:
    """
    Return Stripe settings from environment variables.
    """

    return StripeSettings(
        enabled=_get_bool_env("STRIPE_ENABLED", True),
        api_key=_get_optional_str_env("STRIPE_API_KEY"),
        api_version=_get_str_env("STRIPE_API_VERSION", "2024-12-18.acacia"),
        api_base_url=_get_str_env("STRIPE_API_BASE_URL", "https://api.stripe.com").rstrip("/"),
        webhook_secret=_get_optional_str_env("STRIPE_WEBHOOK_SECRET"),
        webhook_tolerance_seconds=max(0, _get_int_env("STRIPE_WEBHOOK_TOLERANCE_SECONDS", 300)),
        rate_limit_per_second=max(0.1, _get_float_env("STRIPE_RATE_LIMIT_PER_SECOND", 25.0)),
        rate_limit_burst=max(1, _get_int_env("STRIPE_RATE_LIMIT_BURST", 25)),
        page_size=min(100, max(1, _get_int_env("STRIPE_PAGE_SIZE", 100))),
        sync_interval_seconds=max(60, _get_int_env("STRIPE_SYNC_INTERVAL_SECONDS", 3600)),
    )


@lru_cache(maxsize=1)
def get_shopify_settings() -> ShopifySettings:
    """
    Return Shopify settings from environment variables.
    """

    return ShopifySettings(
        enabled=_get_bool_env("SHOPIFY_ENABLED", False),
        shop_domain=_get_optional_str_env("SHOPIFY_SHOP_DOMAIN"),
        access_token=_get_optional_str_env("SHOPIFY_ACCESS_TOKEN"),
        api_version=_get_str_env("SHOPIFY_API_VERSION", "2024-01"),
        webhook_secret=_get_optional_str_env("SHOPIFY_WEBHOOK_SECRET"),
        rate_limit_per_second=max(0.1, _get_float_env("SHOPIFY_RATE_LIMIT_PER_SECOND", 2.0)),
        rate_limit_burst=max(1, _get_int_env("SHOPIFY_RATE_LIMIT_BURST", 40)),
        page_size=min(250, max(1, _get_int_env("SHOPIFY_PAGE_SIZE", 250))),
        sync_interval_seconds=max(60, _get_int_env("SHOPIFY_SYNC_INTERVAL_SECONDS", 3600)),
    )


@lru_cache(maxsize=1)
def get_sync_settings() -> SyncSettings:
    """
    Return orchestrator settings from environment variables.
    """

    return SyncSettings(
        upsert_batch_size=max(1, _get_int_env("SYNC_UPSERT_BATCH_SIZE", 500)),
        upsert_concurrency=max(1, _get_int_env("SYNC_UPSERT_CONCURRENCY", 1)),
        scheduler_enabled=_get_bool_env("SYNC_SCHEDULER_ENABLED", True),
        replay_max_retries=max(1, _get_int_env("WEBHOOK_REPLAY_MAX_RETRIES", 3)),
    )
