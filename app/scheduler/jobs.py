"""
app/scheduler/jobs.py

APScheduler-based periodic full sync.

One interval job per enabled provider runs a core-set sync every
``<PROVIDER>_SYNC_INTERVAL_SECONDS``. A run that finds another sync in flight
(manual trigger or a slow previous run) is skipped, not queued.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import get_shopify_settings, get_stripe_settings
from app.domain.shopify_resources import SHOPIFY_PROVIDER
from app.domain.stripe_resources import STRIPE_PROVIDER
from app.domain.sync import SyncAlreadyRunningError
from app.services.provider_registry import enabled_providers, get_provider_runtime

logger = logging.getLogger(__name__)


def _interval_seconds(provider: str) -> int:
    if provider == STRIPE_PROVIDER:
        return get_stripe_settings().sync_interval_seconds
    if provider == SHOPIFY_PROVIDER:
        return get_shopify_settings().sync_interval_seconds
    raise ValueError(f"No sync interval configured for provider '{provider}'.")


# ---------------------------------------------------------------------------
# Job: periodic provider sync
# ---------------------------------------------------------------------------


def run_provider_sync(provider: str) -> None:
    """
    Run a core-set sync for ``provider``. Never raises; failures are logged.
    """
    logger.info("Scheduler: %s_sync starting", provider)
    try:
        run = get_provider_runtime(provider).orchestrator.sync()
    except SyncAlreadyRunningError:
        logger.info("Scheduler: %s_sync skipped, a sync is already in progress", provider)
        return
    except Exception as exc:  # noqa: BLE001
        logger.exception("Scheduler: %s_sync failed: %s", provider, exc)
        return

    if run.success:
        logger.info(
            "Scheduler: %s_sync complete synced=%s duration_ms=%s",
            provider,
            sum(run.stats.values()),
            run.duration_ms,
        )
    else:
        logger.warning(
            "Scheduler: %s_sync finished with errors=%s: %s",
            provider,
            len(run.errors),
            "; ".join(run.errors),
        )


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register one sync job per enabled provider.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    scheduler = BackgroundScheduler(timezone="UTC")

    for provider in enabled_providers():
        scheduler.add_job(
            run_provider_sync,
            trigger="interval",
            seconds=_interval_seconds(provider),
            args=[provider],
            id=f"{provider}_sync",
            name=f"Periodic {provider} sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )

    return scheduler
