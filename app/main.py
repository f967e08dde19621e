from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, HTTPException, status


def _env_enabled(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Runs before any service or database connection is initialised.
    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - No empty-string values are accepted.
    - Every enabled provider needs its API credentials.
    - Webhook secrets are required when ENVIRONMENT is production-like.
    """

    from db.config import is_production_like, load_env_files

    load_env_files()

    errors: list[str] = []
    production = is_production_like()

    # --- Database URL ---------------------------------------------------
    if not any(
        os.getenv(name, "").strip()
        for name in ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
    ):
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL or LOCAL_DATABASE_URL."
        )

    # --- Stripe ---------------------------------------------------------
    if _env_enabled("STRIPE_ENABLED", True):
        if not os.getenv("STRIPE_API_KEY", "").strip():
            errors.append(
                "STRIPE_API_KEY is not set but STRIPE_ENABLED is true. "
                "Set STRIPE_API_KEY or disable the provider with STRIPE_ENABLED=false."
            )
        if production and not os.getenv("STRIPE_WEBHOOK_SECRET", "").strip():
            errors.append("STRIPE_WEBHOOK_SECRET is required in production-like environments.")

    # --- Shopify --------------------------------------------------------
    if _env_enabled("SHOPIFY_ENABLED", False):
        for name in ("SHOPIFY_SHOP_DOMAIN", "SHOPIFY_ACCESS_TOKEN"):
            if not os.getenv(name, "").strip():
                errors.append(f"{name} is not set but SHOPIFY_ENABLED is true.")
        if production and not os.getenv("SHOPIFY_WEBHOOK_SECRET", "").strip():
            errors.append("SHOPIFY_WEBHOOK_SECRET is required in production-like environments.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import session_scope

    try:
        with session_scope() as db:
            db.execute(text("SELECT 1"))
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Compare Base.metadata table names against the live DB schema.

    Every table registered on Base.metadata must exist in the database.
    If any are missing, log a critical error and abort startup so that
    the operator is forced to run migrations before serving traffic.

    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401 registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        log = logging.getLogger(__name__)
        log.critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema, start the scheduler on boot; shut it down on exit."""
    _check_db()
    logging.getLogger(__name__).info("Database connectivity confirmed")
    _check_schema()
    logging.getLogger(__name__).info("Database schema validated")

    from app.config import get_sync_settings

    if not get_sync_settings().scheduler_enabled:
        logging.getLogger(__name__).info("Scheduler disabled by SYNC_SCHEDULER_ENABLED")
        yield
        return

    from app.scheduler.jobs import build_scheduler

    scheduler = build_scheduler()
    scheduler.start()
    logging.getLogger(__name__).info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        logging.getLogger(__name__).info("Scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="SaaS Mirror API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import analytics_router, records_router, sync_router, webhooks_router

    application.include_router(webhooks_router)
    application.include_router(sync_router)
    application.include_router(records_router)
    application.include_router(analytics_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @application.get("/ready")
    def readiness() -> dict[str, str]:
        try:
            _check_db()
        except RuntimeError as exc:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=str(exc),
            ) from exc
        return {"status": "ready"}

    return application


app = create_app()
