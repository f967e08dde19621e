"""
Alembic environment for the mirror tables (synced_objects, webhook_events).

The migration URL is taken from the first of:
``-x db_url=...``, ALEMBIC_DATABASE_URL, ``sqlalchemy.url`` in alembic.ini,
then the application's own resolution (db.config.resolve_database_url).
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from db.base import Base
from db.config import load_env_files, normalize_postgres_url, resolve_database_url
from db.models import SyncedObject, WebhookEventRecord  # noqa: F401 registers the mirror tables on Base.metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _migration_url() -> str:
    load_env_files()

    candidates = (
        context.get_x_argument(as_dictionary=True).get("db_url"),
        os.getenv("ALEMBIC_DATABASE_URL"),
        (config.get_main_option("sqlalchemy.url") or "").strip(),
    )
    explicit = next((candidate for candidate in candidates if candidate), None)
    url = normalize_postgres_url(explicit) if explicit else resolve_database_url()

    if not url.startswith("postgresql"):
        raise RuntimeError("Mirror migrations need a PostgreSQL URL (JSONB columns, ON CONFLICT upserts).")
    return url


def _include_object(obj, name, type_, reflected, compare_to) -> bool:
    # Autogenerate only diffs tables this project owns.
    if type_ == "table":
        return name in target_metadata.tables
    return True


def _configure(**options) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_object=_include_object,
        compare_type=True,
        compare_server_default=True,
        **options,
    )


def run_migrations_offline() -> None:
    _configure(url=_migration_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = _migration_url()
    engine = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool, future=True)

    with engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
