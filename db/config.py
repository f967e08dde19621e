"""
Environment-driven database settings for the mirror.

``.env`` files are read once per call with a small KEY=VALUE parser; real
process variables always win over file values.
"""

from __future__ import annotations

import os
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parents[1]
_ENV_FILES = (".env", ".env.local")
_PRODUCTION_LIKE_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})
_POSTGRES_SCHEMES = ("postgres://", "postgresql://")


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.removeprefix("export ").strip()
    if not key:
        return None
    return key, value.strip().strip('"').strip("'")


def load_env_files() -> None:
    """
    Load KEY=VALUE pairs from ``.env`` and ``.env.local`` at the project root.
    """

    for filename in _ENV_FILES:
        env_path = _PROJECT_ROOT / filename
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is not None:
                os.environ.setdefault(*parsed)


def current_environment() -> str:
    """
    Return the normalized ENVIRONMENT name (defaults to ``local``).
    """

    load_env_files()
    return os.getenv("ENVIRONMENT", "local").strip().lower() or "local"


def is_production_like() -> bool:
    return current_environment() in _PRODUCTION_LIKE_ENVIRONMENTS


def normalize_postgres_url(url: str) -> str:
    """
    Rewrite bare postgres URLs to the psycopg 3 driver SQLAlchemy should use.
    """

    for scheme in _POSTGRES_SCHEMES:
        if url.startswith(scheme):
            return "postgresql+psycopg://" + url[len(scheme):]
    return url


def resolve_database_url() -> str:
    """
    Resolve the mirror database URL.

    DATABASE_URL wins; otherwise CLOUD_DATABASE_URL in production-like
    environments, then LOCAL_DATABASE_URL.
    """

    load_env_files()

    names = ["DATABASE_URL"]
    if is_production_like():
        names.append("CLOUD_DATABASE_URL")
    names.append("LOCAL_DATABASE_URL")

    for name in names:
        url = os.getenv(name)
        if url:
            return normalize_postgres_url(url)

    raise RuntimeError(
        "No database URL configured. Set DATABASE_URL, or configure "
        "LOCAL_DATABASE_URL / CLOUD_DATABASE_URL."
    )
