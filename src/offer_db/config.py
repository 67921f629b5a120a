"""Database configuration — reads connection parameters from environment.

Connection URL, in order of precedence:
1. ``DATABASE_URL`` (any of ``postgresql://``, ``postgresql+asyncpg://``,
   ``postgresql+psycopg2://``).
2. ``PG_HOST``, ``PG_PORT``, ``PG_USER``, ``PG_PASSWORD``, ``PG_DATABASE``
   (convenient for docker-compose).

Pool tuning: ``PG_POOL_SIZE`` (default 5), ``PG_MAX_OVERFLOW`` (default 10),
``PG_ECHO`` (``1`` logs every statement).

``get_sync_url()`` is used by Alembic migrations, ``get_async_url()`` by the
async SQLAlchemy engine at runtime.
"""

import os
from dataclasses import dataclass

_DRIVER_PREFIXES = (
    "postgresql+asyncpg://",
    "postgresql+psycopg2://",
    "postgresql://",
    "postgres://",
)


@dataclass(frozen=True)
class PoolSettings:
    """Connection pool parameters for the async engine."""

    pool_size: int = 5
    max_overflow: int = 10
    echo: bool = False


def load_pool_settings() -> PoolSettings:
    """Build PoolSettings from ``PG_POOL_SIZE`` / ``PG_MAX_OVERFLOW`` / ``PG_ECHO``."""
    return PoolSettings(
        pool_size=int(os.getenv("PG_POOL_SIZE", "5")),
        max_overflow=int(os.getenv("PG_MAX_OVERFLOW", "10")),
        echo=os.getenv("PG_ECHO", "0").lower() in ("1", "true", "yes"),
    )


def _build_url_from_parts() -> str:
    """Construct a driver-less PostgreSQL URL from individual env vars."""
    host = os.getenv("PG_HOST", "localhost")
    port = os.getenv("PG_PORT", "5432")
    user = os.getenv("PG_USER", "offers")
    password = os.getenv("PG_PASSWORD", "offers")
    database = os.getenv("PG_DATABASE", "offers")
    return f"{user}:{password}@{host}:{port}/{database}"


def _url_body() -> str:
    """Return the URL without its scheme, whichever env source it came from."""
    url = os.getenv("DATABASE_URL")
    if not url:
        return _build_url_from_parts()
    for prefix in _DRIVER_PREFIXES:
        if url.startswith(prefix):
            return url[len(prefix):]
    raise ValueError(f"Unsupported DATABASE_URL scheme: {url.split('://', 1)[0]}")


def get_sync_url() -> str:
    """Return a synchronous (psycopg2) connection URL for Alembic."""
    return f"postgresql+psycopg2://{_url_body()}"


def get_async_url() -> str:
    """Return an asyncpg connection URL for the async SQLAlchemy engine."""
    return f"postgresql+asyncpg://{_url_body()}"
