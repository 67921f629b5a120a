"""Server configuration — reads settings from environment variables.

All settings have sensible defaults for local development.  In production
the values are typically overridden via env vars or a ``.env`` file.
"""

import os
from dataclasses import dataclass, field

from offer_funnel.constants import SESSION_IDLE_MINUTES


@dataclass(frozen=True)
class ServerSettings:
    """Immutable server configuration read from environment at startup."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS: comma-separated origins, or "*" for wide-open dev mode
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Offer YAML directory used by offer-seed (None → offers/ at the repo root)
    offer_dir: str | None = None

    # Logging
    log_level: str = "INFO"

    # Admin API key, shared secret for admin endpoints (None = disabled)
    admin_api_key: str | None = None

    # Active sessions idle longer than this are abandoned by the reaper
    session_idle_minutes: int = SESSION_IDLE_MINUTES


def load_settings() -> ServerSettings:
    """Build settings from ``SERVER_*`` environment variables."""
    raw_origins = os.getenv("SERVER_CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=origins,
        offer_dir=os.getenv("SERVER_OFFER_DIR") or None,
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        admin_api_key=os.getenv("ADMIN_API_KEY") or None,
        session_idle_minutes=int(os.getenv("SESSION_IDLE_MINUTES", str(SESSION_IDLE_MINUTES))),
    )
