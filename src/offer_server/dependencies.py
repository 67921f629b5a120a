"""FastAPI dependency injection — provides DB sessions, storage, the engine and admin auth.

Each request that touches the database gets a fresh ``AsyncSession`` via
``get_db()``.  The session is committed on success and rolled back on error,
matching the SDK convention where the repository calls ``flush()`` but
never ``commit()``.
"""

import hmac
from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from offer_db.engine import get_session_factory
from offer_db.storage import SqlFunnelStorage
from offer_funnel.engine import FunnelEngine
from offer_funnel.interfaces import FunnelStorage


# ------------------------------------------------------------------
# Database session (transaction boundary)
# ------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; commit on success, rollback on error."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_storage(db: AsyncSession = Depends(get_db)) -> FunnelStorage:
    """Wrap the request's DB session in the SDK storage adapter."""
    return SqlFunnelStorage(db)


# ------------------------------------------------------------------
# Engine: one per app, stashed on app.state by create_app()
# ------------------------------------------------------------------

def get_funnel_engine(request: Request) -> FunnelEngine:
    """Return the FunnelEngine singleton from ``app.state``."""
    return request.app.state.funnel_engine


# ------------------------------------------------------------------
# Admin auth
# ------------------------------------------------------------------

async def require_admin_key(
    request: Request,
    x_admin_key: str | None = Header(None, alias="X-Admin-Key"),
) -> str:
    """Validate the ``X-Admin-Key`` header against ``ADMIN_API_KEY``.

    Raises 403 if no key is configured or the key does not match, 401 if
    the header is missing.
    """
    expected: str | None = request.app.state.settings.admin_api_key
    if not expected:
        raise HTTPException(
            status_code=403,
            detail="Admin endpoints are disabled (ADMIN_API_KEY not configured)",
        )
    if not x_admin_key:
        raise HTTPException(status_code=401, detail="X-Admin-Key header is required")
    # Constant-time comparison to prevent timing side-channels.
    if not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=403, detail="Invalid admin key")
    return x_admin_key
