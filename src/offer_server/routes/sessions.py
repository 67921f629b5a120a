"""Session management endpoints — start, inspect and abandon visitor sessions.

Sessions are anonymous: the browser keeps the returned ``session_id`` and
passes it on every subsequent call.  Tracking parameters (utm_*, referrer,
click ids) are captured once, at creation.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from offer_funnel.engine import FunnelEngine
from offer_funnel.errors import SessionNotFoundError
from offer_funnel.interfaces import FunnelStorage
from offer_funnel.models.session import SessionInfo

from offer_server.dependencies import get_funnel_engine, get_storage

router = APIRouter(tags=["sessions"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class CreateSessionRequest(BaseModel):
    """Body for POST /offers/{offer_id}/sessions.  Every field is optional."""
    session_id: str | None = None
    tracking: dict[str, Any] = {}


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/offers/{offer_id}/sessions", status_code=201)
async def create_session(
    offer_id: str,
    body: CreateSessionRequest | None = None,
    storage: FunnelStorage = Depends(get_storage),
    engine: FunnelEngine = Depends(get_funnel_engine),
) -> SessionInfo:
    """Start a session at the offer's first step.

    Returns 201 on success, 404 if the offer has no steps.
    """
    body = body or CreateSessionRequest()
    return await engine.create_session(
        storage,
        offer_id=offer_id,
        session_id=body.session_id,
        tracking=body.tracking,
    )


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    storage: FunnelStorage = Depends(get_storage),
    engine: FunnelEngine = Depends(get_funnel_engine),
) -> SessionInfo:
    """Get session info by session_id.  Raises 404 if it does not exist."""
    info = await engine.get_session(storage, session_id=session_id)
    if info is None:
        raise SessionNotFoundError(f"Session not found: session_id={session_id}")
    return info


@router.post("/sessions/{session_id}/abandon")
async def abandon_session(
    session_id: str,
    storage: FunnelStorage = Depends(get_storage),
    engine: FunnelEngine = Depends(get_funnel_engine),
) -> SessionInfo:
    """Mark the session abandoned (e.g. from a page-unload beacon)."""
    return await engine.abandon(storage, session_id=session_id)
