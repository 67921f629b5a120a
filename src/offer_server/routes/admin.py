"""Admin endpoints — idle-session reaping and offer configuration checks.

Protected by the ``ADMIN_API_KEY`` environment variable.  Every request
must include an ``X-Admin-Key`` header whose value matches the configured
key.  Returns 401 if missing, 403 if wrong.
"""

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from offer_db.repository import FunnelRepository
from offer_funnel.errors import OfferNotFoundError
from offer_funnel.interfaces import FunnelStorage
from offer_funnel.offers import describe_flow, find_offer_issues

from offer_server.dependencies import get_db, get_storage, require_admin_key

router = APIRouter(prefix="/admin", tags=["admin"])


# ------------------------------------------------------------------
# Response models
# ------------------------------------------------------------------

class CleanupResult(BaseModel):
    """Response body for bulk session operations."""
    affected_rows: int
    action: str


class OfferCheck(BaseModel):
    """Authoring report for one offer."""
    offer_id: str
    step_count: int
    issues: list[str]
    # {step_id: ["Label → Step 3", ...]}
    flow: dict[str, list[str]]


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

_repo = FunnelRepository()


@router.post("/sessions/abandon-idle")
async def abandon_idle_sessions(
    request: Request,
    idle_minutes: int | None = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin_key),
) -> CleanupResult:
    """Mark active sessions with no activity for ``idle_minutes`` as abandoned.

    Defaults to ``SESSION_IDLE_MINUTES`` when the query parameter is omitted.
    """
    if idle_minutes is None:
        idle_minutes = request.app.state.settings.session_idle_minutes
    affected = await _repo.abandon_idle_sessions(db, idle_minutes)
    return CleanupResult(affected_rows=affected, action="abandon_idle")


@router.get("/offers/{offer_id}/check")
async def check_offer(
    offer_id: str,
    storage: FunnelStorage = Depends(get_storage),
    _admin: str = Depends(require_admin_key),
) -> OfferCheck:
    """Report rules and routing targets that would be inert at runtime."""
    steps = await storage.load_steps(offer_id)
    if not steps:
        raise OfferNotFoundError(f"Offer not found or has no steps: offer_id={offer_id}")
    return OfferCheck(
        offer_id=offer_id,
        step_count=len(steps),
        issues=find_offer_issues(steps),
        flow=describe_flow(steps),
    )
