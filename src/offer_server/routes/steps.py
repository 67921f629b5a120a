"""Step endpoints — render the current step, answer it, or go back.

Every endpoint returns a ``StepResult``:
  - ``decision.kind == "step"``: render ``step``
  - ``"submit"`` / ``"end"``: show the thank-you screen (``session.lead_id``
    is set after a submit)
  - ``"disqualified"``: navigate to ``decision.redirect_url``
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from offer_funnel.engine import FunnelEngine
from offer_funnel.interfaces import FunnelStorage
from offer_funnel.models.session import StepResult

from offer_server.dependencies import get_funnel_engine, get_storage

router = APIRouter(tags=["steps"])


class SubmitAnswerRequest(BaseModel):
    """Body for POST /sessions/{session_id}/step.

    ``value`` is a string for most step types, a number for ``number``
    steps and a list of option values for ``multi_choice``.
    """
    value: Any = None


@router.get("/sessions/{session_id}/step")
async def get_current_step(
    session_id: str,
    storage: FunnelStorage = Depends(get_storage),
    engine: FunnelEngine = Depends(get_funnel_engine),
) -> StepResult:
    """Return the step to render, or the outcome if the session is finished."""
    return await engine.get_current_step(storage, session_id=session_id)


@router.post("/sessions/{session_id}/step")
async def submit_answer(
    session_id: str,
    body: SubmitAnswerRequest,
    storage: FunnelStorage = Depends(get_storage),
    engine: FunnelEngine = Depends(get_funnel_engine),
) -> StepResult:
    """Answer the current step and advance.

    Returns 422 with ``field`` and ``detail`` when the answer fails
    validation; the session does not move.
    """
    return await engine.advance(storage, session_id=session_id, answer=body.value)


@router.post("/sessions/{session_id}/back")
async def go_back(
    session_id: str,
    storage: FunnelStorage = Depends(get_storage),
    engine: FunnelEngine = Depends(get_funnel_engine),
) -> StepResult:
    """Return to the previously answered step.

    ``step.metadata.previous_value`` carries the earlier answer for
    pre-filling.  Returns 400 on the first step.
    """
    return await engine.retreat(storage, session_id=session_id)
