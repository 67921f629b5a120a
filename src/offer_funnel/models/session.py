"""Session, decision and step-view models — the contract between the engine and callers.

These models define what the sequencer decides and what the engine returns
for each visitor action.  They are intentionally decoupled from the ORM
models in ``offer_db`` so that API consumers never see database internals.

Decision kinds (discriminated on ``kind``):
  - StepDecision: show the step at ``step_order``
  - SubmitDecision: funnel finished, submit the lead
  - EndDecision: funnel finished without a lead (thank-you exit)
  - DisqualifiedDecision: visitor rejected, navigate to ``redirect_url``
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from offer_db.models.enums import SessionStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Sequencer decisions
# ---------------------------------------------------------------------------

class StepDecision(BaseModel):
    """Show the step at ``step_order`` next."""

    kind: Literal["step"] = "step"
    step_order: int


class SubmitDecision(BaseModel):
    """No more questions: submit the collected answers as a lead."""

    kind: Literal["submit"] = "submit"


class EndDecision(BaseModel):
    """End the funnel without submitting (e.g. a thank-you exit)."""

    kind: Literal["end"] = "end"


class DisqualifiedDecision(BaseModel):
    """Visitor is disqualified; the presentation layer navigates away."""

    kind: Literal["disqualified"] = "disqualified"
    redirect_url: Optional[str] = None


Decision = Annotated[
    Union[StepDecision, SubmitDecision, EndDecision, DisqualifiedDecision],
    Field(discriminator="kind"),
]


class Visibility(BaseModel):
    """Logic aggregator verdict for one step."""

    visible: bool
    disqualified: bool = False
    redirect_url: Optional[str] = None


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

class FunnelSession(BaseModel):
    """One visitor's traversal of an offer.

    ``history`` is the visited-step stack: the orders of steps the visitor
    answered on the way to ``current_step_order``, oldest first.  "Back"
    pops it instead of decrementing the order, so skipped and branched
    paths are retraced exactly.
    """

    session_id: str
    offer_id: str
    status: SessionStatus = SessionStatus.STARTED
    current_step_order: int = 0
    # {step_id: raw answer}; lists for multi_choice
    answers: dict[str, Any] = {}
    history: list[int] = []
    # {step_id: seconds spent before answering}
    step_timings: dict[str, int] = {}
    # utm_*, referrer, click ids, device type ... captured at session start
    tracking: dict[str, Any] = {}
    # How a completed session ended: "submit" (lead created) or "end"
    completion: Optional[Literal["submit", "end"]] = None
    redirect_url: Optional[str] = None
    lead_id: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    step_started_at: datetime = Field(default_factory=utcnow)
    last_activity_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in SessionStatus.terminal()


class SessionInfo(BaseModel):
    """Public view of session state for API consumers."""

    session_id: str
    offer_id: str
    status: str
    current_step_order: int
    lead_id: Optional[str] = None
    redirect_url: Optional[str] = None
    started_at: datetime
    last_activity_at: datetime
    completed_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Step views
# ---------------------------------------------------------------------------

class StepPayload(BaseModel):
    """Flattened step for the renderer.

    Strips routing and conditional logic; presents only what the UI needs
    to render the question and validate input client-side.
    """

    step_id: str
    order: int
    type: str
    question: str
    # [{value, label}] for choice-like steps
    options: list[dict] | None = None
    # {required, pattern, min, max, min_length, max_length}
    validation: dict | None = None
    placeholder: str | None = None
    help_text: str | None = None
    # {position, total}; position counts visited steps, not orders
    progress: dict | None = None
    # Extra context (e.g. previous_value after a "Back")
    metadata: dict | None = None


class StepResult(BaseModel):
    """What the engine returns for every visitor-facing call.

    ``decision`` is None only for abandoned sessions.  ``step`` is set when
    the session is active and a question should be rendered.
    """

    session: SessionInfo
    decision: Optional[Decision] = None
    step: Optional[StepPayload] = None
