"""FunnelEngine — the session state machine for a visitor's funnel traversal.

Stateless engine pattern: each call loads session state from storage,
computes the transition, persists changes, and returns the result.  No
session state is kept in memory between calls.

The engine accepts a :class:`FunnelStorage` from the caller so that the
caller (typically a FastAPI endpoint) controls transaction boundaries.

Session lifecycle::

    started ──advance──► in_progress ──advance──► completed     (submit / end)
       │                     │        └─advance──► disqualified (disqualify rule)
       └──────────┬──────────┘
                  └──abandon──► abandoned

Terminal states (completed, disqualified, abandoned) accept no further
transitions.  ``retreat`` walks back along the visited-step stack and keeps
the session active.

Mutating calls for the same session run one at a time, in arrival order,
under a per-session ``asyncio.Lock``; a late duplicate "Next" click can not
overtake or revert an earlier one.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from typing import Any, Sequence

from offer_db.models.enums import SessionStatus

from offer_funnel.constants import DEFAULT_DISQUALIFY_URL
from offer_funnel.errors import (
    OfferNotFoundError,
    SessionClosedError,
    SessionNotFoundError,
)
from offer_funnel.export import build_form_data, build_lead_metadata
from offer_funnel.interfaces import FunnelStorage
from offer_funnel.models.session import (
    Decision,
    DisqualifiedDecision,
    EndDecision,
    FunnelSession,
    SessionInfo,
    StepDecision,
    StepPayload,
    StepResult,
    SubmitDecision,
    utcnow,
)
from offer_funnel.models.step import Step
from offer_funnel.offers import normalize_steps
from offer_funnel.sequencer import StepSequencer
from offer_funnel.validation import validate_answer

logger = logging.getLogger(__name__)


def generate_session_id() -> str:
    return f"session_{uuid.uuid4().hex}"


class FunnelEngine:
    """Drives visitor sessions through an offer's steps.

    Args:
        sequencer: next-step policy; defaults to :class:`StepSequencer`
    """

    def __init__(self, sequencer: StepSequencer | None = None) -> None:
        self._sequencer = sequencer or StepSequencer()
        # Locks live only while a call holds or awaits them.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    # ==================================================================
    # Session lifecycle
    # ==================================================================

    async def create_session(
        self,
        storage: FunnelStorage,
        *,
        offer_id: str,
        session_id: str | None = None,
        tracking: dict[str, Any] | None = None,
    ) -> SessionInfo:
        """Start a new session at the offer's first step.

        Raises:
            OfferNotFoundError: if the offer has no steps.
            ValueError: if ``session_id`` is already taken.
        """
        steps = await self._load_steps(storage, offer_id)
        session_id = session_id or generate_session_id()

        if await storage.load_session(session_id) is not None:
            raise ValueError(f"Session already exists: session_id={session_id}")

        first = self._sequencer.first_step(steps)
        session = FunnelSession(
            session_id=session_id,
            offer_id=offer_id,
            current_step_order=first.step_order,
            tracking=dict(tracking or {}),
        )
        await storage.save_session(session)
        logger.info("Session %s started on offer %s", session_id, offer_id)
        return self._to_session_info(session)

    async def get_session(
        self, storage: FunnelStorage, *, session_id: str
    ) -> SessionInfo | None:
        """Fetch session info.  Returns None if not found."""
        session = await storage.load_session(session_id)
        if session is None:
            return None
        return self._to_session_info(session)

    async def get_current_step(
        self, storage: FunnelStorage, *, session_id: str
    ) -> StepResult:
        """Return the step to render, or the outcome of a finished session.

        Does not modify session state — this is a read-only operation.
        """
        session = await self._load_session(storage, session_id)
        if session.is_terminal:
            return StepResult(
                session=self._to_session_info(session),
                decision=self._terminal_decision(session),
            )
        steps = await self._load_steps(storage, session.offer_id)
        decision = StepDecision(step_order=session.current_step_order)
        return self._build_result(session, steps, decision)

    # ==================================================================
    # Transitions
    # ==================================================================

    async def advance(
        self, storage: FunnelStorage, *, session_id: str, answer: Any
    ) -> StepResult:
        """Answer the current step and move to whatever comes next.

        The answer is validated first; on failure nothing is recorded and
        the session stays where it is.

        Raises:
            StepValidationError: the answer failed the step's validation.
            SessionClosedError: the session is already terminal.
            SessionNotFoundError: unknown session.
        """
        async with self._lock(session_id):
            session = await self._load_session(storage, session_id)
            self._ensure_active(session, "advance")

            steps = await self._load_steps(storage, session.offer_id)
            current = self._step_at(steps, session.current_step_order)
            validate_answer(current, answer)

            now = utcnow()
            spent = max(0, int((now - session.step_started_at).total_seconds()))
            await storage.append_response(session.session_id, current.id, answer, spent)

            decision = self._sequencer.next_step(steps, current, answer, session.answers)

            session.answers = {**session.answers, current.id: answer}
            session.step_timings = {**session.step_timings, current.id: spent}
            session.last_activity_at = now

            if isinstance(decision, StepDecision):
                session.history = [*session.history, current.order]
                session.current_step_order = decision.step_order
                session.status = SessionStatus.IN_PROGRESS
                session.step_started_at = now

            elif isinstance(decision, DisqualifiedDecision):
                redirect_url = decision.redirect_url or DEFAULT_DISQUALIFY_URL
                decision = DisqualifiedDecision(redirect_url=redirect_url)
                session.status = SessionStatus.DISQUALIFIED
                session.redirect_url = redirect_url
                session.completed_at = now
                logger.info(
                    "Session %s disqualified after step %s -> %s",
                    session_id, current.id, redirect_url,
                )

            elif isinstance(decision, SubmitDecision):
                form_data = build_form_data(steps, session.answers)
                metadata = build_lead_metadata(session, steps)
                session.lead_id = await storage.create_lead(form_data, metadata)
                session.status = SessionStatus.COMPLETED
                session.completion = "submit"
                session.completed_at = now
                logger.info("Session %s submitted lead %s", session_id, session.lead_id)

            elif isinstance(decision, EndDecision):
                session.status = SessionStatus.COMPLETED
                session.completion = "end"
                session.completed_at = now
                logger.info("Session %s ended without a lead", session_id)

            await storage.save_session(session)
            return self._build_result(session, steps, decision)

    async def retreat(self, storage: FunnelStorage, *, session_id: str) -> StepResult:
        """Go back to the step the visitor answered before the current one.

        The target comes from the visited-step stack, so steps skipped by
        hide rules or jumped over by routing are never revisited.  Answers
        of steps no longer on the visited path are dropped; the target's
        own answer is returned as ``step.metadata["previous_value"]`` so the
        UI can pre-fill it.

        The status stays ``in_progress`` even when the stack empties: a
        session never returns to ``started`` once it has been answered.

        Raises:
            ValueError: if already at the first step.
            SessionClosedError: the session is already terminal.
        """
        async with self._lock(session_id):
            session = await self._load_session(storage, session_id)
            self._ensure_active(session, "go back")
            if not session.history:
                raise ValueError("Cannot go back: already at the first step")

            steps = await self._load_steps(storage, session.offer_id)
            history = list(session.history)
            target = self._step_at(steps, history.pop())
            previous_value = session.answers.get(target.id)

            # Keep only answers of steps still on the visited path
            visited = set(history)
            kept = {s.id for s in steps if s.order in visited}
            session.answers = {k: v for k, v in session.answers.items() if k in kept}
            session.step_timings = {k: v for k, v in session.step_timings.items() if k in kept}

            now = utcnow()
            session.history = history
            session.current_step_order = target.order
            session.step_started_at = now
            session.last_activity_at = now
            await storage.save_session(session)

            result = self._build_result(session, steps, StepDecision(step_order=target.order))
            if previous_value is not None and result.step is not None:
                result.step.metadata = {"previous_value": previous_value}
            return result

    async def abandon(self, storage: FunnelStorage, *, session_id: str) -> SessionInfo:
        """Mark an active session as abandoned (visitor left or timed out).

        Raises:
            SessionClosedError: the session is already terminal.
        """
        async with self._lock(session_id):
            session = await self._load_session(storage, session_id)
            self._ensure_active(session, "abandon")
            now = utcnow()
            session.status = SessionStatus.ABANDONED
            session.last_activity_at = now
            await storage.save_session(session)
            logger.info("Session %s abandoned at step order %d", session_id, session.current_step_order)
            return self._to_session_info(session)

    # ==================================================================
    # Internal: helpers
    # ==================================================================

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    async def _load_session(self, storage: FunnelStorage, session_id: str) -> FunnelSession:
        """Load a session or raise SessionNotFoundError."""
        session = await storage.load_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session not found: session_id={session_id}")
        return session

    async def _load_steps(self, storage: FunnelStorage, offer_id: str) -> list[Step]:
        """Load and normalize an offer's steps or raise OfferNotFoundError."""
        steps = await storage.load_steps(offer_id)
        if not steps:
            raise OfferNotFoundError(f"Offer not found or has no steps: offer_id={offer_id}")
        return normalize_steps(steps)

    @staticmethod
    def _ensure_active(session: FunnelSession, action: str) -> None:
        if session.is_terminal:
            raise SessionClosedError(
                f"Cannot {action}: session status is '{session.status.value}', "
                f"expected 'started' or 'in_progress'"
            )

    @staticmethod
    def _step_at(steps: Sequence[Step], order: int) -> Step:
        for step in steps:
            if step.order == order:
                return step
        raise ValueError(f"Step order {order} not found in offer")

    @staticmethod
    def _terminal_decision(session: FunnelSession) -> Decision | None:
        """Rebuild the final decision of a terminal session."""
        if session.status == SessionStatus.DISQUALIFIED:
            return DisqualifiedDecision(redirect_url=session.redirect_url)
        if session.status == SessionStatus.COMPLETED:
            return EndDecision() if session.completion == "end" else SubmitDecision()
        return None

    def _build_result(
        self,
        session: FunnelSession,
        steps: Sequence[Step],
        decision: Decision,
    ) -> StepResult:
        step_payload = None
        if isinstance(decision, StepDecision) and not session.is_terminal:
            step = self._step_at(steps, decision.step_order)
            step_payload = self._step_to_payload(step, session, total=len(steps))
        return StepResult(
            session=self._to_session_info(session),
            decision=decision,
            step=step_payload,
        )

    @staticmethod
    def _step_to_payload(step: Step, session: FunnelSession, *, total: int) -> StepPayload:
        """Convert a Step to the flat payload rendered by the UI."""
        validation = step.validation.model_dump(exclude_none=True, exclude={"custom_message"})
        return StepPayload(
            step_id=step.id,
            order=step.order,
            type=step.type,
            question=step.question,
            options=[{"value": o.value, "label": o.label} for o in step.options] or None,
            validation=validation or None,
            placeholder=step.placeholder,
            help_text=step.help_text,
            progress={"position": len(session.history) + 1, "total": total},
        )

    @staticmethod
    def _to_session_info(session: FunnelSession) -> SessionInfo:
        return SessionInfo(
            session_id=session.session_id,
            offer_id=session.offer_id,
            status=session.status.value,
            current_step_order=session.current_step_order,
            lead_id=session.lead_id,
            redirect_url=session.redirect_url,
            started_at=session.started_at,
            last_activity_at=session.last_activity_at,
            completed_at=session.completed_at,
        )
