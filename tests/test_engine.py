"""FunnelEngine tests with an in-memory storage.

Uses MockStorage (helpers/storage.py), a dict-backed FunnelStorage that
deep-copies sessions on load and save, so only explicitly saved state is
visible to later calls — the same contract as the SQL storage.

Offers under test:
  - age-gate     (tests/fixtures/age_gate.yaml): number → dropdown with a
                 disqualify rule on age < 18 → email
  - skip-chain   (tests/fixtures/skip_chain.yaml): conditional steps that
                 are skipped depending on the chosen plan
  - solar-quote  (offers/solar-quote.yaml): end / submit overrides,
                 multi-choice jumps, a hidden step and a disqualification
"""

import asyncio
from datetime import timedelta

import pytest

from offer_db.models.enums import SessionStatus
from offer_funnel.errors import (
    OfferNotFoundError,
    SessionClosedError,
    SessionNotFoundError,
    StepValidationError,
)
from offer_funnel.models.session import (
    DisqualifiedDecision,
    EndDecision,
    StepDecision,
    SubmitDecision,
)


# =====================================================================
# Helpers
# =====================================================================


async def _start(engine, storage, offer_id="age-gate", **kwargs):
    info = await engine.create_session(storage, offer_id=offer_id, **kwargs)
    return info.session_id


async def _walk(engine, storage, session_id, *answers):
    """Advance once per answer and return the last StepResult."""
    result = None
    for answer in answers:
        result = await engine.advance(storage, session_id=session_id, answer=answer)
    return result


# =====================================================================
# Session lifecycle
# =====================================================================


class TestCreateSession:

    @pytest.mark.asyncio
    async def test_starts_at_first_step(self, engine, storage):
        info = await engine.create_session(storage, offer_id="age-gate")
        assert info.status == "started"
        assert info.current_step_order == 0
        assert info.session_id.startswith("session_")
        assert info.session_id in storage.sessions

    @pytest.mark.asyncio
    async def test_caller_supplied_id_and_tracking(self, engine, storage):
        info = await engine.create_session(
            storage, offer_id="age-gate", session_id="abc",
            tracking={"utm_source": "google", "gclid": "123"},
        )
        assert info.session_id == "abc"
        assert storage.sessions["abc"].tracking == {"utm_source": "google", "gclid": "123"}

    @pytest.mark.asyncio
    async def test_duplicate_session_id_rejected(self, engine, storage):
        await engine.create_session(storage, offer_id="age-gate", session_id="abc")
        with pytest.raises(ValueError, match="already exists"):
            await engine.create_session(storage, offer_id="age-gate", session_id="abc")

    @pytest.mark.asyncio
    async def test_unknown_offer(self, engine, storage):
        with pytest.raises(OfferNotFoundError):
            await engine.create_session(storage, offer_id="nope")
        assert storage.sessions == {}

    @pytest.mark.asyncio
    async def test_get_session(self, engine, storage):
        sid = await _start(engine, storage)
        info = await engine.get_session(storage, session_id=sid)
        assert info.offer_id == "age-gate"
        assert await engine.get_session(storage, session_id="missing") is None


class TestGetCurrentStep:

    @pytest.mark.asyncio
    async def test_payload(self, engine, storage):
        sid = await _start(engine, storage)
        result = await engine.get_current_step(storage, session_id=sid)
        assert result.decision == StepDecision(step_order=0)
        assert result.step.step_id == "age"
        assert result.step.type == "number"
        assert result.step.validation == {"required": True, "min": 0, "max": 120}
        assert result.step.progress == {"position": 1, "total": 3}

    @pytest.mark.asyncio
    async def test_options_strip_routing(self, engine, storage):
        sid = await _start(engine, storage, offer_id="solar-quote")
        result = await engine.get_current_step(storage, session_id=sid)
        assert result.step.options == [
            {"value": "yes", "label": "Yes"},
            {"value": "no", "label": "No"},
        ]

    @pytest.mark.asyncio
    async def test_unknown_session(self, engine, storage):
        with pytest.raises(SessionNotFoundError):
            await engine.get_current_step(storage, session_id="missing")

    @pytest.mark.asyncio
    async def test_terminal_session_returns_outcome(self, engine, storage):
        sid = await _start(engine, storage)
        await _walk(engine, storage, sid, 16)
        result = await engine.get_current_step(storage, session_id=sid)
        assert result.step is None
        assert result.decision == DisqualifiedDecision(redirect_url="/too-young")


# =====================================================================
# Advance
# =====================================================================


class TestAgeGateScenario:
    """The three-step age-gated offer, end to end."""

    @pytest.mark.asyncio
    async def test_minor_is_disqualified(self, engine, storage):
        sid = await _start(engine, storage)
        result = await engine.advance(storage, session_id=sid, answer=16)

        assert result.decision == DisqualifiedDecision(redirect_url="/too-young")
        assert result.step is None
        assert result.session.status == "disqualified"
        assert result.session.redirect_url == "/too-young"
        assert storage.sessions[sid].status == SessionStatus.DISQUALIFIED
        assert storage.leads == {}, "disqualified visitors never become leads"

    @pytest.mark.asyncio
    async def test_adult_moves_to_state(self, engine, storage):
        sid = await _start(engine, storage)
        result = await engine.advance(storage, session_id=sid, answer=25)

        assert result.decision == StepDecision(step_order=1)
        assert result.step.step_id == "state"
        assert result.session.status == "in_progress"
        assert result.step.progress == {"position": 2, "total": 3}

    @pytest.mark.asyncio
    async def test_full_submit_creates_lead(self, engine, storage):
        sid = await _start(engine, storage, tracking={"utm_source": "fb"})
        result = await _walk(engine, storage, sid, 25, "CA", "kim@example.com")

        assert result.decision == SubmitDecision()
        assert result.session.status == "completed"
        assert result.session.lead_id in storage.leads
        lead = storage.leads[result.session.lead_id]
        assert lead["form_data"] == {"age": 25, "state": "CA", "email": "kim@example.com"}
        assert lead["metadata"]["offer_id"] == "age-gate"
        assert lead["metadata"]["session_id"] == sid
        assert lead["metadata"]["tracking"] == {"utm_source": "fb"}
        assert 0.0 <= lead["metadata"]["quality_score"] <= 1.0

        saved = storage.sessions[sid]
        assert saved.completion == "submit"
        assert saved.completed_at is not None
        assert saved.history == [0, 1, 2]


class TestValidation:

    @pytest.mark.asyncio
    async def test_invalid_answer_leaves_session_unchanged(self, engine, storage):
        sid = await _start(engine, storage)
        before = storage.sessions[sid].model_copy(deep=True)

        with pytest.raises(StepValidationError) as exc_info:
            await engine.advance(storage, session_id=sid, answer=150)
        assert exc_info.value.field == "age"

        assert storage.sessions[sid] == before
        assert storage.responses == [], "rejected answers are not logged"

    @pytest.mark.asyncio
    async def test_required_answer(self, engine, storage):
        sid = await _start(engine, storage)
        await _walk(engine, storage, sid, 30, "TX")
        with pytest.raises(StepValidationError, match="required"):
            await engine.advance(storage, session_id=sid, answer="")

    @pytest.mark.asyncio
    async def test_custom_message(self, engine, storage):
        sid = await _start(engine, storage, offer_id="solar-quote")
        await _walk(engine, storage, sid, "yes", "tile", 5, ["battery"], "a@b.co")
        with pytest.raises(StepValidationError) as exc_info:
            await engine.advance(storage, session_id=sid, answer="123")
        assert exc_info.value.message == "Please enter a 10-digit US phone number"


class TestSolarQuoteRouting:

    @pytest.mark.asyncio
    async def test_renter_ends_without_lead(self, engine, storage):
        sid = await _start(engine, storage, offer_id="solar-quote")
        result = await engine.advance(storage, session_id=sid, answer="no")
        assert result.decision == EndDecision()
        assert result.session.status == "completed"
        assert result.session.lead_id is None
        assert storage.leads == {}
        assert storage.sessions[sid].completion == "end"

    @pytest.mark.asyncio
    async def test_metal_roof_skips_roof_age(self, engine, storage):
        sid = await _start(engine, storage, offer_id="solar-quote")
        result = await _walk(engine, storage, sid, "yes", "metal")
        assert result.step.step_id == "interests"

    @pytest.mark.asyncio
    async def test_battery_skips_bill(self, engine, storage):
        sid = await _start(engine, storage, offer_id="solar-quote")
        result = await _walk(engine, storage, sid, "yes", "tile", 12, ["panels", "battery"])
        assert result.step.step_id == "email"

    @pytest.mark.asyncio
    async def test_quote_only_submits(self, engine, storage):
        sid = await _start(engine, storage, offer_id="solar-quote")
        result = await _walk(engine, storage, sid, "yes", "tile", 12, ["battery", "quote_only"])
        assert result.decision == SubmitDecision()
        lead = storage.leads[result.session.lead_id]
        assert lead["form_data"]["interests"] == ["battery", "quote_only"]

    @pytest.mark.asyncio
    async def test_flat_roof_disqualified_at_bill(self, engine, storage):
        sid = await _start(engine, storage, offer_id="solar-quote")
        result = await _walk(engine, storage, sid, "yes", "flat", 3, ["panels"])
        assert result.decision == DisqualifiedDecision(redirect_url="/solar-not-suitable")


class TestDefaultRedirect:

    @pytest.mark.asyncio
    async def test_missing_redirect_uses_default(self, engine, storage, age_gate_steps):
        logic = age_gate_steps[1].conditional_logic.model_copy(
            update={"disqualify_redirect_url": None}
        )
        storage.offers["no-redirect"] = [
            age_gate_steps[0],
            age_gate_steps[1].model_copy(update={"conditional_logic": logic}),
            age_gate_steps[2],
        ]
        sid = await _start(engine, storage, offer_id="no-redirect")
        result = await engine.advance(storage, session_id=sid, answer=10)
        assert result.decision == DisqualifiedDecision(redirect_url="/not-qualified")
        assert storage.sessions[sid].redirect_url == "/not-qualified"


class TestResponsesAndTimings:

    @pytest.mark.asyncio
    async def test_responses_are_appended(self, engine, storage):
        sid = await _start(engine, storage)
        await _walk(engine, storage, sid, 30, "NY")
        assert [(r[0], r[1], r[2]) for r in storage.responses] == [
            (sid, "age", 30),
            (sid, "state", "NY"),
        ]

    @pytest.mark.asyncio
    async def test_time_spent_is_measured(self, engine, storage):
        sid = await _start(engine, storage)
        saved = storage.sessions[sid]
        saved.step_started_at = saved.step_started_at - timedelta(seconds=42)

        await engine.advance(storage, session_id=sid, answer=30)
        assert storage.responses[0][3] >= 42
        assert storage.sessions[sid].step_timings["age"] >= 42


class TestTerminalSessions:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["advance", "retreat", "abandon"])
    async def test_closed_session_rejects_mutations(self, engine, storage, method):
        sid = await _start(engine, storage)
        await _walk(engine, storage, sid, 16)

        kwargs = {"answer": 1} if method == "advance" else {}
        with pytest.raises(SessionClosedError):
            await getattr(engine, method)(storage, session_id=sid, **kwargs)

    @pytest.mark.asyncio
    async def test_abandon(self, engine, storage):
        sid = await _start(engine, storage)
        info = await engine.abandon(storage, session_id=sid)
        assert info.status == "abandoned"
        result = await engine.get_current_step(storage, session_id=sid)
        assert result.decision is None
        assert result.step is None

    @pytest.mark.asyncio
    async def test_lead_failure_keeps_session_active(self, engine, storage):
        sid = await _start(engine, storage)
        await _walk(engine, storage, sid, 30, "CA")
        storage.fail_create_lead = ConnectionError("db down")

        with pytest.raises(ConnectionError):
            await engine.advance(storage, session_id=sid, answer="a@b.co")

        saved = storage.sessions[sid]
        assert saved.status == SessionStatus.IN_PROGRESS
        assert saved.current_step_order == 2
        assert "email" not in saved.answers


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_duplicate_next_clicks_apply_in_order(self, engine, storage):
        """Two advances fired together are serialized; the second one
        answers the step the first one moved to."""
        sid = await _start(engine, storage)
        first, second = await asyncio.gather(
            engine.advance(storage, session_id=sid, answer=30),
            engine.advance(storage, session_id=sid, answer="CA"),
        )
        assert first.decision == StepDecision(step_order=1)
        assert second.decision == StepDecision(step_order=2)
        assert storage.sessions[sid].answers == {"age": 30, "state": "CA"}
