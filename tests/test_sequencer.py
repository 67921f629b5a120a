"""StepSequencer tests — routing overrides, skip chains and terminal decisions.

Covers:
  - sequential default (next order, or submit after the last step)
  - option overrides: numeric jump, "submit", "end"
  - multi-choice precedence: submit > end > lowest numeric target
  - non-forward numeric targets fall back to sequential routing
  - skip chains over hidden steps, including runs of several
  - disqualification during the forward walk
  - a runaway walk falls back to submit
"""

import logging

import pytest

from offer_funnel.errors import SequencingDeadlock
from offer_funnel.models.session import (
    DisqualifiedDecision,
    EndDecision,
    StepDecision,
    SubmitDecision,
)
from offer_funnel.models.step import Step
from offer_funnel.sequencer import StepSequencer


def _step(sid, order, type_="text_input", **kwargs):
    return Step(id=sid, order=order, type=type_, **kwargs)


def _opt(value, next_step=None):
    return {"value": value, "label": value.title(), "next_step": next_step}


@pytest.fixture
def sequencer():
    return StepSequencer()


# =====================================================================
# first_step
# =====================================================================


class TestFirstStep:

    def test_lowest_order(self, sequencer):
        steps = [_step("b", 3), _step("a", 1), _step("c", 7)]
        assert sequencer.first_step(steps) == StepDecision(step_order=1)

    def test_first_step_ignores_visibility(self, sequencer):
        """The entry step is shown even if it carries rules."""
        steps = [_step("a", 0, conditional_logic={"show_if": [
            {"step_id": "zzz", "operator": "equals", "value": "x"},
        ]})]
        assert sequencer.first_step(steps).step_order == 0

    def test_empty_offer_raises(self, sequencer):
        with pytest.raises(ValueError, match="no steps"):
            sequencer.first_step([])


# =====================================================================
# Sequential default
# =====================================================================


class TestSequential:

    def test_next_order(self, sequencer):
        steps = [_step("a", 0), _step("b", 1), _step("c", 2)]
        decision = sequencer.next_step(steps, steps[0], "hello", {})
        assert decision == StepDecision(step_order=1)

    def test_last_step_submits(self, sequencer):
        steps = [_step("a", 0), _step("b", 1)]
        decision = sequencer.next_step(steps, steps[1], "x", {"a": "y"})
        assert isinstance(decision, SubmitDecision)

    def test_option_without_override_is_sequential(self, sequencer):
        steps = [
            _step("a", 0, "single_choice", options=[_opt("x"), _opt("y", 2)]),
            _step("b", 1),
            _step("c", 2),
        ]
        assert sequencer.next_step(steps, steps[0], "x", {}) == StepDecision(step_order=1)

    def test_does_not_mutate_answers(self, sequencer):
        steps = [_step("a", 0), _step("b", 1)]
        answers = {"z": 1}
        sequencer.next_step(steps, steps[0], "v", answers)
        assert answers == {"z": 1}


# =====================================================================
# Option overrides
# =====================================================================


class TestOverrides:

    @pytest.fixture
    def steps(self):
        return [
            _step("pick", 0, "single_choice", options=[
                _opt("jump", 3), _opt("done", "submit"), _opt("bye", "end"), _opt("plain"),
            ]),
            _step("b", 1),
            _step("c", 2),
            _step("d", 3),
        ]

    def test_numeric_jump(self, sequencer, steps):
        assert sequencer.next_step(steps, steps[0], "jump", {}) == StepDecision(step_order=3)

    def test_submit(self, sequencer, steps):
        assert isinstance(sequencer.next_step(steps, steps[0], "done", {}), SubmitDecision)

    def test_end(self, sequencer, steps):
        assert isinstance(sequencer.next_step(steps, steps[0], "bye", {}), EndDecision)

    def test_unknown_answer_is_sequential(self, sequencer, steps):
        assert sequencer.next_step(steps, steps[0], "nope", {}) == StepDecision(step_order=1)

    def test_jump_past_last_step_submits(self, sequencer):
        steps = [_step("pick", 0, "single_choice", options=[_opt("x", 9)]), _step("b", 1)]
        assert isinstance(sequencer.next_step(steps, steps[0], "x", {}), SubmitDecision)

    def test_backward_target_is_ignored(self, sequencer, caplog):
        steps = [
            _step("a", 0),
            _step("b", 1),
            _step("pick", 2, "single_choice", options=[_opt("back", 0), _opt("same", 2)]),
            _step("d", 3),
        ]
        with caplog.at_level(logging.WARNING, logger="offer_funnel.sequencer"):
            decision = sequencer.next_step(steps, steps[2], "back", {})
        assert decision == StepDecision(step_order=3), "backwards target falls back to sequential"
        assert "non-forward" in caplog.text

        assert sequencer.next_step(steps, steps[2], "same", {}) == StepDecision(step_order=3)


class TestMultiChoicePrecedence:

    @pytest.fixture
    def steps(self):
        return [
            _step("m", 0, "multi_choice", options=[
                _opt("x", 5), _opt("y", 2), _opt("s", "submit"), _opt("e", "end"), _opt("n"),
            ]),
            *[_step(f"s{i}", i) for i in range(1, 7)],
        ]

    def test_lowest_numeric_wins(self, sequencer, steps):
        assert sequencer.next_step(steps, steps[0], ["x", "y"], {}) == StepDecision(step_order=2)

    def test_submit_beats_everything(self, sequencer, steps):
        decision = sequencer.next_step(steps, steps[0], ["x", "e", "s"], {})
        assert isinstance(decision, SubmitDecision)

    def test_end_beats_numeric(self, sequencer, steps):
        assert isinstance(sequencer.next_step(steps, steps[0], ["y", "e"], {}), EndDecision)

    def test_numeric_beats_sequential(self, sequencer, steps):
        assert sequencer.next_step(steps, steps[0], ["n", "x"], {}) == StepDecision(step_order=5)

    def test_no_overrides_is_sequential(self, sequencer, steps):
        assert sequencer.next_step(steps, steps[0], ["n"], {}) == StepDecision(step_order=1)


# =====================================================================
# Skip chain
# =====================================================================


class TestSkipChain:

    def test_single_hidden_step_is_skipped(self, sequencer):
        steps = [
            _step("a", 0),
            _step("b", 1, conditional_logic={"hide_if": [
                {"step_id": "a", "operator": "equals", "value": "skip"},
            ]}),
            _step("c", 2),
        ]
        assert sequencer.next_step(steps, steps[0], "skip", {}) == StepDecision(step_order=2)
        assert sequencer.next_step(steps, steps[0], "keep", {}) == StepDecision(step_order=1)

    @pytest.mark.parametrize("plan,expected", [
        ("basic", 5),   # every conditional step hidden -> email
        ("pro", 1),     # pro_features shown
        ("team", 2),    # team_size shown
    ])
    def test_fixture_skip_chain(self, sequencer, skip_chain_steps, plan, expected):
        plan_step = skip_chain_steps[0]
        decision = sequencer.next_step(skip_chain_steps, plan_step, plan, {})
        assert decision == StepDecision(step_order=expected)

    def test_chain_continues_from_jump_target(self, sequencer, skip_chain_steps):
        """After pro_features, team_size is hidden and budget is shown."""
        pro_features = skip_chain_steps[1]
        decision = sequencer.next_step(
            skip_chain_steps, pro_features, "sso", {"plan": "pro"},
        )
        assert decision == StepDecision(step_order=3)

    def test_all_remaining_hidden_submits(self, sequencer):
        hidden = {"show_if": [{"step_id": "a", "operator": "equals", "value": "never"}]}
        steps = [
            _step("a", 0),
            _step("b", 1, conditional_logic=hidden),
            _step("c", 2, conditional_logic=hidden),
        ]
        assert isinstance(sequencer.next_step(steps, steps[0], "x", {}), SubmitDecision)


# =====================================================================
# Disqualification
# =====================================================================


class TestDisqualification:

    def test_age_gate(self, sequencer, age_gate_steps):
        age = age_gate_steps[0]
        decision = sequencer.next_step(age_gate_steps, age, 16, {})
        assert decision == DisqualifiedDecision(redirect_url="/too-young")

        decision = sequencer.next_step(age_gate_steps, age, 25, {})
        assert decision == StepDecision(step_order=1)

    def test_disqualify_checked_on_step_reached_by_skip(self, sequencer):
        steps = [
            _step("a", 0),
            _step("b", 1, conditional_logic={"hide_if": [
                {"step_id": "a", "operator": "equals", "value": "no"},
            ]}),
            _step("c", 2, conditional_logic={"disqualify_if": [
                {"step_id": "a", "operator": "equals", "value": "no"},
            ]}),
        ]
        decision = sequencer.next_step(steps, steps[0], "no", {})
        assert isinstance(decision, DisqualifiedDecision)
        assert decision.redirect_url is None, "the engine supplies the default URL"


# =====================================================================
# Deadlock fail-safe
# =====================================================================


class TestDeadlock:

    def test_deadlock_submits_and_logs(self, sequencer, monkeypatch, caplog):
        """A runaway forward walk ends the funnel with a submit instead of hanging."""
        def _runaway(*args):
            raise SequencingDeadlock("walk from order 1 exceeded 2 steps")

        monkeypatch.setattr(sequencer, "_walk", _runaway)
        steps = [_step("a", 0), _step("b", 1)]
        with caplog.at_level(logging.ERROR, logger="offer_funnel.sequencer"):
            decision = sequencer.next_step(steps, steps[0], "x", {})
        assert decision == SubmitDecision()
        assert "deadlock" in caplog.text.lower()

    def test_terminal_target_never_walks(self, sequencer, monkeypatch):
        def _runaway(*args):
            raise SequencingDeadlock("should not be reached")

        monkeypatch.setattr(sequencer, "_walk", _runaway)
        steps = [_step("a", 0, "yes_no", options=[_opt("no", "end")]), _step("b", 1)]
        assert sequencer.next_step(steps, steps[0], "no", {}) == EndDecision()
