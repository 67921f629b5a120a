"""StepSequencer — decides where a visitor goes after answering a step.

Given the offer's steps, the current step and the visitor's answer, the
sequencer returns one of four decisions (see ``models.session``):

  1. Routing target
       Choice steps may override routing per option via ``next_step``.
       For multi-choice selections the precedence is:
         any "submit" > any "end" > lowest numeric target > sequential
       Numeric targets must point forward; targets at or before the
       current order are ignored and the step routes sequentially.
       Everything else routes sequentially (next order).

  2. Terminal targets ("submit" / "end") are returned as-is.

  3. Forward walk
       Starting at the target order, each step is resolved through the
       :class:`LogicAggregator`:
         disqualified -> DisqualifiedDecision (stop)
         hidden       -> skip to the next order
         visible      -> StepDecision
       Walking past the last step means the funnel is finished -> submit.

The sequencer is pure: it never mutates the caller's answers or touches
storage.  ``steps`` are expected to be normalized (contiguous orders).
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from offer_funnel.constants import TERMINAL_TARGETS
from offer_funnel.errors import SequencingDeadlock
from offer_funnel.evaluator import RuleEvaluator
from offer_funnel.models.session import (
    Decision,
    DisqualifiedDecision,
    EndDecision,
    StepDecision,
    SubmitDecision,
)
from offer_funnel.models.step import Step
from offer_funnel.visibility import LogicAggregator

logger = logging.getLogger(__name__)


class StepSequencer:
    """Computes next-step decisions for a funnel."""

    def first_step(self, steps: Sequence[Step]) -> StepDecision:
        """Return the entry step: the lowest order in the funnel.

        Raises:
            ValueError: if ``steps`` is empty.
        """
        if not steps:
            raise ValueError("Cannot start a funnel with no steps")
        return StepDecision(step_order=min(s.order for s in steps))

    def next_step(
        self,
        steps: Sequence[Step],
        current: Step,
        answer: Any,
        answers: dict[str, Any],
    ) -> Decision:
        """Decide what follows ``current`` once ``answer`` is recorded.

        Args:
            steps: every step of the offer
            current: the step just answered
            answer: the visitor's answer to ``current``
            answers: prior answers {step_id: value}; not modified

        Returns:
            StepDecision, SubmitDecision, EndDecision or DisqualifiedDecision.
        """
        working = {**answers, current.id: answer}

        target = self._routing_target(current, answer)
        if target in TERMINAL_TARGETS:
            return SubmitDecision() if target == "submit" else EndDecision()

        ordered = sorted(steps, key=lambda s: s.order)
        aggregator = LogicAggregator(RuleEvaluator(ordered))
        try:
            return self._walk(ordered, target, working, aggregator)
        except SequencingDeadlock as exc:
            logger.error("Sequencing deadlock after step %s: %s; submitting", current.id, exc)
            return SubmitDecision()

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def _routing_target(self, current: Step, answer: Any) -> int | str:
        """Resolve the per-option override, or the sequential successor order."""
        sequential = current.order + 1
        if not current.is_choice or answer is None:
            return sequential

        selected = answer if isinstance(answer, list) else [answer]
        targets = []
        for value in selected:
            opt = current.option(value)
            if opt is not None and opt.next_step is not None:
                targets.append(opt.next_step)

        for terminal in TERMINAL_TARGETS:
            if terminal in targets:
                return terminal

        numeric = [t for t in targets if isinstance(t, int)]
        forward = [t for t in numeric if t > current.order]
        if len(forward) < len(numeric):
            logger.warning(
                "Step %s: ignoring non-forward routing targets %s",
                current.id, sorted(set(numeric) - set(forward)),
            )
        if forward:
            return min(forward)
        return sequential

    # ------------------------------------------------------------------
    # Forward walk
    # ------------------------------------------------------------------

    def _walk(
        self,
        ordered: Sequence[Step],
        start: int,
        answers: dict[str, Any],
        aggregator: LogicAggregator,
    ) -> Decision:
        """Return the first visible step at or after ``start``.

        Raises:
            SequencingDeadlock: if more candidates are visited than there
                are steps.
        """
        budget = len(ordered)
        for step in ordered:
            if step.order < start:
                continue
            budget -= 1
            if budget < 0:
                raise SequencingDeadlock(f"walk from order {start} exceeded {len(ordered)} steps")

            verdict = aggregator.resolve(step, answers)
            if verdict.disqualified:
                return DisqualifiedDecision(redirect_url=verdict.redirect_url)
            if verdict.visible:
                return StepDecision(step_order=step.order)
            logger.debug("Skipping hidden step %s (order %d)", step.id, step.order)

        return SubmitDecision()
