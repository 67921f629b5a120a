"""LogicAggregator — combines a step's rule lists into one visibility verdict.

Evaluation order (first match wins):

  1. ``disqualify_if`` true  -> not visible, disqualified (with redirect URL)
  2. ``hide_if`` true        -> not visible
  3. ``show_if`` false       -> not visible
  4. otherwise               -> visible

Disqualification outranks show/hide: a visitor who meets a disqualify rule
is never shown the step, even if a show rule also holds.

Each list is combined with the step's ``operator``.  Empty lists never fire:
an empty ``disqualify_if`` or ``hide_if`` is false, an empty ``show_if``
means "always show".
"""

from __future__ import annotations

from typing import Any

from offer_funnel.evaluator import RuleEvaluator
from offer_funnel.models.session import Visibility
from offer_funnel.models.step import ConditionalRule, Step


class LogicAggregator:
    """Resolves step visibility using a shared :class:`RuleEvaluator`."""

    def __init__(self, evaluator: RuleEvaluator | None = None) -> None:
        self._evaluator = evaluator or RuleEvaluator()

    def resolve(self, step: Step, answers: dict[str, Any]) -> Visibility:
        logic = step.conditional_logic

        if self._holds(logic.disqualify_if, logic.operator, step, answers, empty=False):
            return Visibility(
                visible=False,
                disqualified=True,
                redirect_url=logic.disqualify_redirect_url,
            )

        if self._holds(logic.hide_if, logic.operator, step, answers, empty=False):
            return Visibility(visible=False)

        if not self._holds(logic.show_if, logic.operator, step, answers, empty=True):
            return Visibility(visible=False)

        return Visibility(visible=True)

    def _holds(
        self,
        rules: list[ConditionalRule],
        operator: str,
        step: Step,
        answers: dict[str, Any],
        *,
        empty: bool,
    ) -> bool:
        """Combine ``rules`` with AND/OR; ``empty`` is the verdict for no rules."""
        if not rules:
            return empty
        results = (self._evaluator.evaluate(rule, answers, owner=step) for rule in rules)
        if operator == "OR":
            return any(results)
        return all(results)


def resolve_visibility(step: Step, answers: dict[str, Any]) -> Visibility:
    """Resolve ``step`` visibility without offer context."""
    return LogicAggregator().resolve(step, answers)
