"""RuleEvaluator — evaluates a single conditional rule against prior answers.

A rule is ``{step_id, operator, value}``.  The evaluator looks up the
visitor's answer for ``step_id`` and compares it with ``value``:

  - **equals / not_equals**: case-sensitive string-normalized equality.  For
    multi-choice answers ``equals`` means "value is the only selection".
  - **contains**: substring match for text, membership for multi-choice.
  - **greater_than / less_than**: numeric comparison after coercing both
    sides; anything unparsable compares false.

An absent answer (never recorded, or the step was skipped) makes every
operator false except ``not_equals``, which is true.  A rule whose ``value``
is missing behaves the same way: it never matches.

Rules may only reference steps that come *before* the step owning them.
When both the owner and the offer's steps are known, a reference to a
missing step or to a step at or after the owner's order is inert: logged
and evaluated as false.

The evaluator never raises.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Literal

from pydantic import BaseModel

from offer_funnel.models.step import ConditionalRule, Step
from offer_funnel.models.step import option_value as _normalize

logger = logging.getLogger(__name__)


class RuleOperand(BaseModel):
    """An answer tagged with the kind it should be compared as.

    The kind is inferred at evaluation time from the referenced step's type
    so that rules carry no type information of their own.
    """

    kind: Literal["string", "number", "list"]
    value: Any


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class RuleEvaluator:
    """Evaluates ``ConditionalRule`` objects against an answer map.

    Args:
        steps: the offer's steps.  Used to type answers by step type and to
            detect invalid references; optional for bare evaluation.
    """

    def __init__(self, steps: Iterable[Step] = ()) -> None:
        self._steps = {s.id: s for s in steps}

    def evaluate(
        self,
        rule: ConditionalRule,
        answers: dict[str, Any],
        owner: Step | None = None,
    ) -> bool:
        """Return True if ``rule`` holds for ``answers``.

        Args:
            rule: the rule to evaluate
            answers: {step_id: raw answer}
            owner: the step the rule belongs to, enabling the earlier-step
                reference check (skipped when the evaluator has no steps)
        """
        if owner is not None and self._steps and not self.is_valid_reference(rule, owner):
            logger.warning(
                "Inert rule on step %s: references %r which is missing or not earlier",
                owner.id, rule.step_id,
            )
            return False

        answer = answers.get(rule.step_id)
        if answer is None:
            return rule.operator == "not_equals"

        operand = self.operand_for(rule.step_id, answer)
        return self._compare(rule.operator, operand, rule.value)

    def is_valid_reference(self, rule: ConditionalRule, owner: Step) -> bool:
        """True if ``rule`` references an existing step ordered before ``owner``."""
        target = self._steps.get(rule.step_id)
        if target is None:
            return False
        return target.order < owner.order

    def operand_for(self, step_id: str, answer: Any) -> RuleOperand:
        """Tag ``answer`` with the comparison kind of the step it answers.

        Falls back to the runtime type of the answer when the step is unknown.
        """
        step = self._steps.get(step_id)
        if step is not None:
            if step.is_multi:
                items = answer if isinstance(answer, list) else [answer]
                return RuleOperand(kind="list", value=items)
            if step.type == "number":
                return RuleOperand(kind="number", value=answer)
            return RuleOperand(kind="string", value=answer)

        if isinstance(answer, (list, tuple)):
            return RuleOperand(kind="list", value=list(answer))
        if isinstance(answer, (int, float)) and not isinstance(answer, bool):
            return RuleOperand(kind="number", value=answer)
        return RuleOperand(kind="string", value=answer)

    @staticmethod
    def _compare(op: str, operand: RuleOperand, value: Any) -> bool:
        """Apply ``op`` to a typed answer and the rule's expected value."""
        # A rule without a value never matches
        if value is None:
            return op == "not_equals"

        if op in ("equals", "not_equals"):
            if operand.kind == "list":
                selected = [_normalize(v) for v in operand.value]
                equal = selected == [_normalize(value)]
            elif operand.kind == "number":
                ans_num, val_num = _to_number(operand.value), _to_number(value)
                if ans_num is not None and val_num is not None:
                    equal = ans_num == val_num
                else:
                    equal = _normalize(operand.value) == _normalize(value)
            else:
                equal = _normalize(operand.value) == _normalize(value)
            return equal if op == "equals" else not equal

        if op == "contains":
            if operand.kind == "list":
                return _normalize(value) in [_normalize(v) for v in operand.value]
            return _normalize(value) in _normalize(operand.value)

        if op in ("greater_than", "less_than"):
            if operand.kind == "list":
                return False
            ans_num, val_num = _to_number(operand.value), _to_number(value)
            if ans_num is None or val_num is None:
                return False
            return ans_num > val_num if op == "greater_than" else ans_num < val_num

        logger.warning("Unknown rule operator: %s", op)
        return False


def evaluate_rule(rule: ConditionalRule, answers: dict[str, Any]) -> bool:
    """Evaluate ``rule`` without step context (types inferred from the answer)."""
    return RuleEvaluator().evaluate(rule, answers)
