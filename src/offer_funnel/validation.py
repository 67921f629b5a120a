"""Answer validation run before a visitor may advance.

Checks, in order:
  1. required — None, blank strings and empty selections are missing
  2. type     — email / phone / number / date formats, option membership
  3. rules    — pattern, min/max, min_length/max_length

Optional answers that are missing skip every further check.  An invalid
``pattern`` is logged and skipped.  A step's ``custom_message`` replaces
the generated message on any failure.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any

from offer_funnel.constants import EMAIL_PATTERN, PHONE_DIGITS
from offer_funnel.errors import StepValidationError
from offer_funnel.models.step import Step

logger = logging.getLogger(__name__)


def is_blank(answer: Any) -> bool:
    """True for answers that count as "not provided"."""
    if answer is None:
        return True
    if isinstance(answer, str):
        return not answer.strip()
    if isinstance(answer, (list, tuple, dict)):
        return len(answer) == 0
    return False


def validate_answer(step: Step, answer: Any) -> None:
    """Validate ``answer`` against ``step``'s type and validation rules.

    Raises:
        StepValidationError: with ``field`` set to the step id.
    """
    try:
        _check(step, answer)
    except StepValidationError as exc:
        custom = step.validation.custom_message
        if custom:
            raise StepValidationError(step.id, custom) from exc
        raise


def _check(step: Step, answer: Any) -> None:
    rules = step.validation

    # --- Required-field check ---
    if is_blank(answer):
        if rules.required:
            raise StepValidationError(step.id, "This field is required")
        return

    # --- Type-specific checks ---
    if step.type == "email":
        if not isinstance(answer, str) or not re.match(EMAIL_PATTERN, answer.strip()):
            raise StepValidationError(step.id, "Please enter a valid email address")

    elif step.type == "phone":
        digits = re.sub(r"\D", "", str(answer))
        if len(digits) != PHONE_DIGITS:
            raise StepValidationError(
                step.id, f"Please enter a valid {PHONE_DIGITS}-digit phone number"
            )

    elif step.type == "number":
        # bool is a subclass of int in Python, so reject it explicitly
        if isinstance(answer, bool):
            raise StepValidationError(step.id, "Please enter a number")
        try:
            float(answer)
        except (TypeError, ValueError):
            raise StepValidationError(step.id, "Please enter a number")

    elif step.type == "date":
        try:
            date.fromisoformat(str(answer))
        except ValueError:
            raise StepValidationError(
                step.id, f"Invalid date format: '{answer}'. Expected YYYY-MM-DD"
            )

    elif step.is_multi:
        if not isinstance(answer, list):
            raise StepValidationError(step.id, "Please select one or more options")
        unknown = [v for v in answer if step.option(v) is None]
        if unknown:
            raise StepValidationError(step.id, f"Unknown option(s): {unknown}")

    elif step.is_choice:
        if isinstance(answer, list) or step.option(answer) is None:
            raise StepValidationError(step.id, f"Unknown option: {answer!r}")

    # --- Rule checks ---
    if rules.pattern and not isinstance(answer, list):
        try:
            matched = re.search(rules.pattern, str(answer)) is not None
        except re.error as exc:
            logger.warning(
                "Step %s: skipping invalid pattern %r (%s)", step.id, rules.pattern, exc,
            )
            matched = True
        if not matched:
            raise StepValidationError(step.id, "Value does not match the expected format")

    if rules.min is not None or rules.max is not None:
        try:
            number = float(answer)
        except (TypeError, ValueError):
            number = None
        if number is not None:
            if rules.min is not None and number < rules.min:
                raise StepValidationError(step.id, f"Value must be at least {rules.min:g}")
            if rules.max is not None and number > rules.max:
                raise StepValidationError(step.id, f"Value must be at most {rules.max:g}")

    # Length applies to text, or to the number of selections for lists
    if isinstance(answer, list):
        length, unit = len(answer), "selections"
    else:
        length, unit = len(str(answer)), "characters"
    if rules.min_length is not None and length < rules.min_length:
        raise StepValidationError(step.id, f"Must be at least {rules.min_length} {unit}")
    if rules.max_length is not None and length > rules.max_length:
        raise StepValidationError(step.id, f"Must be at most {rules.max_length} {unit}")
