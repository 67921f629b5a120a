"""Lead export helpers run when a session completes with a submit.

``build_form_data`` flattens answers through each step's ``field_mapping``
into the record stored on the lead.  ``calculate_quality_score`` rates the
lead from 0 to 1:

    0.6  x  share of required steps answered (0.6 if none are required)
  + min(average seconds per answer / 30, 0.2)
  + 0.2  x  share of text answers longer than 3 characters
"""

from __future__ import annotations

from typing import Any, Sequence

from offer_funnel.constants import (
    QUALITY_COMPLETION_WEIGHT,
    QUALITY_TEXT_WEIGHT,
    QUALITY_TIME_CAP,
    QUALITY_TIME_SECONDS,
)
from offer_funnel.models.session import FunnelSession
from offer_funnel.models.step import Step
from offer_funnel.validation import is_blank


def build_form_data(steps: Sequence[Step], answers: dict[str, Any]) -> dict[str, Any]:
    """Map answers to external field names; unmapped or unanswered steps are dropped."""
    form_data: dict[str, Any] = {}
    for step in sorted(steps, key=lambda s: s.order):
        if not step.field_mapping or step.id not in answers:
            continue
        form_data[step.field_mapping] = answers[step.id]
    return form_data


def calculate_quality_score(
    steps: Sequence[Step],
    answers: dict[str, Any],
    step_timings: dict[str, int],
) -> float:
    """Score a completed session between 0 and 1."""
    answered = {sid: v for sid, v in answers.items() if not is_blank(v)}

    required = [s for s in steps if s.validation.required]
    if required:
        done = sum(1 for s in required if s.id in answered)
        completion = done / len(required) * QUALITY_COMPLETION_WEIGHT
    else:
        completion = QUALITY_COMPLETION_WEIGHT

    if answered:
        avg_seconds = sum(step_timings.get(sid, 0) for sid in answered) / len(answered)
        time_score = min(avg_seconds / QUALITY_TIME_SECONDS, QUALITY_TIME_CAP)
    else:
        time_score = 0.0

    text_answers = [v for v in answered.values() if isinstance(v, str) and len(v) > 3]
    text_score = len(text_answers) / max(len(answered), 1) * QUALITY_TEXT_WEIGHT

    return round(min(completion + time_score + text_score, 1.0), 4)


def build_lead_metadata(
    session: FunnelSession,
    steps: Sequence[Step],
) -> dict[str, Any]:
    """Metadata stored alongside the lead's form data."""
    return {
        "offer_id": session.offer_id,
        "session_id": session.session_id,
        "quality_score": calculate_quality_score(steps, session.answers, session.step_timings),
        "tracking": dict(session.tracking),
    }
