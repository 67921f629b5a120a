"""Public model re-exports for offer_funnel.

Consumers should import from ``offer_funnel.models`` rather than
reaching into sub-modules directly.
"""

# --- Offer definitions ---
from offer_funnel.models.step import (
    CHOICE_TYPES,
    ConditionalLogic,
    ConditionalRule,
    NextStepTarget,
    Offer,
    RuleOperator,
    Step,
    StepOption,
    StepType,
    ValidationRules,
)

# --- Session / decisions ---
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
    Visibility,
)

__all__ = [
    # Offer definitions
    "CHOICE_TYPES",
    "ConditionalLogic",
    "ConditionalRule",
    "NextStepTarget",
    "Offer",
    "RuleOperator",
    "Step",
    "StepOption",
    "StepType",
    "ValidationRules",
    # Session
    "Decision",
    "DisqualifiedDecision",
    "EndDecision",
    "FunnelSession",
    "SessionInfo",
    "StepDecision",
    "StepPayload",
    "StepResult",
    "SubmitDecision",
    "Visibility",
]
