"""offer_funnel — Conditional branching SDK for multi-step lead-gen offers.

Public API:
    FunnelEngine      — session state machine (create / advance / retreat / abandon)
    FunnelStorage     — ABC the engine persists through
    StepSequencer     — picks the next step: routing, skip chain, disqualification
    LogicAggregator   — combines a step's show / hide / disqualify rules
    RuleEvaluator     — evaluates one conditional rule against collected answers
    OfferStore        — loads YAML offers into typed models with lookup helpers

Step / session models:
    Step              — one question of an offer
    FunnelSession     — a visitor's traversal state
    StepResult        — what every engine call returns
    Decision          — union of step / submit / end / disqualified outcomes
"""

from offer_funnel.engine import FunnelEngine
from offer_funnel.errors import (
    FunnelError,
    InvalidRuleReference,
    OfferNotFoundError,
    SequencingDeadlock,
    SessionClosedError,
    SessionNotFoundError,
    StepValidationError,
)
from offer_funnel.evaluator import RuleEvaluator, evaluate_rule
from offer_funnel.export import build_form_data, calculate_quality_score
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
)
from offer_funnel.models.step import Offer, Step
from offer_funnel.offers import OfferStore, describe_flow, find_offer_issues, normalize_steps
from offer_funnel.sequencer import StepSequencer
from offer_funnel.validation import validate_answer
from offer_funnel.visibility import LogicAggregator, resolve_visibility

__all__ = [
    # Engine & store
    "FunnelEngine",
    "FunnelStorage",
    "OfferStore",
    # Branching
    "LogicAggregator",
    "RuleEvaluator",
    "StepSequencer",
    "evaluate_rule",
    "resolve_visibility",
    # Helpers
    "build_form_data",
    "calculate_quality_score",
    "describe_flow",
    "find_offer_issues",
    "normalize_steps",
    "validate_answer",
    # Models
    "Decision",
    "DisqualifiedDecision",
    "EndDecision",
    "FunnelSession",
    "Offer",
    "SessionInfo",
    "Step",
    "StepDecision",
    "StepPayload",
    "StepResult",
    "SubmitDecision",
    # Errors
    "FunnelError",
    "InvalidRuleReference",
    "OfferNotFoundError",
    "SequencingDeadlock",
    "SessionClosedError",
    "SessionNotFoundError",
    "StepValidationError",
]
