"""Exception hierarchy for the offer funnel SDK.

Callers (typically the FastAPI server) map these to HTTP responses.  Two
conditions are detected but never propagated to callers:

  - InvalidRuleReference: a rule points at a missing or non-earlier step.
    The rule is treated as inert (always false) so a misconfigured funnel
    never crashes a visitor's session.
  - SequencingDeadlock: the sequencer's forward walk did not terminate.
    The sequencer fails safe by submitting.
"""


class FunnelError(Exception):
    """Base class for all SDK errors."""


class StepValidationError(FunnelError, ValueError):
    """An answer failed the current step's validation rules.

    The session is left unchanged; the UI re-prompts with ``message``.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class SessionNotFoundError(FunnelError, LookupError):
    """No session exists with the given id."""


class OfferNotFoundError(FunnelError, LookupError):
    """The offer does not exist or has no steps."""


class SessionClosedError(FunnelError, ValueError):
    """A terminal session (completed, abandoned, disqualified) was mutated."""


class InvalidRuleReference(FunnelError):
    """A conditional rule references a nonexistent or non-earlier step."""


class SequencingDeadlock(FunnelError):
    """The forward walk over steps exceeded the step list."""
