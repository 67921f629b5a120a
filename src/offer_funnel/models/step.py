"""Step models for multi-step offer funnels.

A funnel (``Offer``) is an ordered list of ``Step`` questions.  Each step
carries:

  - options: choice values, each with an optional ``next_step`` routing
    override (a target step order, ``"submit"`` or ``"end"``)
  - conditional_logic: ``show_if`` / ``hide_if`` / ``disqualify_if`` rule
    lists combined with a single AND/OR operator
  - validation: required / pattern / range / length constraints
  - field_mapping: external lead field the answer is exported under

All models accept both snake_case keys and the camelCase keys produced by
the offer builder UI (``stepId``, ``showIf``, ``nextStep``, ...), so stored
step JSON can be validated directly.
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


StepType = Literal[
    "single_choice",
    "multi_choice",
    "yes_no",
    "dropdown",
    "text_input",
    "email",
    "phone",
    "number",
    "date",
    "zip_code",
    "address",
]

RuleOperator = Literal["equals", "not_equals", "contains", "greater_than", "less_than"]

# Option-level routing override: a target step order, or a terminal action.
NextStepTarget = Union[int, Literal["submit", "end"]]


class FunnelModel(BaseModel):
    """Base model: snake_case attributes, camelCase aliases accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Options ---

def option_value(value: Any) -> str:
    """String form of an option value: bools lower-cased, integral floats without '.0'."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class StepOption(FunnelModel):
    """A selectable answer for choice-like steps."""

    value: str
    label: str
    next_step: Optional[NextStepTarget] = None

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, v: Any) -> Any:
        # Unquoted YAML scalars (yes, no, 1) arrive as bool or int
        if isinstance(v, (bool, int, float)):
            return option_value(v)
        return v

    @field_validator("label", mode="before")
    @classmethod
    def _coerce_label(cls, v: Any) -> Any:
        if isinstance(v, (bool, int, float)):
            return str(v)
        return v


# --- Conditional logic ---

class ConditionalRule(FunnelModel):
    """A single condition on an earlier step's answer.

    ``value`` is untyped on purpose: the evaluator decides how to compare it
    from the referenced step's type at evaluation time.
    """

    step_id: str
    operator: RuleOperator
    value: Any = None


class ConditionalLogic(FunnelModel):
    """Visibility and disqualification rules attached to a step.

    All three rule lists share ``operator``: AND requires every rule to be
    true, OR requires at least one.
    """

    show_if: List[ConditionalRule] = []
    hide_if: List[ConditionalRule] = []
    disqualify_if: List[ConditionalRule] = []
    operator: Literal["AND", "OR"] = "AND"
    disqualify_redirect_url: Optional[str] = None

    @property
    def rules(self) -> List[ConditionalRule]:
        """Every rule on the step regardless of list."""
        return [*self.disqualify_if, *self.hide_if, *self.show_if]


class ValidationRules(FunnelModel):
    """Answer constraints checked before the visitor may advance."""

    required: bool = False
    pattern: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    custom_message: Optional[str] = None


# --- Step ---

# Step types whose answers come from ``options``.
CHOICE_TYPES: frozenset[str] = frozenset({"single_choice", "multi_choice", "yes_no", "dropdown"})


class Step(FunnelModel):
    """One question screen in a funnel."""

    id: str
    order: int = Field(ge=0)
    type: StepType
    question: str = ""
    options: List[StepOption] = []
    conditional_logic: ConditionalLogic = Field(default_factory=ConditionalLogic)
    validation: ValidationRules = Field(default_factory=ValidationRules)
    field_mapping: Optional[str] = None
    placeholder: Optional[str] = None
    help_text: Optional[str] = None

    @property
    def is_choice(self) -> bool:
        """True for step types answered by picking options."""
        return self.type in CHOICE_TYPES

    @property
    def is_multi(self) -> bool:
        """True when the answer is a list of option values."""
        return self.type == "multi_choice"

    def option(self, value: Any) -> StepOption | None:
        """Return the option whose value matches ``value``, if any."""
        for opt in self.options:
            if opt.value == option_value(value):
                return opt
        return None


class Offer(FunnelModel):
    """A complete funnel definition as authored in the builder."""

    id: str
    name: str = ""
    slug: Optional[str] = None
    steps: List[Step] = []
