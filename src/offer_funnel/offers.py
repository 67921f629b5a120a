"""Offer definitions — YAML loading, step normalization and authoring checks.

Offers are authored as YAML files, one offer per file::

    id: solar-quote
    name: Solar Quote
    slug: solar-quote
    steps:
      - id: owner
        order: 0
        type: yes_no
        question: Do you own your home?
        options:
          - {value: "yes", label: "Yes"}
          - {value: "no", label: "No", next_step: end}

Option values are strings.  Quote them: YAML reads unquoted ``yes`` / ``no``
as booleans, which are stored as ``"true"`` / ``"false"``, and numbers are
stored in their plain string form (``1`` becomes ``"1"``).

Usage::

    store = OfferStore("offers/")    # defaults to offers/ at the repo root
    store.load()
    steps = store.get_steps("solar-quote")
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

import yaml

from offer_funnel.models.step import CHOICE_TYPES, Offer, Step

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to find the repo root (dir with pyproject.toml or .git).

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def load_offer(path: Path | str) -> Offer:
    """Parse one offer YAML file into an :class:`Offer`."""
    raw = load_yaml(path)
    if not isinstance(raw, dict):
        raise ValueError(f"Offer file {path} must contain a mapping, got {type(raw).__name__}")
    return Offer.model_validate(raw)


# ---------------------------------------------------------------------------
# Step normalization
# ---------------------------------------------------------------------------

def normalize_steps(steps: Iterable[Step]) -> list[Step]:
    """Return steps sorted by order and renumbered 0..n-1.

    Orders can drift during editing (gaps after deletes, duplicates during a
    reorder).  Numeric ``next_step`` targets are remapped onto the new
    numbering; a target with no step at that order maps to the next step
    after it, or past the end (which the sequencer treats as submit).
    """
    ordered = sorted(steps, key=lambda s: (s.order, s.id))
    old_orders = [s.order for s in ordered]
    if old_orders == list(range(len(ordered))):
        return ordered

    logger.warning("Renumbering step orders %s -> 0..%d", old_orders, len(ordered) - 1)

    def remap(target: int) -> int:
        for new, old in enumerate(old_orders):
            if old >= target:
                return new
        return len(ordered)

    normalized: list[Step] = []
    for new_order, step in enumerate(ordered):
        options = [
            opt.model_copy(update={"next_step": remap(opt.next_step)})
            if isinstance(opt.next_step, int) else opt
            for opt in step.options
        ]
        normalized.append(step.model_copy(update={"order": new_order, "options": options}))
    return normalized


# ---------------------------------------------------------------------------
# Authoring checks
# ---------------------------------------------------------------------------

def find_offer_issues(steps: Sequence[Step]) -> list[str]:
    """Report configuration problems that would make rules or routing inert.

    None of these break a visitor's session at runtime (bad rules evaluate
    false, bad targets fall back to sequential routing), but they almost
    always indicate an authoring mistake.
    """
    issues: list[str] = []
    by_id: dict[str, Step] = {}
    seen_orders: dict[int, str] = {}

    for step in steps:
        if step.id in by_id:
            issues.append(f"Duplicate step id '{step.id}'")
        by_id[step.id] = step
        if step.order in seen_orders:
            issues.append(
                f"Steps '{seen_orders[step.order]}' and '{step.id}' share order {step.order}"
            )
        seen_orders.setdefault(step.order, step.id)

    orders = set(seen_orders)
    for step in sorted(steps, key=lambda s: s.order):
        if step.options and step.type not in CHOICE_TYPES:
            issues.append(f"Step '{step.id}' ({step.type}) has options but is not a choice step")

        if step.validation.pattern:
            try:
                re.compile(step.validation.pattern)
            except re.error as exc:
                issues.append(f"Step '{step.id}' has an invalid pattern: {exc}")

        for rule in step.conditional_logic.rules:
            target = by_id.get(rule.step_id)
            if target is None:
                issues.append(f"Step '{step.id}' has a rule on unknown step '{rule.step_id}'")
            elif target.order >= step.order:
                issues.append(
                    f"Step '{step.id}' has a rule on step '{rule.step_id}' "
                    f"which is not earlier in the funnel"
                )
            if rule.value is None:
                issues.append(
                    f"Step '{step.id}' has a {rule.operator} rule on '{rule.step_id}' "
                    f"with no value"
                )

        for opt in step.options:
            if not isinstance(opt.next_step, int):
                continue
            if opt.next_step <= step.order:
                issues.append(
                    f"Option '{opt.value}' of step '{step.id}' routes backwards to {opt.next_step}"
                )
            elif opt.next_step not in orders:
                issues.append(
                    f"Option '{opt.value}' of step '{step.id}' routes to missing order {opt.next_step}"
                )

    return issues


def describe_flow(steps: Sequence[Step]) -> dict[str, list[str]]:
    """Summarize custom routing per step, e.g. ``{"owner": ["No → End"]}``.

    Only steps with at least one option override appear.  Step numbers are
    1-based as shown in the builder.
    """
    flow: dict[str, list[str]] = {}
    orders = {s.order for s in steps}
    for step in sorted(steps, key=lambda s: s.order):
        connections: list[str] = []
        for opt in step.options:
            if opt.next_step == "submit":
                connections.append(f"{opt.label} → Submit")
            elif opt.next_step == "end":
                connections.append(f"{opt.label} → End")
            elif isinstance(opt.next_step, int) and opt.next_step in orders:
                connections.append(f"{opt.label} → Step {opt.next_step + 1}")
        if connections:
            flow[step.id] = connections
    return flow


# ---------------------------------------------------------------------------
# OfferStore
# ---------------------------------------------------------------------------

class OfferStore:
    """Loads every ``*.yaml`` offer from a directory and provides lookup.

    Attributes populated after :meth:`load`:

        offers — dict[offer_id, Offer] with normalized steps
    """

    def __init__(self, offer_dir: str | Path | None = None) -> None:
        if offer_dir is None:
            offer_dir = find_repo_root() / "offers"
        self._base = Path(offer_dir)
        self.offers: dict[str, Offer] = {}

    def load(self) -> None:
        """Parse all offer files.  Raises ``FileNotFoundError`` if the directory is missing."""
        if not self._base.is_dir():
            raise FileNotFoundError(f"Missing offer directory: {self._base}")

        for path in sorted(self._base.glob("*.yaml")):
            offer = load_offer(path)
            if offer.id in self.offers:
                raise ValueError(f"Duplicate offer id '{offer.id}' in {path}")
            for issue in find_offer_issues(offer.steps):
                logger.warning("Offer %s: %s", offer.id, issue)
            self.offers[offer.id] = offer.model_copy(
                update={"steps": normalize_steps(offer.steps)}
            )

        logger.info("OfferStore loaded: %d offers from %s", len(self.offers), self._base)

    def get_offer(self, offer_id: str) -> Offer:
        """Return an offer by id.  Raises ``KeyError`` if unknown."""
        return self.offers[offer_id]

    def get_steps(self, offer_id: str) -> list[Step]:
        """Return the normalized steps of an offer.  Raises ``KeyError`` if unknown."""
        return list(self.offers[offer_id].steps)
