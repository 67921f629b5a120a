from pathlib import Path

from offer_funnel.models.step import Offer, Step
from offer_funnel.offers import load_offer, normalize_steps

FIXTURES_DIR = Path(__file__).resolve().parent.parent / "fixtures"


def load_fixture_offer(name: str) -> Offer:
    """
    Load tests/fixtures/<name>.yaml as an Offer, e.g. ``load_fixture_offer("age_gate")``.
    """
    return load_offer(FIXTURES_DIR / f"{name}.yaml")


def load_fixture_steps(name: str) -> list[Step]:
    """Normalized steps of a fixture offer, sorted by order."""
    return normalize_steps(load_fixture_offer(name).steps)
