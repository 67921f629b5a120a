import pytest

from helpers.loader import load_fixture_steps
from helpers.storage import MockStorage
from offer_funnel.engine import FunnelEngine
from offer_funnel.offers import OfferStore


@pytest.fixture(scope="session")
def offer_store():
    """Load the offers/ directory at the repo root once per test session."""
    s = OfferStore()
    s.load()
    return s


@pytest.fixture
def age_gate_steps():
    return load_fixture_steps("age_gate")


@pytest.fixture
def skip_chain_steps():
    return load_fixture_steps("skip_chain")


@pytest.fixture
def storage(offer_store, age_gate_steps, skip_chain_steps):
    """Fresh MockStorage holding every fixture offer plus solar-quote."""
    return MockStorage({
        "age-gate": age_gate_steps,
        "skip-chain": skip_chain_steps,
        "solar-quote": offer_store.get_steps("solar-quote"),
    })


@pytest.fixture
def engine():
    return FunnelEngine()
