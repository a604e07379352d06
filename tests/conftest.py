# tests/conftest.py
"""
Pytest configuration and shared fixtures for the listline engine tests.

Run:
    pytest tests/ -v
"""
import asyncio
import random

import pytest

from config import Config, SimulationConfig
from listline_system.engine import SimulationEngine
from listline_system.services.gateway import InMemoryGateway, LedgerGateway

# =============================================================================
# CONSTANTS
# =============================================================================

FIXED_TIME = 1_700_000_000.0
DEFAULT_SEED = 1234


# =============================================================================
# HELPERS
# =============================================================================

def fixed_clock():
    return FIXED_TIME


class FailingGateway(LedgerGateway):
    """Gateway whose every call fails, like a backing store that is down."""

    def __init__(self):
        self.calls = 0

    async def confirm_successor(self, nomination):
        self.calls += 1
        raise ConnectionError("backing store unavailable")

    async def decline_successor(self, nomination):
        self.calls += 1
        raise ConnectionError("backing store unavailable")

    async def send_payout(self, member, amount):
        self.calls += 1
        raise ConnectionError("payment provider unavailable")


class SlowGateway(InMemoryGateway):
    """In-memory gateway that yields to the event loop before answering."""

    def __init__(self, delay=0.01):
        super().__init__()
        self.delay = delay

    async def confirm_successor(self, nomination):
        await asyncio.sleep(self.delay)
        await super().confirm_successor(nomination)

    async def decline_successor(self, nomination):
        await asyncio.sleep(self.delay)
        await super().decline_successor(nomination)

    async def send_payout(self, member, amount):
        await asyncio.sleep(self.delay)
        await super().send_payout(member, amount)


class FixedDraw:
    """Random stand-in whose randint always returns the same number."""

    def __init__(self, value):
        self.value = value

    def randint(self, a, b):
        return self.value


# =============================================================================
# CONFIG FIXTURES
# =============================================================================

@pytest.fixture(autouse=True)
def clean_config():
    """Config is class-level state; isolate every test."""
    Config.clear()
    yield
    Config.clear()


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def gateway():
    return InMemoryGateway()


@pytest.fixture
def make_engine(gateway):
    """
    Factory for seeded engines with a fixed clock.

    Usage:
        engine = make_engine(view_weight="0", conversion_rate="1")
    """
    def factory(seed=DEFAULT_SEED, gateway=gateway, **params):
        return SimulationEngine(
            SimulationConfig.from_mapping(params),
            rng=random.Random(seed),
            clock=fixed_clock,
            gateway=gateway,
        )
    return factory


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def chain(engine):
    """
    system -> A -> B -> C -> D, nobody deposited.

    Returns:
        Dict of name -> member id
    """
    a = engine.add_member(name="Alice")
    b = engine.add_member(a.id, name="Bob")
    c = engine.add_member(b.id, name="Carol")
    d = engine.add_member(c.id, name="Dave")
    return {"A": a.id, "B": b.id, "C": c.id, "D": d.id}


@pytest.fixture
def nominated(make_engine):
    """
    Engine holding one proposed nomination.

    With a sequence max of 1, Dave's deposit makes him Carol's first
    depositing recruit and the draw always matches. Alice is the position 1
    of that deposit, so Dave would move under Alice.
    """
    engine = make_engine(successor_sequence_max=1)
    a = engine.add_member(name="Alice")
    b = engine.add_member(a.id, name="Bob")
    c = engine.add_member(b.id, name="Carol")
    d = engine.add_member(c.id, name="Dave")
    engine.process_deposit(d.id)

    nomination = engine.nominations()[0]
    ids = {"A": a.id, "B": b.id, "C": c.id, "D": d.id}
    return engine, nomination, ids
