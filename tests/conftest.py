from datetime import datetime, timedelta, timezone

import pytest

from sidebet.adapters.memory import MemoryStore
from sidebet.core.clock import ManualClock
from sidebet.engine import WagerEngine

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def engine(store, clock):
    eng = WagerEngine(store=store, clock=clock)
    for uid in ("user1", "user2", "user3"):
        eng.open_account(uid, "100.00")
    return eng


@pytest.fixture
def coin_flip(engine, clock):
    """Two-option bet by user1, closing in an hour, nothing staked yet."""
    return engine.create_bet(
        "user1",
        "Heads or tails?",
        [{"key": "A", "label": "Heads"}, {"key": "B", "label": "Tails"}],
        clock.now() + timedelta(hours=1),
    )


@pytest.fixture
def open_bet(engine, coin_flip):
    """coin_flip after user1 put 20 on A and user2 put 10 on B."""
    engine.place_bet(coin_flip.id, "user1", "A", "20.00")
    engine.place_bet(coin_flip.id, "user2", "B", "10.00")
    return engine.get_bet(coin_flip.id)
