"""
Tests for the SQLite-backed store
Run with: pytest tests/test_sqlite_store.py -v
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from sidebet.core.ledger import Ledger
from sidebet.engine import WagerEngine
from sidebet.storage.sqlite import SqliteStore


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "sidebet.db")


def test_full_lifecycle_survives_reopen(db_path, clock):
    engine = WagerEngine(store=SqliteStore(db_path), clock=clock)
    engine.open_account("user1", "100.00", username="Arya")
    engine.open_account("user2", "100.00")
    bet = engine.create_bet(
        "user1",
        "Heads or tails?",
        [{"key": "A", "label": "Heads"}, {"key": "B", "label": "Tails"}],
        clock.now() + timedelta(hours=1),
        minimum_wager="1.50",
    )
    engine.place_bet(bet.id, "user1", "A", "20.00")
    engine.place_bet(bet.id, "user2", "B", "10.00", is_partial=False)
    fb = engine.fire_back(bet.id, "user2", "25.00")
    engine.respond_to_fire_back(fb.id, False, responder_id="user1")
    engine.lock_bet(bet.id, by_user="user1")
    engine.settle(bet.id, "A")

    reopened = SqliteStore(db_path)
    stored = reopened.get_bet(bet.id)
    assert stored.status == "settled"
    assert stored.winning_option == "A"
    assert stored.minimum_wager == Decimal("1.50")
    assert stored.closing_time == bet.closing_time
    assert stored.options["A"].odds == Decimal("1.43")
    assert stored.options["B"].label == "Tails"
    assert list(stored.options) == ["A", "B"]

    placed = reopened.placed_bets_for_bet(bet.id)
    assert [p.potential_winnings for p in placed] == [Decimal("22.00"), Decimal("28.50")]
    assert [p.is_partial for p in placed] == [True, False]
    assert reopened.placed_bets_for_user("user2")[0].selected_option == "B"

    assert reopened.get_fire_back(fb.id).status == "declined"
    assert reopened.get_fire_back(fb.id).responded_at is not None
    assert [p.user_id for p in reopened.payouts_for_bet(bet.id)] == ["user1"]

    user1 = reopened.get_user("user1")
    assert user1.wallet_balance == Decimal("102.00")
    assert user1.username == "Arya"
    assert [u.id for u in reopened.list_users()] == ["user1", "user2"]


def test_missing_records(db_path):
    store = SqliteStore(db_path)
    assert store.get_bet("nope") is None
    assert store.get_user("nope") is None
    assert store.get_fire_back("nope") is None
    assert store.list_bets() == []


def test_challenged_users_round_trip(db_path, clock):
    engine = WagerEngine(store=SqliteStore(db_path), clock=clock)
    engine.open_account("user1", "10")
    bet = engine.create_bet(
        "user1",
        "Race you?",
        ["Me", "You"],
        clock.now() + timedelta(hours=1),
        visibility="challenge",
        challenged_users=["user2", "user3"],
    )
    assert SqliteStore(db_path).get_bet(bet.id).challenged_users == ["user2", "user3"]


def test_credit_refs_survive_reopen(db_path):
    Ledger(SqliteStore(db_path)).open_account("user1", "10")
    Ledger(SqliteStore(db_path)).credit("user1", "5", ref="payout:pb_1")

    ledger = Ledger(SqliteStore(db_path))
    ledger.credit("user1", "5", ref="payout:pb_1")
    assert ledger.balance("user1") == Decimal("15.00")


class PlacedBetsTableBroken(SqliteStore):
    def add_placed_bet(self, placed):
        raise RuntimeError("disk I/O error")


def test_failed_opening_stake_leaves_no_row(db_path, clock):
    engine = WagerEngine(store=PlacedBetsTableBroken(db_path), clock=clock)
    engine.open_account("user1", "100")

    with pytest.raises(RuntimeError):
        engine.create_bet("user1", "x", ["Yes", "No"], clock.now() + timedelta(hours=1), creator_stake=("Yes", "25"))

    assert SqliteStore(db_path).list_bets() == []
    assert SqliteStore(db_path).get_user("user1").wallet_balance == Decimal("100.00")
