from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from sidebet.core.errors import AccountExists
from sidebet.core.types import Bet, SettlementResult
from sidebet.engine import WagerEngine


DEMO_USERS = [
    ("user123", "Arya", Decimal("100.00")),
    ("user456", "Atticus", Decimal("75.00")),
    ("user789", "Sophia", Decimal("120.00")),
    ("user101", "Jackson", Decimal("50.00")),
]


def seed_demo(engine: WagerEngine) -> list[Bet]:
    """Load a handful of friends and bets so the CLI has something to show.

    Stakes go through the normal placement path, so wallets and pools stay consistent.
    Refuses to run against a store that already holds any of the demo users.
    """
    taken = [user_id for user_id, _, _ in DEMO_USERS if engine.ledger.has_account(user_id)]
    if taken:
        raise AccountExists(f"Demo data already loaded ({', '.join(taken)} exist)", user_ids=taken)

    for user_id, name, balance in DEMO_USERS:
        engine.open_account(user_id, balance, username=name)

    now = engine.clock.now()
    bedtime = engine.create_bet(
        "user456",
        "What time will Atticus go to bed?",
        ["Before 10 PM", "Between 10-12 PM", "After 12 AM"],
        now + timedelta(hours=24),
        creator_stake=("Before 10 PM", "20.00"),
    )
    engine.place_bet(bedtime.id, "user123", "Between 10-12 PM", "30.00")
    engine.place_bet(bedtime.id, "user789", "After 12 AM", "15.00")

    project = engine.create_bet(
        "user789",
        "Will Sophia finish her project by Friday?",
        ["Yes", "No"],
        now + timedelta(hours=48),
        visibility="friends_only",
        creator_stake=("Yes", "25.00"),
    )
    engine.place_bet(project.id, "user123", "No", "10.00")

    miles = engine.create_bet(
        "user101",
        "How many miles will Jackson run this weekend?",
        ["Less than 5 miles", "5-10 miles", "More than 10 miles"],
        now + timedelta(hours=72),
        visibility="challenge",
        challenged_users=["user123", "user456"],
        minimum_wager="5.00",
        creator_stake=("More than 10 miles", "10.00"),
    )
    engine.place_bet(miles.id, "user456", "5-10 miles", "10.00")

    return engine.list_bets()


def run_scenario(engine: WagerEngine) -> tuple[Bet, SettlementResult]:
    """Two friends, one coin flip: the worked example of pool pricing and lock-in odds."""
    engine.open_account("user1", "100.00", username="User 1")
    engine.open_account("user2", "100.00", username="User 2")
    bet = engine.create_bet(
        "user1",
        "Heads or tails?",
        [{"key": "A", "label": "Heads", "initial_odds": "2.0"}, {"key": "B", "label": "Tails", "initial_odds": "2.0"}],
        engine.clock.now() + timedelta(hours=1),
    )
    engine.place_bet(bet.id, "user1", "A", "20.00")
    engine.place_bet(bet.id, "user2", "B", "10.00")
    engine.lock_bet(bet.id, by_user="user1")
    result = engine.settle(bet.id, "A")
    return engine.get_bet(bet.id), result
