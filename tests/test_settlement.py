"""
Tests for settlement and payouts
Run with: pytest tests/test_settlement.py -v
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from sidebet.adapters.memory import MemoryStore
from sidebet.core.errors import AlreadySettled, BetNotClosed, BetNotFound, InvalidWinningOption, NotAuthorized
from sidebet.engine import WagerEngine


class TestSettle:
    def test_worked_example(self, engine, open_bet):
        engine.lock_bet(open_bet.id, by_user="user1")

        result = engine.settle(open_bet.id, "A")

        assert result.payouts == {"user1": Decimal("22.00")}
        assert engine.get_user("user1").wallet_balance == Decimal("102.00")
        assert engine.get_user("user2").wallet_balance == Decimal("90.00")
        bet = engine.get_bet(open_bet.id)
        assert bet.status == "settled"
        assert bet.winning_option == "A"

    def test_pays_once(self, engine, open_bet):
        engine.lock_bet(open_bet.id)
        engine.settle(open_bet.id, "B")

        with pytest.raises(AlreadySettled):
            engine.settle(open_bet.id, "B")
        assert engine.get_user("user2").wallet_balance == Decimal("118.50")

    def test_sums_multiple_stakes_per_user(self, engine, open_bet):
        engine.place_bet(open_bet.id, "user3", "B", "10.00")  # B at 1.90
        engine.place_bet(open_bet.id, "user3", "B", "10.00")  # B at 1.58
        engine.lock_bet(open_bet.id)

        result = engine.settle(open_bet.id, "B")

        assert result.payouts == {"user2": Decimal("28.50"), "user3": Decimal("34.80")}

    def test_closing_time_locks_for_settlement(self, engine, open_bet, clock):
        clock.advance(hours=1, seconds=1)
        result = engine.settle(open_bet.id, "B")
        assert result.payouts == {"user2": Decimal("28.50")}

    def test_open_bet_cannot_be_settled(self, engine, open_bet):
        with pytest.raises(BetNotClosed):
            engine.settle(open_bet.id, "A")
        assert engine.get_user("user1").wallet_balance == Decimal("80.00")

    def test_unknown_winner(self, engine, open_bet):
        engine.lock_bet(open_bet.id)
        with pytest.raises(InvalidWinningOption):
            engine.settle(open_bet.id, "C")
        assert engine.get_bet(open_bet.id).status == "locked"

    def test_unknown_bet(self, engine):
        with pytest.raises(BetNotFound):
            engine.settle("bet_missing", "A")

    def test_no_winners(self, engine, coin_flip, clock):
        engine.place_bet(coin_flip.id, "user1", "A", "10")
        clock.advance(hours=2)
        result = engine.settle(coin_flip.id, "B")
        assert result.payouts == {}
        assert engine.get_bet(coin_flip.id).status == "settled"


class TestDispute:
    def test_disputed_bet_settles_later(self, engine, open_bet):
        engine.dispute_bet(open_bet.id, by_user="user2")
        assert engine.get_bet(open_bet.id).status == "disputed"

        engine.settle(open_bet.id, "A")
        assert engine.get_bet(open_bet.id).status == "settled"

    def test_outsiders_cannot_dispute(self, engine, open_bet):
        with pytest.raises(NotAuthorized):
            engine.dispute_bet(open_bet.id, by_user="user3")

    def test_only_creator_locks(self, engine, open_bet):
        with pytest.raises(NotAuthorized):
            engine.lock_bet(open_bet.id, by_user="user2")


class CreditFailsOnce(MemoryStore):
    """Simulates a crash partway through the payout loop."""

    def __init__(self):
        super().__init__()
        self.fail_for: set[str] = set()

    def save_user(self, user, credit_ref=None):
        if user.id in self.fail_for:
            self.fail_for.discard(user.id)
            raise RuntimeError("connection lost")
        super().save_user(user, credit_ref=credit_ref)


class PayoutWriteFailsOnce(MemoryStore):
    """The winner is credited but recording the Payout fails."""

    def __init__(self):
        super().__init__()
        self.failures = 0

    def add_payout(self, payout):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("connection lost")
        super().add_payout(payout)


class ReentrantSettle(MemoryStore):
    """Calls back into the engine while the payout loop is running."""

    def __init__(self):
        super().__init__()
        self.during_payout = None

    def placed_bets_for_bet(self, bet_id):
        hook, self.during_payout = self.during_payout, None
        if hook:
            hook()
        return super().placed_bets_for_bet(bet_id)


class TestSettlementRecovery:
    def _two_winners(self, store, clock):
        engine = WagerEngine(store=store, clock=clock)
        for uid in ("user1", "user2", "user3"):
            engine.open_account(uid, "100.00")
        bet = engine.create_bet("user1", "x", ["A", "B"], clock.now() + timedelta(hours=1))
        engine.place_bet(bet.id, "user1", "A", "20.00")  # 22.00
        engine.place_bet(bet.id, "user2", "B", "10.00")
        engine.place_bet(bet.id, "user3", "A", "10.00")  # A at 1.27 -> 12.70
        engine.lock_bet(bet.id)
        return engine, bet

    def test_rerun_after_crash_skips_paid_winners(self, clock):
        store = CreditFailsOnce()
        engine, bet = self._two_winners(store, clock)
        store.fail_for.add("user3")

        with pytest.raises(RuntimeError):
            engine.settle(bet.id, "A")

        assert engine.get_bet(bet.id).status == "locked"
        assert engine.get_user("user1").wallet_balance == Decimal("102.00")
        assert engine.get_user("user3").wallet_balance == Decimal("90.00")

        result = engine.settle(bet.id, "A")

        assert result.payouts == {"user1": Decimal("22.00"), "user3": Decimal("12.70")}
        assert engine.get_user("user1").wallet_balance == Decimal("102.00")
        assert engine.get_user("user3").wallet_balance == Decimal("102.70")
        assert len(store.payouts_for_bet(bet.id)) == 2

    def test_rerun_after_lost_payout_record_pays_once(self, clock):
        store = PayoutWriteFailsOnce()
        engine, bet = self._two_winners(store, clock)
        store.failures = 1

        with pytest.raises(RuntimeError):
            engine.settle(bet.id, "A")

        assert engine.get_user("user1").wallet_balance == Decimal("102.00")
        assert store.payouts_for_bet(bet.id) == []

        result = engine.settle(bet.id, "A")

        assert result.payouts == {"user1": Decimal("22.00"), "user3": Decimal("12.70")}
        assert engine.get_user("user1").wallet_balance == Decimal("102.00")
        assert engine.get_user("user3").wallet_balance == Decimal("102.70")
        assert len(store.payouts_for_bet(bet.id)) == 2

    def test_rerun_cannot_switch_winner(self, clock):
        store = CreditFailsOnce()
        engine, bet = self._two_winners(store, clock)
        store.fail_for.add("user3")
        with pytest.raises(RuntimeError):
            engine.settle(bet.id, "A")

        with pytest.raises(InvalidWinningOption):
            engine.settle(bet.id, "B")

    def test_second_settlement_blocked_while_first_pays(self, clock):
        store = ReentrantSettle()
        engine, bet = self._two_winners(store, clock)
        blocked = []

        def settle_again():
            try:
                engine.settle(bet.id, "A")
            except AlreadySettled:
                blocked.append(True)

        store.during_payout = settle_again
        result = engine.settle(bet.id, "A")

        assert blocked == [True]
        assert result.payouts == {"user1": Decimal("22.00"), "user3": Decimal("12.70")}
        assert engine.get_user("user1").wallet_balance == Decimal("102.00")
