"""
Tests for wallet debits and credits
Run with: pytest tests/test_ledger.py -v
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from sidebet.adapters.memory import MemoryStore
from sidebet.core.errors import AccountExists, InsufficientFunds, InvalidAmount, UserNotFound
from sidebet.core.ledger import Ledger
from sidebet.core.locks import KeyedLocks


@pytest.fixture
def ledger():
    lg = Ledger(MemoryStore())
    lg.open_account("alice", "50.00")
    return lg


class TestLedgerBasics:
    def test_debit(self, ledger):
        assert ledger.debit("alice", "20") == Decimal("30.00")
        assert ledger.balance("alice") == Decimal("30.00")

    def test_debit_whole_balance(self, ledger):
        ledger.debit("alice", "50.00")
        assert ledger.balance("alice") == Decimal("0.00")

    def test_overdraw_is_rejected_and_not_applied(self, ledger):
        with pytest.raises(InsufficientFunds):
            ledger.debit("alice", "50.01")
        assert ledger.balance("alice") == Decimal("50.00")

    @pytest.mark.parametrize("amount", ["0", "-1"])
    def test_debit_must_be_positive(self, ledger, amount):
        with pytest.raises(InvalidAmount):
            ledger.debit("alice", amount)

    def test_credit_allows_zero(self, ledger):
        assert ledger.credit("alice", "0") == Decimal("50.00")

    def test_credit_rejects_negative(self, ledger):
        with pytest.raises(InvalidAmount):
            ledger.credit("alice", "-1")

    def test_unknown_user(self, ledger):
        with pytest.raises(UserNotFound):
            ledger.debit("bob", "1")

    def test_open_account_rejects_negative_balance(self, ledger):
        with pytest.raises(InvalidAmount):
            ledger.open_account("bob", "-5")

    def test_open_account_twice_is_rejected(self, ledger):
        with pytest.raises(AccountExists):
            ledger.open_account("alice", "0")
        assert ledger.balance("alice") == Decimal("50.00")

    def test_credit_with_ref_applies_once(self, ledger):
        ledger.credit("alice", "10", ref="payout:pb_1")
        assert ledger.credit("alice", "10", ref="payout:pb_1") == Decimal("60.00")
        ledger.credit("alice", "10", ref="payout:pb_2")
        assert ledger.balance("alice") == Decimal("70.00")


class TestLedgerConcurrency:
    def test_racing_debits_never_overdraw(self, ledger):
        def attempt(_):
            try:
                ledger.debit("alice", "5.00")
                return True
            except InsufficientFunds:
                return False

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(attempt, range(40)))

        assert sum(results) == 10
        assert ledger.balance("alice") == Decimal("0.00")

    def test_debit_and_credit_interleave(self, ledger):
        ledger.open_account("bob", "0")

        def move(i):
            if i % 2:
                ledger.credit("bob", "1.00")
            else:
                ledger.debit("alice", "1.00")

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(move, range(40)))

        assert ledger.balance("alice") == Decimal("30.00")
        assert ledger.balance("bob") == Decimal("20.00")


class TestKeyedLocks:
    def test_idle_keys_are_forgotten(self):
        locks = KeyedLocks()
        with locks.hold("bet_1"):
            assert len(locks) == 1
        assert len(locks) == 0

    def test_entry_kept_while_someone_waits(self):
        locks = KeyedLocks()
        entered = threading.Event()
        order = []

        def second():
            entered.set()
            with locks.hold("bet_1"):
                order.append("second")

        with locks.hold("bet_1"):
            t = threading.Thread(target=second)
            t.start()
            entered.wait()
            order.append("first")
        t.join()

        assert order == ["first", "second"]
        assert len(locks) == 0
