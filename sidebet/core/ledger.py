from __future__ import annotations

import logging
from decimal import Decimal

from sidebet.adapters.store import UserStore
from sidebet.core.errors import AccountExists, InsufficientFunds, InvalidAmount, UserNotFound
from sidebet.core.locks import KeyedLocks
from sidebet.core.pricing import ZERO, to_money
from sidebet.core.types import User

logger = logging.getLogger(__name__)


class Ledger:
    """Sole owner of wallet balances.

    Every balance change is a read-check-write under that user's lock, so two debits racing
    on one wallet can never overdraw it. Different users never contend.
    """

    def __init__(self, users: UserStore, locks: KeyedLocks | None = None):
        self._users = users
        self._locks = locks or KeyedLocks()

    def open_account(self, user_id: str, balance: object = ZERO, username: str | None = None) -> User:
        amount = to_money(balance)
        if amount < 0:
            raise InvalidAmount(f"opening balance cannot be negative: {amount}", user_id=user_id)
        with self._locks.hold(user_id):
            if self._users.get_user(user_id) is not None:
                raise AccountExists(f"User {user_id} already has a wallet", user_id=user_id)
            user = User(id=user_id, wallet_balance=amount, username=username)
            self._users.save_user(user)
        logger.info("Opened wallet %s with %s", user_id, amount)
        return user

    def has_account(self, user_id: str) -> bool:
        return self._users.get_user(user_id) is not None

    def get_user(self, user_id: str) -> User:
        user = self._users.get_user(user_id)
        if user is None:
            raise UserNotFound(f"User {user_id} not found", user_id=user_id)
        return user

    def balance(self, user_id: str) -> Decimal:
        return self.get_user(user_id).wallet_balance

    def debit(self, user_id: str, amount: object) -> Decimal:
        """Take money out of a wallet; returns the new balance."""
        amt = to_money(amount)
        if amt <= 0:
            raise InvalidAmount(f"debit must be positive, got {amt}", user_id=user_id, amount=amt)
        with self._locks.hold(user_id):
            user = self.get_user(user_id)
            if amt > user.wallet_balance:
                raise InsufficientFunds(
                    f"Insufficient balance: ${user.wallet_balance} < ${amt}",
                    user_id=user_id,
                    balance=user.wallet_balance,
                    amount=amt,
                )
            user.wallet_balance = user.wallet_balance - amt
            self._users.save_user(user)
        logger.debug("Debited %s from %s (balance %s)", amt, user_id, user.wallet_balance)
        return user.wallet_balance

    def credit(self, user_id: str, amount: object, ref: str | None = None) -> Decimal:
        """Add money to a wallet; returns the new balance.

        A credit carrying `ref` is applied at most once: repeating it is a no-op, so a retried
        payout cannot pay the same winner twice.
        """
        amt = to_money(amount)
        if amt < 0:
            raise InvalidAmount(f"credit cannot be negative, got {amt}", user_id=user_id, amount=amt)
        with self._locks.hold(user_id):
            user = self.get_user(user_id)
            if ref is not None and self._users.credit_applied(ref):
                logger.info("Credit %s to %s already applied", ref, user_id)
                return user.wallet_balance
            user.wallet_balance = user.wallet_balance + amt
            self._users.save_user(user, credit_ref=ref)
        logger.debug("Credited %s to %s (balance %s)", amt, user_id, user.wallet_balance)
        return user.wallet_balance
