from __future__ import annotations

import copy
import threading

from sidebet.adapters.store import BetStore, UserStore
from sidebet.core.types import Bet, FireBack, Payout, PlacedBet, User


class MemoryStore(BetStore, UserStore):
    """Process-local store backed by dicts.

    Records are deep-copied on the way in and out, so the engine only ever sees snapshots.
    """

    def __init__(self) -> None:
        self._mu = threading.Lock()
        self._users: dict[str, User] = {}
        self._credit_refs: set[str] = set()
        self._bets: dict[str, Bet] = {}
        self._placed: list[PlacedBet] = []
        self._fire_backs: dict[str, FireBack] = {}
        self._payouts: list[Payout] = []

    # users

    def get_user(self, user_id: str) -> User | None:
        with self._mu:
            u = self._users.get(user_id)
            return copy.deepcopy(u) if u else None

    def save_user(self, user: User, credit_ref: str | None = None) -> None:
        with self._mu:
            self._users[user.id] = copy.deepcopy(user)
            if credit_ref is not None:
                self._credit_refs.add(credit_ref)

    def credit_applied(self, credit_ref: str) -> bool:
        with self._mu:
            return credit_ref in self._credit_refs

    def list_users(self) -> list[User]:
        with self._mu:
            return [copy.deepcopy(u) for u in self._users.values()]

    # bets

    def get_bet(self, bet_id: str) -> Bet | None:
        with self._mu:
            b = self._bets.get(bet_id)
            return copy.deepcopy(b) if b else None

    def save_bet(self, bet: Bet) -> None:
        with self._mu:
            self._bets[bet.id] = copy.deepcopy(bet)

    def delete_bet(self, bet_id: str) -> None:
        with self._mu:
            self._bets.pop(bet_id, None)

    def list_bets(self) -> list[Bet]:
        with self._mu:
            bets = [copy.deepcopy(b) for b in self._bets.values()]
        bets.sort(key=lambda b: b.created_at)
        return bets

    # placed bets are frozen dataclasses, no copy needed

    def add_placed_bet(self, placed: PlacedBet) -> None:
        with self._mu:
            self._placed.append(placed)

    def placed_bets_for_bet(self, bet_id: str) -> list[PlacedBet]:
        with self._mu:
            return [p for p in self._placed if p.bet_id == bet_id]

    def placed_bets_for_user(self, user_id: str) -> list[PlacedBet]:
        with self._mu:
            return [p for p in self._placed if p.user_id == user_id]

    # fire backs

    def get_fire_back(self, fire_back_id: str) -> FireBack | None:
        with self._mu:
            fb = self._fire_backs.get(fire_back_id)
            return copy.deepcopy(fb) if fb else None

    def save_fire_back(self, fire_back: FireBack) -> None:
        with self._mu:
            self._fire_backs[fire_back.id] = copy.deepcopy(fire_back)

    def fire_backs_for_bet(self, bet_id: str) -> list[FireBack]:
        with self._mu:
            out = [copy.deepcopy(fb) for fb in self._fire_backs.values() if fb.bet_id == bet_id]
        out.sort(key=lambda fb: fb.created_at)
        return out

    # payouts

    def add_payout(self, payout: Payout) -> None:
        with self._mu:
            self._payouts.append(payout)

    def payouts_for_bet(self, bet_id: str) -> list[Payout]:
        with self._mu:
            return [p for p in self._payouts if p.bet_id == bet_id]
