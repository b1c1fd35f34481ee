from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from decimal import Decimal

from sidebet.adapters.memory import MemoryStore
from sidebet.adapters.store import BetStore, UserStore
from sidebet.core.clock import Clock, SystemClock
from sidebet.core.errors import BetNotFound, NotAuthorized
from sidebet.core.ledger import Ledger
from sidebet.core.lifecycle import effective_status, sync_status, transition
from sidebet.core.locks import KeyedLocks
from sidebet.core.notices import NoticeBus
from sidebet.core.pricing import PricingParams
from sidebet.core.types import Bet, FireBack, Notice, PlacedBet, Placement, SettlementResult, User
from sidebet.services.fire_back import FireBackService
from sidebet.services.placement import OptionInput, WagerPlacementService
from sidebet.services.settlement import SettlementService
from sidebet.settings import Settings, settings as default_settings
from sidebet.storage.sqlite import SqliteStore

logger = logging.getLogger(__name__)


class WagerEngine:
    """Entry point for callers (UI, API, CLI).

    Wires one store, one clock and the pricing parameters into the ledger and the three
    services. Per-bet locks are shared by every service so a stake, a fire back and a
    settlement on the same bet never interleave.
    """

    def __init__(
        self,
        store: BetStore | None = None,
        users: UserStore | None = None,
        clock: Clock | None = None,
        params: PricingParams | None = None,
        default_initial_odds: Decimal = Decimal("2.0"),
    ):
        if store is None:
            store = MemoryStore()
        if users is None:
            if not isinstance(store, UserStore):
                raise TypeError("store does not hold users; pass users=")
            users = store
        self.bets = store
        self.users = users
        self.clock = clock or SystemClock()
        self.params = params or PricingParams()
        self.notices = NoticeBus()
        self.ledger = Ledger(users)

        bet_locks = KeyedLocks()
        self._bet_locks = bet_locks
        self.placement = WagerPlacementService(
            store,
            self.ledger,
            bet_locks,
            self.clock,
            self.notices,
            params=self.params,
            default_initial_odds=default_initial_odds,
        )
        self.fire_backs = FireBackService(store, self.ledger, bet_locks, self.clock, self.notices)
        self.settlement = SettlementService(store, self.ledger, bet_locks, self.clock, self.notices)

    @classmethod
    def from_settings(cls, s: Settings | None = None, clock: Clock | None = None) -> "WagerEngine":
        s = s or default_settings
        store: MemoryStore | SqliteStore
        if s.store == "memory":
            store = MemoryStore()
        else:
            store = SqliteStore(s.db_path)
        params = PricingParams(house_edge=s.house_edge, odds_floor=s.odds_floor, unbacked_odds=s.unbacked_odds)
        return cls(store=store, clock=clock, params=params, default_initial_odds=s.default_initial_odds)

    # wallets

    def open_account(self, user_id: str, balance: object, username: str | None = None) -> User:
        return self.ledger.open_account(user_id, balance, username)

    def get_user(self, user_id: str) -> User:
        return self.ledger.get_user(user_id)

    def list_users(self) -> list[User]:
        return self.users.list_users()

    # bets

    def create_bet(
        self,
        creator_id: str,
        description: str,
        options: Sequence[OptionInput],
        closing_time: datetime,
        visibility: str = "public",
        challenged_users: Sequence[str] | None = None,
        minimum_wager: object | None = None,
        creator_stake: tuple[str, object] | None = None,
    ) -> Bet:
        return self.placement.create_bet(
            creator_id,
            description,
            options,
            closing_time,
            visibility=visibility,
            challenged_users=challenged_users,
            minimum_wager=minimum_wager,
            creator_stake=creator_stake,
        )

    def place_bet(self, bet_id: str, user_id: str, option_key: str, amount: object, *, is_partial: bool = True) -> Placement:
        return self.placement.place_bet(bet_id, user_id, option_key, amount, is_partial=is_partial)

    def get_bet(self, bet_id: str) -> Bet:
        """Read-only snapshot; status reflects the closing time even if not yet stored."""
        bet = self.bets.get_bet(bet_id)
        if bet is None:
            raise BetNotFound(f"Bet {bet_id} not found", bet_id=bet_id)
        bet.status = effective_status(bet, self.clock.now())
        return bet

    def list_bets(self) -> list[Bet]:
        now = self.clock.now()
        out = []
        for bet in self.bets.list_bets():
            bet.status = effective_status(bet, now)
            out.append(bet)
        return out

    def bet_feed(self, user_id: str, friend_ids: Iterable[str] | None = None) -> list[Bet]:
        """Bets a user may see.

        public: everyone. challenge: the creator and the challenged users.
        friends_only: the creator and their friends; without a friend list every bet is shown,
        the friend graph lives outside the engine.
        """
        friends = set(friend_ids) if friend_ids is not None else None
        out = []
        for bet in self.list_bets():
            if bet.creator_id == user_id or bet.visibility == "public":
                out.append(bet)
            elif bet.visibility == "challenge":
                if user_id in bet.challenged_users:
                    out.append(bet)
            elif friends is None or bet.creator_id in friends:
                out.append(bet)
        return out

    def placed_bets(self, bet_id: str) -> list[PlacedBet]:
        return self.bets.placed_bets_for_bet(bet_id)

    def user_bets(self, user_id: str) -> list[PlacedBet]:
        return self.bets.placed_bets_for_user(user_id)

    def _close(self, bet_id: str, to: str, kind: str, authorize: Callable[[Bet], None] | None = None) -> Bet:
        with self._bet_locks.hold(bet_id):
            bet = self.bets.get_bet(bet_id)
            if bet is None:
                raise BetNotFound(f"Bet {bet_id} not found", bet_id=bet_id)
            if authorize is not None:
                authorize(bet)
            now = self.clock.now()
            if sync_status(bet, now) and bet.status == to:
                # the closing time already locked it
                self.bets.save_bet(bet)
                return copy.deepcopy(bet)
            transition(bet, to)  # type: ignore[arg-type]
            self.bets.save_bet(bet)
        self.notices.publish(Notice(kind=kind, bet_id=bet_id, ts=now, message=f"Bet {bet_id} is now {to}"))
        return copy.deepcopy(bet)

    def lock_bet(self, bet_id: str, by_user: str | None = None) -> Bet:
        """Stop accepting stakes before the closing time (creator only when by_user is given)."""

        def creator_only(bet: Bet) -> None:
            if by_user is not None and by_user != bet.creator_id:
                raise NotAuthorized(f"Only the creator can lock bet {bet_id}", bet_id=bet_id, user_id=by_user)

        return self._close(bet_id, "locked", "bet_locked", creator_only)

    def dispute_bet(self, bet_id: str, by_user: str | None = None) -> Bet:
        # Resolution happens outside the engine; an arbiter later calls settle().

        def participants_only(bet: Bet) -> None:
            if by_user is None:
                return
            involved = {p.user_id for p in self.bets.placed_bets_for_bet(bet_id)} | {bet.creator_id}
            if by_user not in involved:
                raise NotAuthorized(f"{by_user} has no stake in bet {bet_id}", bet_id=bet_id, user_id=by_user)

        return self._close(bet_id, "disputed", "bet_disputed", participants_only)

    # fire back

    def fire_back(self, bet_id: str, challenger_id: str, new_wager: object) -> FireBack:
        return self.fire_backs.fire_back(bet_id, challenger_id, new_wager)

    def respond_to_fire_back(self, fire_back_id: str, accept: bool, responder_id: str | None = None) -> FireBack:
        return self.fire_backs.respond(fire_back_id, accept, responder_id)

    def fire_backs_for_bet(self, bet_id: str) -> list[FireBack]:
        return self.fire_backs.for_bet(bet_id)

    def fire_backs_for_creator(self, user_id: str) -> list[FireBack]:
        return self.fire_backs.for_creator(user_id)

    # settlement

    def settle(self, bet_id: str, winning_option: str) -> SettlementResult:
        return self.settlement.settle(bet_id, winning_option)

    def subscribe(self, listener: Callable[[Notice], None]) -> Callable[[], None]:
        return self.notices.subscribe(listener)
