"""Fire Back: a challenger dares the bet's creator to match a bigger stake.

A fire back is an offer, not a stake. Creating one checks that the challenger could cover it
but moves no money. The creator either matches (their next stake on the bet must be at least
`new_wager`) or declines, which only produces a "backed down" notice.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sidebet.adapters.store import BetStore
from sidebet.core.clock import Clock
from sidebet.core.errors import (
    BelowMinimumWager,
    BetNotAcceptingWagers,
    BetNotFound,
    FireBackAlreadyPending,
    FireBackAlreadyResolved,
    FireBackNotFound,
    InsufficientFunds,
    InvalidAmount,
    NotAuthorized,
)
from sidebet.core.ledger import Ledger
from sidebet.core.lifecycle import effective_status, sync_status
from sidebet.core.locks import KeyedLocks
from sidebet.core.notices import NoticeBus
from sidebet.core.pricing import ZERO, to_money
from sidebet.core.types import Bet, FireBack, Notice, new_id

logger = logging.getLogger(__name__)


def matched_floor(fire_backs: list[FireBack]) -> Decimal | None:
    """The highest matched challenge on a bet, i.e. the creator's current minimum stake."""
    matched = [fb.new_wager for fb in fire_backs if fb.status == "matched"]
    return max(matched) if matched else None


class FireBackService:
    def __init__(self, bets: BetStore, ledger: Ledger, bet_locks: KeyedLocks, clock: Clock, notices: NoticeBus):
        self._bets = bets
        self._ledger = ledger
        self._locks = bet_locks
        self._clock = clock
        self._notices = notices

    def _load_bet(self, bet_id: str) -> Bet:
        bet = self._bets.get_bet(bet_id)
        if bet is None:
            raise BetNotFound(f"Bet {bet_id} not found", bet_id=bet_id)
        return bet

    def creator_stake(self, bet: Bet) -> Decimal:
        return sum(
            (p.amount for p in self._bets.placed_bets_for_bet(bet.id) if p.user_id == bet.creator_id),
            ZERO,
        )

    def fire_back(self, bet_id: str, challenger_id: str, new_wager: object) -> FireBack:
        wager = to_money(new_wager)
        if wager <= 0:
            raise InvalidAmount(f"Fire back must be positive, got {wager}", amount=wager)

        with self._locks.hold(bet_id):
            bet = self._load_bet(bet_id)
            now = self._clock.now()
            if sync_status(bet, now):
                self._bets.save_bet(bet)

            status = effective_status(bet, now)
            if status != "open":
                raise BetNotAcceptingWagers(
                    f"Bet {bet_id} is not open for fire backs (status: {status})",
                    bet_id=bet_id,
                    status=status,
                )
            if challenger_id == bet.creator_id:
                raise NotAuthorized("You cannot fire back on your own bet", bet_id=bet_id, user_id=challenger_id)
            if bet.visibility == "challenge" and challenger_id not in bet.challenged_users:
                raise NotAuthorized(f"Bet {bet_id} is a private challenge", bet_id=bet_id, user_id=challenger_id)

            to_beat = self.creator_stake(bet)
            if wager <= to_beat:
                raise BelowMinimumWager(
                    f"Fire back must be greater than the original bet (${to_beat})",
                    bet_id=bet_id,
                    minimum=to_beat,
                    amount=wager,
                )

            balance = self._ledger.balance(challenger_id)
            if wager > balance:
                raise InsufficientFunds(
                    f"Insufficient balance to back a ${wager} fire back: ${balance}",
                    user_id=challenger_id,
                    balance=balance,
                    amount=wager,
                )

            existing = self._bets.fire_backs_for_bet(bet_id)
            if any(fb.user_id == challenger_id and fb.status == "pending" for fb in existing):
                raise FireBackAlreadyPending(
                    f"{challenger_id} already has a pending fire back on bet {bet_id}",
                    bet_id=bet_id,
                    user_id=challenger_id,
                )

            fb = FireBack(id=new_id("fb"), user_id=challenger_id, bet_id=bet_id, new_wager=wager, created_at=now)
            self._bets.save_fire_back(fb)

        self._notices.publish(
            Notice(
                kind="fire_back_created",
                bet_id=bet_id,
                ts=now,
                message=f"{challenger_id} fired back on {bet.creator_id} with ${wager}",
                user_id=challenger_id,
                fire_back_id=fb.id,
            )
        )
        return fb

    def respond(self, fire_back_id: str, accept: bool, responder_id: str | None = None) -> FireBack:
        """Resolve a pending fire back. Only the bet's creator may answer.

        responder_id=None means the caller has already established it is acting for the creator.
        """
        found = self._bets.get_fire_back(fire_back_id)
        if found is None:
            raise FireBackNotFound(f"Fire back {fire_back_id} not found", fire_back_id=fire_back_id)

        with self._locks.hold(found.bet_id):
            fb = self._bets.get_fire_back(fire_back_id) or found
            bet = self._load_bet(fb.bet_id)
            if responder_id is not None and responder_id != bet.creator_id:
                raise NotAuthorized(
                    "Only the challenged creator can respond to a fire back",
                    fire_back_id=fire_back_id,
                    user_id=responder_id,
                )
            if fb.status != "pending":
                raise FireBackAlreadyResolved(
                    f"Fire back {fire_back_id} is already {fb.status}",
                    fire_back_id=fire_back_id,
                    status=fb.status,
                )

            now = self._clock.now()
            fb.status = "matched" if accept else "declined"
            fb.responded_at = now
            self._bets.save_fire_back(fb)

        if accept:
            message = f"{bet.creator_id} matched {fb.user_id}: minimum stake is now ${fb.new_wager}"
        else:
            message = f"{bet.creator_id} backed down from {fb.user_id}'s ${fb.new_wager} fire back"
        self._notices.publish(
            Notice(
                kind=f"fire_back_{fb.status}",
                bet_id=bet.id,
                ts=now,
                message=message,
                user_id=bet.creator_id,
                fire_back_id=fb.id,
            )
        )
        return fb

    def for_bet(self, bet_id: str) -> list[FireBack]:
        return self._bets.fire_backs_for_bet(bet_id)

    def for_creator(self, user_id: str) -> list[FireBack]:
        out: list[FireBack] = []
        for bet in self._bets.list_bets():
            if bet.creator_id == user_id:
                out.extend(self._bets.fire_backs_for_bet(bet.id))
        return out
