"""Bet creation and stake placement."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from decimal import Decimal
from typing import Union

from sidebet.adapters.store import BetStore
from sidebet.core.clock import Clock
from sidebet.core.errors import (
    BelowMinimumWager,
    BetNotFound,
    InvalidAmount,
    InvalidBetDefinition,
    NotAuthorized,
)
from sidebet.core.ledger import Ledger
from sidebet.core.lifecycle import maybe_open, require_accepting, sync_status
from sidebet.core.locks import KeyedLocks
from sidebet.core.notices import NoticeBus
from sidebet.core.pool import WagerPool
from sidebet.core.pricing import PricingParams, round_odds, to_money
from sidebet.core.types import VISIBILITIES, Bet, BetOption, Notice, OptionSpec, PlacedBet, Placement, new_id
from sidebet.services.fire_back import matched_floor

logger = logging.getLogger(__name__)

OptionInput = Union[OptionSpec, Mapping[str, object], str]


def _as_spec(raw: OptionInput) -> OptionSpec:
    if isinstance(raw, OptionSpec):
        return raw
    if isinstance(raw, str):
        return OptionSpec(label=raw)
    if isinstance(raw, Mapping):
        label = raw.get("label") or raw.get("option")
        if not label:
            raise InvalidBetDefinition(f"option is missing a label: {dict(raw)!r}")
        odds = raw.get("initial_odds")
        key = raw.get("key")
        return OptionSpec(
            label=str(label),
            initial_odds=odds,  # type: ignore[arg-type]
            key=str(key) if key is not None else None,
        )
    raise InvalidBetDefinition(f"unsupported option definition: {raw!r}")


class WagerPlacementService:
    def __init__(
        self,
        bets: BetStore,
        ledger: Ledger,
        bet_locks: KeyedLocks,
        clock: Clock,
        notices: NoticeBus,
        params: PricingParams | None = None,
        default_initial_odds: Decimal = Decimal("2.0"),
    ):
        self._bets = bets
        self._ledger = ledger
        self._locks = bet_locks
        self._clock = clock
        self._notices = notices
        self._params = params or PricingParams()
        self._default_odds = default_initial_odds

    def _build_options(self, raw_options: Sequence[OptionInput]) -> dict[str, BetOption]:
        specs = [_as_spec(r) for r in raw_options]
        if len(specs) < 2:
            raise InvalidBetDefinition("A bet needs at least two options")

        options: dict[str, BetOption] = {}
        for s in specs:
            label = s.label.strip()
            key = (s.key if s.key is not None else label).strip()
            if not label or not key:
                raise InvalidBetDefinition("Option labels and keys cannot be empty")
            if key in options:
                raise InvalidBetDefinition(f"Duplicate option key {key!r}")
            try:
                initial = round_odds(s.initial_odds if s.initial_odds is not None else self._default_odds)
            except InvalidAmount:
                raise InvalidBetDefinition(f"Option {key!r} has non-numeric odds") from None
            if initial <= 1:
                raise InvalidBetDefinition(f"Option {key!r} needs initial odds above 1.0, got {initial}")
            options[key] = BetOption(key=key, label=label, initial_odds=initial, odds=initial)
        return options

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
        """Open a new market in `bid` state.

        With `creator_stake=(option_key, amount)` the creator's first stake is placed in the same
        step; if it is rejected the bet is never stored.
        """
        now = self._clock.now()
        self._ledger.get_user(creator_id)

        if not description or not description.strip():
            raise InvalidBetDefinition("A bet needs a description")
        if visibility not in VISIBILITIES:
            raise InvalidBetDefinition(f"Unknown visibility {visibility!r}")
        if closing_time.tzinfo is None:
            closing_time = closing_time.replace(tzinfo=timezone.utc)
        if closing_time <= now:
            raise InvalidBetDefinition("Closing time must be in the future")

        min_wager = None
        if minimum_wager is not None:
            min_wager = to_money(minimum_wager)
            if min_wager < 0:
                raise InvalidBetDefinition(f"Minimum wager cannot be negative, got {min_wager}")
            if min_wager == 0:
                min_wager = None

        bet = Bet(
            id=new_id("bet"),
            creator_id=creator_id,
            description=description.strip(),
            options=self._build_options(options),
            closing_time=closing_time.astimezone(timezone.utc),
            created_at=now,
            status="bid",
            visibility=visibility,  # type: ignore
            challenged_users=list(challenged_users or []) if visibility == "challenge" else [],
            minimum_wager=min_wager,
        )
        logger.info("Creating bet %s: %r (%d options)", bet.id, bet.description, len(bet.options))

        if creator_stake is None:
            self._bets.save_bet(bet)
            return copy.deepcopy(bet)

        option_key, amount = creator_stake
        with self._locks.hold(bet.id):
            placement, opened = self._stake_locked(bet, creator_id, option_key, to_money(amount), True, stored=False)
        if opened:
            self._publish_opened(placement.bet)
        return placement.bet

    def place_bet(
        self,
        bet_id: str,
        user_id: str,
        option_key: str,
        amount: object,
        *,
        is_partial: bool = True,
    ) -> Placement:
        """
        Stake `amount` on one option of a bet.

        Process (all under the bet's lock):
        1. Validate bet, option, status and minimums
        2. Debit the user's wallet
        3. Record the stake and reprice every option
        4. Promote bid -> open once all outcomes are backed
        5. Store the PlacedBet, priced at this stake's odds
        """
        amt = to_money(amount)
        with self._locks.hold(bet_id):
            bet = self._bets.get_bet(bet_id)
            if bet is None:
                raise BetNotFound(f"Bet {bet_id} not found", bet_id=bet_id)
            placement, opened = self._stake_locked(bet, user_id, option_key, amt, is_partial, stored=True)
        if opened:
            self._publish_opened(placement.bet)
        return placement

    def _stake_locked(
        self,
        bet: Bet,
        user_id: str,
        option_key: str,
        amt: Decimal,
        is_partial: bool,
        *,
        stored: bool,
    ) -> tuple[Placement, bool]:
        now = self._clock.now()
        pool = WagerPool(bet, self._params)
        pool.option(option_key)

        if sync_status(bet, now) and stored:
            self._bets.save_bet(bet)
        require_accepting(bet, now)

        if amt <= 0:
            raise InvalidAmount(f"Stake must be positive, got {amt}", amount=amt)
        if bet.minimum_wager is not None and amt < bet.minimum_wager:
            raise BelowMinimumWager(
                f"Minimum wager for this bet is ${bet.minimum_wager}",
                bet_id=bet.id,
                minimum=bet.minimum_wager,
                amount=amt,
            )
        if user_id == bet.creator_id and stored:
            floor = matched_floor(self._bets.fire_backs_for_bet(bet.id))
            if floor is not None and amt < floor:
                raise BelowMinimumWager(
                    f"You matched a fire back: stake at least ${floor}",
                    bet_id=bet.id,
                    minimum=floor,
                    amount=amt,
                )
        if bet.visibility == "challenge" and user_id != bet.creator_id and user_id not in bet.challenged_users:
            raise NotAuthorized(f"Bet {bet.id} is a private challenge", bet_id=bet.id, user_id=user_id)

        previous = copy.deepcopy(bet) if stored else None
        self._ledger.debit(user_id, amt)
        saved = False
        try:
            odds = pool.record_stake(option_key, amt)
            opened = maybe_open(bet)
            placed = PlacedBet(
                id=new_id("pb"),
                user_id=user_id,
                bet_id=bet.id,
                selected_option=option_key,
                amount=amt,
                potential_winnings=to_money(amt * odds),
                placed_at=now,
                is_partial=is_partial,
            )
            self._bets.save_bet(bet)
            saved = True
            self._bets.add_placed_bet(placed)
        except Exception:
            if saved:
                if previous is not None:
                    self._bets.save_bet(previous)
                else:
                    self._bets.delete_bet(bet.id)
            self._ledger.credit(user_id, amt)
            logger.warning("Rolled back %s stake by %s on bet %s", amt, user_id, bet.id)
            raise

        logger.info(
            "Placed bet: %s %s on %r @ %s (pool $%s, odds %s, status %s)",
            user_id,
            amt,
            option_key,
            odds,
            pool.total(),
            bet.odds_snapshot(),
            bet.status,
        )
        return Placement(placed_bet=placed, bet=copy.deepcopy(bet)), opened

    def _publish_opened(self, bet: Bet) -> None:
        self._notices.publish(
            Notice(
                kind="bet_opened",
                bet_id=bet.id,
                ts=self._clock.now(),
                message=f"Every side of {bet.description!r} is backed; the bet is open",
                user_id=bet.creator_id,
            )
        )
