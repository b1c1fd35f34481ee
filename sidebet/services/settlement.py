"""Settlement: resolve a closed bet to one winning option and pay the winners."""

from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal

from sidebet.adapters.store import BetStore
from sidebet.core.clock import Clock
from sidebet.core.errors import AlreadySettled, BetNotClosed, BetNotFound, InvalidWinningOption
from sidebet.core.ledger import Ledger
from sidebet.core.lifecycle import SETTLEABLE, mark_settled, sync_status
from sidebet.core.locks import KeyedLocks
from sidebet.core.notices import NoticeBus
from sidebet.core.pricing import ZERO
from sidebet.core.types import Bet, Notice, Payout, SettlementResult

logger = logging.getLogger(__name__)


class SettlementService:
    """
    Pays out a bet exactly once.

    Process:
    1. Under the bet lock: reject settled / in-flight bets, check status and winner,
       then mark the bet as being settled
    2. Without the bet lock: credit each winning PlacedBet its locked-in winnings and
       record a Payout for it
    3. Under the bet lock: flip the bet to settled

    A rerun after a crash skips every PlacedBet that already has a Payout. Each credit carries
    the PlacedBet id as its ref, so a winner credited before its Payout row was written is not
    credited again.
    """

    def __init__(self, bets: BetStore, ledger: Ledger, bet_locks: KeyedLocks, clock: Clock, notices: NoticeBus):
        self._bets = bets
        self._ledger = ledger
        self._locks = bet_locks
        self._clock = clock
        self._notices = notices
        self._in_flight: set[str] = set()

    def _load_bet(self, bet_id: str) -> Bet:
        bet = self._bets.get_bet(bet_id)
        if bet is None:
            raise BetNotFound(f"Bet {bet_id} not found", bet_id=bet_id)
        return bet

    def settle(self, bet_id: str, winning_option: str) -> SettlementResult:
        with self._locks.hold(bet_id):
            bet = self._load_bet(bet_id)
            if bet.status == "settled" or bet_id in self._in_flight:
                raise AlreadySettled(f"Bet {bet_id} already settled", bet_id=bet_id)

            if sync_status(bet, self._clock.now()):
                self._bets.save_bet(bet)
            if bet.status not in SETTLEABLE:
                raise BetNotClosed(
                    f"Bet {bet_id} is not ready for settlement (status: {bet.status})",
                    bet_id=bet_id,
                    status=bet.status,
                )
            if winning_option not in bet.options:
                raise InvalidWinningOption(
                    f"{winning_option!r} is not an option of bet {bet_id}",
                    bet_id=bet_id,
                    winning_option=winning_option,
                )

            prior = self._bets.payouts_for_bet(bet_id)
            if any(p.winning_option != winning_option for p in prior):
                raise InvalidWinningOption(
                    f"Bet {bet_id} was already partly paid out on a different option",
                    bet_id=bet_id,
                    winning_option=winning_option,
                )
            self._in_flight.add(bet_id)

        try:
            payouts = self._pay_winners(bet_id, winning_option, prior)
            with self._locks.hold(bet_id):
                bet = self._load_bet(bet_id)
                mark_settled(bet, winning_option)
                self._bets.save_bet(bet)
        finally:
            with self._locks.hold(bet_id):
                self._in_flight.discard(bet_id)

        total = sum(payouts.values(), ZERO)
        logger.info("Settled bet %s: %r (%d winners, $%s paid)", bet_id, winning_option, len(payouts), total)
        self._notices.publish(
            Notice(
                kind="bet_settled",
                bet_id=bet_id,
                ts=self._clock.now(),
                message=f"{bet.description!r} settled on {winning_option!r}: ${total} paid out",
            )
        )
        return SettlementResult(bet_id=bet_id, winning_option=winning_option, payouts=payouts)

    def _pay_winners(self, bet_id: str, winning_option: str, prior: list[Payout]) -> dict[str, Decimal]:
        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        paid = {p.placed_bet_id for p in prior}
        for p in prior:
            totals[p.user_id] += p.amount

        for pb in self._bets.placed_bets_for_bet(bet_id):
            if pb.selected_option != winning_option:
                continue
            if pb.id in paid:
                logger.info("Skipping %s on bet %s: already paid", pb.id, bet_id)
                continue
            self._ledger.credit(pb.user_id, pb.potential_winnings, ref=f"payout:{pb.id}")
            self._bets.add_payout(
                Payout(
                    bet_id=bet_id,
                    placed_bet_id=pb.id,
                    user_id=pb.user_id,
                    amount=pb.potential_winnings,
                    winning_option=winning_option,
                    paid_at=self._clock.now(),
                )
            )
            totals[pb.user_id] += pb.potential_winnings
        return dict(totals)
