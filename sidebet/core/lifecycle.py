"""Bet status machine.

    bid -> open -> locked -> settled
           open -> disputed -> settled
                   locked -> disputed

`effective_status` is the only place that decides whether a bet is still taking money.
A bet past its closing time reads as locked even if no writer has stored that yet;
`sync_status` folds the lazy transition into the record before the next write.
"""

from __future__ import annotations

from datetime import datetime

from sidebet.core.errors import BetNotAcceptingWagers, InvalidTransition, InvalidWinningOption
from sidebet.core.types import Bet, BetStatus


ACCEPTING: frozenset[str] = frozenset({"bid", "open"})
SETTLEABLE: frozenset[str] = frozenset({"locked", "disputed"})

_ALLOWED: dict[str, frozenset[str]] = {
    "bid": frozenset({"open", "locked"}),
    "open": frozenset({"locked", "disputed"}),
    "locked": frozenset({"disputed", "settled"}),
    "disputed": frozenset({"settled"}),
    "settled": frozenset(),
}


def effective_status(bet: Bet, now: datetime) -> BetStatus:
    if bet.status in ACCEPTING and now > bet.closing_time:
        return "locked"
    return bet.status


def accepts_wagers(bet: Bet, now: datetime) -> bool:
    return effective_status(bet, now) in ACCEPTING and now <= bet.closing_time


def require_accepting(bet: Bet, now: datetime) -> None:
    if not accepts_wagers(bet, now):
        raise BetNotAcceptingWagers(
            f"Bet {bet.id} is not accepting wagers (status: {effective_status(bet, now)})",
            bet_id=bet.id,
            status=effective_status(bet, now),
        )


def sync_status(bet: Bet, now: datetime) -> bool:
    """Store the time-based lock on the record. Returns True if the status changed."""
    eff = effective_status(bet, now)
    if eff != bet.status:
        bet.status = eff
        return True
    return False


def transition(bet: Bet, to: BetStatus) -> None:
    if to not in _ALLOWED.get(bet.status, frozenset()):
        raise InvalidTransition(f"Bet {bet.id} cannot go from {bet.status} to {to}", bet_id=bet.id)
    bet.status = to


def maybe_open(bet: Bet) -> bool:
    """bid -> open once every outcome has at least one backer."""
    if bet.status != "bid":
        return False
    if all(o.total_wagered > 0 for o in bet.options.values()):
        transition(bet, "open")
        return True
    return False


def mark_settled(bet: Bet, winning_option: str) -> None:
    if winning_option not in bet.options:
        raise InvalidWinningOption(
            f"{winning_option!r} is not an option of bet {bet.id}",
            bet_id=bet.id,
            winning_option=winning_option,
        )
    transition(bet, "settled")
    bet.winning_option = winning_option
