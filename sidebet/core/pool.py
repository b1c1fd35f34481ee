from __future__ import annotations

from decimal import Decimal

from sidebet.core.errors import InvalidAmount, OptionNotFound
from sidebet.core.pricing import PricingParams, recompute_odds, to_money
from sidebet.core.types import Bet, BetOption


class WagerPool:
    """Money staked on each outcome of one bet, and the odds that follow from it.

    Wraps a Bet the caller already holds the lock for; it mutates the bet's options in place.
    """

    def __init__(self, bet: Bet, params: PricingParams | None = None):
        self.bet = bet
        self.params = params or PricingParams()

    def option(self, option_key: str) -> BetOption:
        o = self.bet.options.get(option_key)
        if o is None:
            raise OptionNotFound(
                f"Option {option_key!r} not found on bet {self.bet.id}",
                bet_id=self.bet.id,
                option_key=option_key,
            )
        return o

    def total(self) -> Decimal:
        return self.bet.pool_total()

    def record_stake(self, option_key: str, amount: object) -> Decimal:
        """Add a stake and reprice every option. Returns the staked option's new odds."""
        amt = to_money(amount)
        if amt <= 0:
            raise InvalidAmount(f"stake must be positive, got {amt}", amount=amt)
        o = self.option(option_key)
        o.total_wagered = o.total_wagered + amt
        self.reprice()
        return o.odds

    def reprice(self) -> None:
        recompute_odds(self.bet.options, self.params)

    def fully_backed(self) -> bool:
        return all(o.total_wagered > 0 for o in self.bet.options.values())
