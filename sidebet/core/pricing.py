from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sidebet.core.errors import InvalidAmount
from sidebet.core.types import BetOption


CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# keeps every stake, pool and payout well inside the default 28-digit context
MAX_AMOUNT = Decimal("1e12")


@dataclass(frozen=True)
class PricingParams:
    house_edge: Decimal = Decimal("0.05")
    odds_floor: Decimal = Decimal("1.1")
    unbacked_odds: Decimal = Decimal("10.0")


def _to_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, (int, float, str)) and not isinstance(value, bool):
        # floats go through str so 0.1 stays 0.1
        try:
            d = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmount(f"not a number: {value!r}", value=value) from None
    else:
        raise InvalidAmount(f"not a number: {value!r}", value=value)
    if not d.is_finite():
        raise InvalidAmount(f"not a finite amount: {value!r}", value=value)
    return d


def to_money(value: object) -> Decimal:
    """Fixed-point money: 2 places, half-up."""
    d = _to_decimal(value)
    if abs(d) > MAX_AMOUNT:
        raise InvalidAmount(f"amount out of range: {value!r}", value=value)
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


def round_odds(value: object) -> Decimal:
    try:
        return _to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmount(f"odds out of range: {value!r}", value=value) from None


def price_option(total_wagered: Decimal, pool_total: Decimal, initial_odds: Decimal, p: PricingParams) -> Decimal:
    """Pari-mutuel price for one outcome.

    empty pool        -> initial_odds
    unbacked outcome  -> unbacked_odds (long shot, and no division by zero)
    otherwise         -> max(floor, (1 / proportion) * (1 - house_edge))
    """
    if pool_total == 0:
        return round_odds(initial_odds)
    if total_wagered == 0:
        return round_odds(p.unbacked_odds)
    # pool_total / total_wagered == 1 / proportion, without rounding the proportion first
    raw = (pool_total / total_wagered) * (1 - p.house_edge)
    return round_odds(max(p.odds_floor, raw))


def recompute_odds(options: dict[str, BetOption], p: PricingParams) -> None:
    """Reprice every option in place; odds are a function of the whole pool."""
    pool_total = sum((o.total_wagered for o in options.values()), ZERO)
    for o in options.values():
        o.odds = price_option(o.total_wagered, pool_total, o.initial_odds, p)
