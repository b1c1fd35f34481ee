from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import uuid4


BetStatus = Literal["bid", "open", "locked", "settled", "disputed"]
Visibility = Literal["public", "friends_only", "challenge"]
FireBackStatus = Literal["pending", "matched", "declined"]

BET_STATUSES: tuple[str, ...] = ("bid", "open", "locked", "settled", "disputed")
VISIBILITIES: tuple[str, ...] = ("public", "friends_only", "challenge")


@dataclass
class User:
    id: str
    wallet_balance: Decimal
    username: str | None = None


@dataclass
class BetOption:
    key: str
    label: str
    initial_odds: Decimal
    odds: Decimal
    total_wagered: Decimal = Decimal("0.00")


@dataclass(frozen=True)
class OptionSpec:
    """What a creator supplies for one outcome when creating a bet."""

    label: str
    initial_odds: Decimal | None = None
    key: str | None = None  # defaults to the label


@dataclass
class Bet:
    id: str
    creator_id: str
    description: str
    options: dict[str, BetOption]
    closing_time: datetime
    created_at: datetime
    status: BetStatus = "bid"
    visibility: Visibility = "public"
    winning_option: str | None = None
    challenged_users: list[str] = field(default_factory=list)
    minimum_wager: Decimal | None = None

    def pool_total(self) -> Decimal:
        return sum((o.total_wagered for o in self.options.values()), Decimal("0.00"))

    def odds_snapshot(self) -> dict[str, Decimal]:
        return {k: o.odds for k, o in self.options.items()}


@dataclass(frozen=True)
class PlacedBet:
    id: str
    user_id: str
    bet_id: str
    selected_option: str
    amount: Decimal
    potential_winnings: Decimal
    placed_at: datetime
    is_partial: bool = True


@dataclass
class FireBack:
    id: str
    user_id: str  # the challenger
    bet_id: str
    new_wager: Decimal
    created_at: datetime
    status: FireBackStatus = "pending"
    responded_at: datetime | None = None


@dataclass(frozen=True)
class Payout:
    bet_id: str
    placed_bet_id: str
    user_id: str
    amount: Decimal
    winning_option: str
    paid_at: datetime


@dataclass(frozen=True)
class Placement:
    placed_bet: PlacedBet
    bet: Bet  # snapshot after the stake landed


@dataclass(frozen=True)
class SettlementResult:
    bet_id: str
    winning_option: str
    payouts: dict[str, Decimal]  # winners only, summed per user


@dataclass(frozen=True)
class Notice:
    kind: str  # bet_opened | bet_locked | bet_disputed | bet_settled | fire_back_*
    bet_id: str
    ts: datetime
    message: str
    user_id: str | None = None
    fire_back_id: str | None = None


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"
