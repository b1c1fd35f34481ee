from __future__ import annotations

from abc import ABC, abstractmethod

from sidebet.core.types import Bet, FireBack, Payout, PlacedBet, User


class UserStore(ABC):
    @abstractmethod
    def get_user(self, user_id: str) -> User | None:
        raise NotImplementedError

    @abstractmethod
    def save_user(self, user: User, credit_ref: str | None = None) -> None:
        """Persist `user`. With `credit_ref`, also mark that credit applied, in the same write."""
        raise NotImplementedError

    @abstractmethod
    def credit_applied(self, credit_ref: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def list_users(self) -> list[User]:
        raise NotImplementedError


class BetStore(ABC):
    """Key-value access to bets and the records that point at them.

    Implementations hand out copies: mutating a returned record never changes stored state
    until it is passed back through a save method.
    """

    @abstractmethod
    def get_bet(self, bet_id: str) -> Bet | None:
        raise NotImplementedError

    @abstractmethod
    def save_bet(self, bet: Bet) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_bet(self, bet_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_bets(self) -> list[Bet]:
        raise NotImplementedError

    @abstractmethod
    def add_placed_bet(self, placed: PlacedBet) -> None:
        raise NotImplementedError

    @abstractmethod
    def placed_bets_for_bet(self, bet_id: str) -> list[PlacedBet]:
        raise NotImplementedError

    @abstractmethod
    def placed_bets_for_user(self, user_id: str) -> list[PlacedBet]:
        raise NotImplementedError

    @abstractmethod
    def get_fire_back(self, fire_back_id: str) -> FireBack | None:
        raise NotImplementedError

    @abstractmethod
    def save_fire_back(self, fire_back: FireBack) -> None:
        raise NotImplementedError

    @abstractmethod
    def fire_backs_for_bet(self, bet_id: str) -> list[FireBack]:
        raise NotImplementedError

    @abstractmethod
    def add_payout(self, payout: Payout) -> None:
        raise NotImplementedError

    @abstractmethod
    def payouts_for_bet(self, bet_id: str) -> list[Payout]:
        raise NotImplementedError
