from __future__ import annotations


class SideBetError(Exception):
    """Base for every user-facing engine error.

    None of these are fatal: the caller shows the message and lets the user retry.
    """

    code = "sidebet_error"

    def __init__(self, message: str, **context: object):
        super().__init__(message)
        self.context = context


class BetNotFound(SideBetError):
    code = "bet_not_found"


class OptionNotFound(SideBetError):
    code = "option_not_found"


class UserNotFound(SideBetError):
    code = "user_not_found"


class AccountExists(SideBetError):
    code = "account_exists"


class BetNotAcceptingWagers(SideBetError):
    code = "bet_not_accepting_wagers"


class BelowMinimumWager(SideBetError):
    code = "below_minimum_wager"


class InsufficientFunds(SideBetError):
    code = "insufficient_funds"


class InvalidAmount(SideBetError):
    code = "invalid_amount"


class InvalidBetDefinition(SideBetError):
    code = "invalid_bet_definition"


class InvalidTransition(SideBetError):
    code = "invalid_transition"


class NotAuthorized(SideBetError):
    code = "not_authorized"


class FireBackNotFound(SideBetError):
    code = "fire_back_not_found"


class FireBackAlreadyPending(SideBetError):
    code = "fire_back_already_pending"


class FireBackAlreadyResolved(SideBetError):
    code = "fire_back_already_resolved"


class BetNotClosed(SideBetError):
    code = "bet_not_closed"


class AlreadySettled(SideBetError):
    code = "already_settled"


class InvalidWinningOption(SideBetError):
    code = "invalid_winning_option"
