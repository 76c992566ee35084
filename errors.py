class BlackjackError(Exception):
    """Base class for every error raised by the table engine."""


class InvalidArgument(BlackjackError, ValueError):
    """Bad player name, non-positive bet or malformed amount."""


class ConfigurationError(InvalidArgument):
    pass


class InvalidOperation(BlackjackError):
    """An operation attempted in the wrong phase or on an ineligible hand."""


class InvalidPlayerAction(InvalidOperation):
    pass


class InvalidSplit(InvalidOperation):
    pass


class SplitLimitReached(InvalidOperation):
    pass


class BettingPhaseError(InvalidOperation):
    pass


class CurrencyMismatch(InvalidOperation):
    pass


class InsufficientFunds(BlackjackError):
    pass


class EmptyShoe(BlackjackError):
    """No cards remain; a manual reshuffle is required before play resumes."""
