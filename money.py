from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation as DecimalError
from enum import Enum

from blackjack import GameResult
from errors import CurrencyMismatch, InvalidArgument, InvalidOperation

CENTS = Decimal("0.01")


def _to_decimal(amount) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, float):
        amount = repr(amount)
    try:
        return Decimal(amount)
    except (DecimalError, TypeError, ValueError) as exc:
        raise InvalidArgument(f"Malformed money amount: {amount!r}") from exc


@dataclass(frozen=True)
class Money:
    """A currency-tagged amount with at most two decimal places."""

    amount: Decimal
    currency: str = "USD"

    def __post_init__(self):
        amount = _to_decimal(self.amount)
        if not amount.is_finite():
            raise InvalidArgument(f"Malformed money amount: {amount}")
        if amount != amount.quantize(CENTS, rounding=ROUND_HALF_UP):
            raise InvalidArgument("Money amount cannot have more than 2 decimal places.")
        if not self.currency or not self.currency.strip():
            raise InvalidArgument("Currency cannot be empty.")
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "currency", self.currency.strip().upper())

    @classmethod
    def zero(cls, currency: str = "USD") -> "Money":
        return cls(Decimal("0"), currency)

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def _check_currency(self, other: "Money"):
        if not isinstance(other, Money):
            raise InvalidArgument(f"Expected Money, got {type(other).__name__}")
        if self.currency != other.currency:
            raise CurrencyMismatch(
                f"Cannot perform operation on different currencies: {self.currency} and {other.currency}."
            )

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, multiplier) -> "Money":
        result = self.amount * _to_decimal(multiplier)
        return Money(result.quantize(CENTS, rounding=ROUND_HALF_UP), self.currency)

    __rmul__ = __mul__

    def __truediv__(self, divisor) -> "Money":
        divisor = _to_decimal(divisor)
        if divisor == 0:
            raise InvalidArgument("Cannot divide money by zero.")
        result = self.amount / divisor
        return Money(result.quantize(CENTS, rounding=ROUND_HALF_UP), self.currency)

    def __neg__(self) -> "Money":
        return Money(-self.amount, self.currency)

    def __lt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._check_currency(other)
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount:.2f} {self.currency}"


class BetType(Enum):
    STANDARD = "standard"
    DOUBLE_DOWN = "double_down"
    SPLIT = "split"


@dataclass(eq=False)
class Bet:
    amount: Money
    player_name: str
    bet_type: BetType = BetType.STANDARD
    hand_id: int = 0
    placed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    _settled: bool = field(default=False, init=False, repr=False)

    def __post_init__(self):
        if not self.player_name or not self.player_name.strip():
            raise InvalidArgument("Player name cannot be empty.")
        if not self.amount.is_positive:
            raise InvalidArgument("Bet amount must be positive.")
        self.player_name = self.player_name.strip()

    @property
    def is_active(self) -> bool:
        return not self._settled

    @property
    def is_settled(self) -> bool:
        return self._settled

    def settle(self):
        if self._settled:
            raise InvalidOperation("Bet has already been settled.")
        self._settled = True

    def calculate_payout(self, result: GameResult, blackjack_multiplier=Decimal("1.5")) -> Money:
        if self._settled:
            raise InvalidOperation("Cannot calculate payout for a settled bet.")
        match result:
            case GameResult.WIN:
                return self.amount
            case GameResult.BLACKJACK:
                return self.amount * blackjack_multiplier
            case GameResult.PUSH | GameResult.LOSE | GameResult.SURRENDER:
                return Money.zero(self.amount.currency)
        raise InvalidArgument(f"Unknown game result: {result}")

    def calculate_total_return(self, result: GameResult, blackjack_multiplier=Decimal("1.5")) -> Money:
        payout = self.calculate_payout(result, blackjack_multiplier)
        match result:
            case GameResult.WIN | GameResult.BLACKJACK:
                return self.amount + payout
            case GameResult.PUSH:
                return self.amount
            case GameResult.SURRENDER:
                return self.amount / 2
            case _:
                return Money.zero(self.amount.currency)

    def __str__(self) -> str:
        status = "Active" if self.is_active else "Settled"
        kind = "" if self.bet_type == BetType.STANDARD else f" ({self.bet_type.value})"
        return f"{self.player_name}: {self.amount}{kind} - {status}"
