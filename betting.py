import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from blackjack import GameResult
from errors import BlackjackError, InsufficientFunds, InvalidArgument, InvalidOperation
from money import Bet, BetType, Money

logger = logging.getLogger(__name__)

PlayerResults = Mapping[str, GameResult | Mapping[int, GameResult]]


@dataclass
class BettingResult:
    is_success: bool
    message: str
    bet: Bet | None = None
    error: BlackjackError | None = None

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    @classmethod
    def success(cls, message: str, bet: Bet | None = None) -> "BettingResult":
        return cls(True, message, bet)

    @classmethod
    def failure(cls, message: str, error: BlackjackError | None = None) -> "BettingResult":
        return cls(False, message, error=error or InvalidOperation(message))

    def __str__(self) -> str:
        return f"{'Success' if self.is_success else 'Failure'}: {self.message}"


@dataclass(frozen=True)
class PayoutResult:
    bet: Bet
    game_result: GameResult
    payout_amount: Money
    total_return: Money

    @property
    def player_name(self) -> str:
        return self.bet.player_name

    @property
    def is_win(self) -> bool:
        return self.game_result in (GameResult.WIN, GameResult.BLACKJACK)

    @property
    def is_loss(self) -> bool:
        return self.game_result in (GameResult.LOSE, GameResult.SURRENDER)

    @property
    def is_push(self) -> bool:
        return self.game_result == GameResult.PUSH

    @property
    def is_blackjack(self) -> bool:
        return self.game_result == GameResult.BLACKJACK

    def __str__(self) -> str:
        return (
            f"{self.player_name}: {self.game_result.value} - Payout: {self.payout_amount}, "
            f"Total Return: {self.total_return}"
        )


@dataclass
class PayoutSummary:
    payouts: list[PayoutResult] = field(default_factory=list)
    currency: str = "USD"

    @property
    def total_payouts(self) -> int:
        return len(self.payouts)

    @property
    def total_payout_amount(self) -> Money:
        return sum((p.payout_amount for p in self.payouts), Money.zero(self.currency))

    @property
    def total_return_amount(self) -> Money:
        return sum((p.total_return for p in self.payouts), Money.zero(self.currency))

    @property
    def win_count(self) -> int:
        return sum(1 for p in self.payouts if p.is_win)

    @property
    def loss_count(self) -> int:
        return sum(1 for p in self.payouts if p.game_result == GameResult.LOSE)

    @property
    def push_count(self) -> int:
        return sum(1 for p in self.payouts if p.is_push)

    @property
    def blackjack_count(self) -> int:
        return sum(1 for p in self.payouts if p.is_blackjack)

    @property
    def surrender_count(self) -> int:
        return sum(1 for p in self.payouts if p.game_result == GameResult.SURRENDER)

    def payouts_for(self, player_name: str) -> list[PayoutResult]:
        key = player_name.strip().casefold()
        return [p for p in self.payouts if p.player_name.casefold() == key]

    def __str__(self) -> str:
        return (
            f"Payouts: {self.total_payouts}, Wins: {self.win_count}, Losses: {self.loss_count}, "
            f"Pushes: {self.push_count}, Blackjacks: {self.blackjack_count}, "
            f"Total Paid: {self.total_payout_amount}"
        )


def _key(player_name: str) -> str:
    if not player_name or not player_name.strip():
        raise InvalidArgument("Player name cannot be empty.")
    return player_name.strip().casefold()


class BettingService:
    """Bankrolls and active bets for every player at the table.

    Bankrolls persist across rounds; bets live from placement until
    ``process_payouts`` settles them. Each mutation holds ``self._lock`` so a
    host serving several requests at once can't interleave a debit.
    """

    def __init__(
        self,
        blackjack_multiplier=Decimal("1.5"),
        minimum_bet: Money | None = None,
        maximum_bet: Money | None = None,
    ):
        multiplier = Decimal(str(blackjack_multiplier))
        if multiplier <= 0:
            raise InvalidArgument("Blackjack multiplier must be positive.")
        self.blackjack_multiplier = multiplier
        self.minimum_bet = minimum_bet or Money(Decimal("1.00"))
        self.maximum_bet = maximum_bet or Money(Decimal("1000.00"))
        if not self.minimum_bet.is_positive or not self.maximum_bet.is_positive:
            raise InvalidArgument("Bet limits must be positive.")
        if self.minimum_bet >= self.maximum_bet:
            raise InvalidArgument("Minimum bet must be less than maximum bet.")
        self._bankrolls: dict[str, Money] = {}
        self._bets: dict[str, list[Bet]] = {}
        self._lock = asyncio.Lock()

    @property
    def currency(self) -> str:
        return self.minimum_bet.currency

    def _bankroll(self, key: str) -> Money:
        return self._bankrolls.get(key, Money.zero(self.currency))

    def _check_bet(self, player_name: str, amount: Money):
        key = _key(player_name)
        if not isinstance(amount, Money):
            raise InvalidArgument(f"Malformed bet amount: {amount!r}")
        if not amount.is_positive:
            raise InvalidArgument("Bet amount must be positive.")
        if amount.currency != self.currency:
            raise InvalidArgument(
                f"Bet currency {amount.currency} does not match table currency {self.currency}."
            )
        if amount < self.minimum_bet:
            raise InvalidArgument(f"Bet amount {amount} is below minimum bet {self.minimum_bet}.")
        if amount > self.maximum_bet:
            raise InvalidArgument(f"Bet amount {amount} exceeds maximum bet {self.maximum_bet}.")
        bankroll = self._bankroll(key)
        if bankroll < amount:
            raise InsufficientFunds(f"Insufficient funds. Available: {bankroll}, Required: {amount}.")

    async def validate_bet(self, player_name: str, amount: Money) -> BettingResult:
        try:
            self._check_bet(player_name, amount)
        except BlackjackError as exc:
            return BettingResult.failure(str(exc), exc)
        return BettingResult.success("Bet validation successful.")

    async def place_bet(self, player_name: str, amount: Money) -> BettingResult:
        async with self._lock:
            try:
                self._check_bet(player_name, amount)
                key = _key(player_name)
                if self._bets.get(key):
                    raise InvalidOperation(f"Player {player_name} already has an active bet.")
            except BlackjackError as exc:
                logger.info("Bet rejected for %s: %s", player_name, exc)
                return BettingResult.failure(str(exc), exc)
            bet = Bet(amount, player_name)
            self._bankrolls[key] = self._bankroll(key) - amount
            self._bets[key] = [bet]
        logger.info("Bet of %s placed for %s", amount, bet.player_name)
        return BettingResult.success(f"Bet of {amount} placed successfully for {bet.player_name}.", bet)

    async def place_additional_bet(self, bet: Bet) -> BettingResult:
        """Debit and record a split or double-down wager alongside the original."""
        async with self._lock:
            key = _key(bet.player_name)
            if not self._bets.get(key):
                error = InvalidOperation(f"Player {bet.player_name} has no active bet to add to.")
                return BettingResult.failure(str(error), error)
            bankroll = self._bankroll(key)
            if bankroll < bet.amount:
                error = InsufficientFunds(f"Insufficient funds. Available: {bankroll}, Required: {bet.amount}.")
                return BettingResult.failure(str(error), error)
            self._bankrolls[key] = bankroll - bet.amount
            self._bets[key].append(bet)
        logger.info("%s bet of %s placed for %s", bet.bet_type.value, bet.amount, bet.player_name)
        return BettingResult.success(f"{bet.bet_type.value} bet of {bet.amount} placed.", bet)

    async def calculate_payout(self, result: GameResult, bet: Bet) -> PayoutResult:
        return PayoutResult(
            bet=bet,
            game_result=result,
            payout_amount=bet.calculate_payout(result, self.blackjack_multiplier),
            total_return=bet.calculate_total_return(result, self.blackjack_multiplier),
        )

    async def has_sufficient_funds(self, player_name: str, amount: Money) -> bool:
        if not player_name or not player_name.strip():
            return False
        return self._bankroll(_key(player_name)) >= amount

    async def get_player_bankroll(self, player_name: str) -> Money:
        if not player_name or not player_name.strip():
            return Money.zero(self.currency)
        return self._bankroll(_key(player_name))

    def has_bankroll(self, player_name: str) -> bool:
        return _key(player_name) in self._bankrolls

    async def update_bankroll(self, player_name: str, amount: Money):
        async with self._lock:
            self._update_bankroll(_key(player_name), amount)

    def _update_bankroll(self, key: str, amount: Money):
        bankroll = self._bankroll(key) + amount
        if bankroll.is_negative:
            bankroll = Money.zero(self.currency)
        self._bankrolls[key] = bankroll

    async def set_initial_bankroll(self, player_name: str, amount: Money):
        key = _key(player_name)
        if amount.is_negative:
            raise InvalidArgument("Initial bankroll cannot be negative.")
        if amount.currency != self.currency:
            raise InvalidArgument(
                f"Bankroll currency {amount.currency} does not match table currency {self.currency}."
            )
        async with self._lock:
            self._bankrolls[key] = amount

    async def get_current_bet(self, player_name: str) -> Bet | None:
        if not player_name or not player_name.strip():
            return None
        for bet in self._bets.get(_key(player_name), []):
            if bet.bet_type == BetType.STANDARD:
                return bet
        return None

    async def get_bets(self, player_name: str) -> list[Bet]:
        return list(self._bets.get(_key(player_name), []))

    async def clear_all_bets(self):
        async with self._lock:
            self._bets.clear()

    def get_all_bankrolls(self) -> dict[str, Money]:
        return dict(self._bankrolls)

    async def process_payouts(self, player_results: PlayerResults) -> PayoutSummary:
        async with self._lock:
            # resolve every bet before touching a bankroll
            settlements: list[tuple[str, PayoutResult]] = []
            for player_name, outcome in player_results.items():
                key = _key(player_name)
                for bet in self._bets.get(key, []):
                    if bet.is_settled:
                        continue
                    if isinstance(outcome, GameResult):
                        result = outcome
                    elif bet.hand_id in outcome:
                        result = outcome[bet.hand_id]
                    else:
                        raise InvalidArgument(f"No result for {player_name} hand {bet.hand_id}.")
                    settlements.append((key, await self.calculate_payout(result, bet)))

            for key, payout in settlements:
                if not payout.total_return.is_zero:
                    self._update_bankroll(key, payout.total_return)
                payout.bet.settle()
                logger.info("Settled %s", payout)

            for player_name in player_results:
                self._bets.pop(_key(player_name), None)

        return PayoutSummary([payout for _, payout in settlements], currency=self.currency)
