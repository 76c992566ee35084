import logging
import os
from dataclasses import dataclass, fields
from decimal import Decimal

from dotenv import load_dotenv

from errors import ConfigurationError
from money import Money

ENV_PREFIX = "BLACKJACK_"


@dataclass(frozen=True)
class GameConfiguration:
    """Table rules and limits. The engine trusts whatever it is handed."""

    num_decks: int = 6
    penetration_threshold: float = 0.25
    blackjack_payout: Decimal = Decimal("1.5")
    max_split_hands: int = 4
    min_players: int = 1
    max_players: int = 7
    allow_double_down: bool = True
    allow_split: bool = True
    allow_surrender: bool = False
    double_after_split: bool = True
    split_aces_one_card: bool = True
    resplit_aces: bool = False
    dealer_hits_soft_17: bool = False
    dealer_plays_when_all_bust: bool = True
    auto_reshuffle_enabled: bool = True
    minimum_bet: Decimal = Decimal("5")
    maximum_bet: Decimal = Decimal("500")
    default_bankroll: Decimal = Decimal("1000")
    minimum_bankroll: Decimal = Decimal("50")
    maximum_bankroll: Decimal = Decimal("10000")
    currency: str = "USD"
    seed: int | None = None
    log_level: str = "INFO"

    @property
    def max_splits(self) -> int:
        return self.max_split_hands - 1

    def money(self, amount) -> Money:
        return Money(amount, self.currency)

    def validate(self) -> list[str]:
        problems = []
        if not 1 <= self.num_decks <= 8:
            problems.append("Number of decks must be between 1 and 8.")
        if not 0.1 <= self.penetration_threshold <= 0.9:
            problems.append("Penetration threshold must be between 0.1 and 0.9.")
        if not Decimal("1.0") <= Decimal(str(self.blackjack_payout)) <= Decimal("2.0"):
            problems.append("Blackjack payout must be between 1.0 and 2.0.")
        if not 2 <= self.max_split_hands <= 4:
            problems.append("Maximum split hands must be between 2 and 4.")
        if not 1 <= self.min_players <= 7 or not 1 <= self.max_players <= 7:
            problems.append("Player limits must be between 1 and 7.")
        if self.min_players > self.max_players:
            problems.append("Minimum players cannot be greater than maximum players.")
        if self.minimum_bet <= 0:
            problems.append("Minimum bet must be positive.")
        if self.minimum_bet >= self.maximum_bet:
            problems.append("Minimum bet must be less than maximum bet.")
        if self.minimum_bankroll >= self.maximum_bankroll:
            problems.append("Minimum bankroll must be less than maximum bankroll.")
        if not self.minimum_bankroll <= self.default_bankroll <= self.maximum_bankroll:
            problems.append("Default bankroll must be within the minimum and maximum bankroll range.")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            problems.append(f"Unknown log level: {self.log_level}")
        return problems

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "GameConfiguration":
        """Load settings from ``BLACKJACK_*`` variables, reading a ``.env`` file first.

        Every field maps to an upper-cased variable, e.g. ``BLACKJACK_NUM_DECKS``
        or ``BLACKJACK_ALLOW_SURRENDER=true``. Unset variables keep their default.
        """
        load_dotenv(dotenv_path)
        values = {}
        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            values[f.name] = _parse(f.name, f.default, raw.strip())
        config = cls(**values)
        problems = config.validate()
        if problems:
            raise ConfigurationError("; ".join(problems))
        return config


def _parse(name: str, default, raw: str):
    try:
        if isinstance(default, bool):
            if raw.lower() in ("1", "true", "yes", "on"):
                return True
            if raw.lower() in ("0", "false", "no", "off"):
                return False
            raise ValueError(raw)
        if isinstance(default, int) or name == "seed":
            return int(raw)
        if isinstance(default, float):
            return float(raw)
        if isinstance(default, Decimal):
            return Decimal(raw)
    except (ArithmeticError, ValueError) as exc:
        raise ConfigurationError(f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}") from exc
    return raw


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
