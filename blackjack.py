import logging
import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from errors import EmptyShoe, InvalidArgument

logger = logging.getLogger(__name__)

CARDS_PER_DECK = 52


class Suit(Enum):
    HEARTS = "♥"
    DIAMONDS = "♦"
    CLUBS = "♣"
    SPADES = "♠"


class Rank(Enum):
    ACE = ("A", 11)
    TWO = ("2", 2)
    THREE = ("3", 3)
    FOUR = ("4", 4)
    FIVE = ("5", 5)
    SIX = ("6", 6)
    SEVEN = ("7", 7)
    EIGHT = ("8", 8)
    NINE = ("9", 9)
    TEN = ("10", 10)
    JACK = ("J", 10)
    QUEEN = ("Q", 10)
    KING = ("K", 10)

    @property
    def symbol(self) -> str:
        return self.value[0]

    @property
    def points(self) -> int:
        return self.value[1]


@dataclass(frozen=True)
class Card:
    rank: Rank
    suit: Suit

    def __str__(self) -> str:
        return f"{self.rank.symbol}{self.suit.value}"

    @property
    def value(self) -> int:
        return self.rank.points


def create_standard_deck() -> list[Card]:
    return [Card(rank, suit) for suit in Suit for rank in Rank]


class GameResult(Enum):
    WIN = "win"
    LOSE = "lose"
    PUSH = "push"
    BLACKJACK = "blackjack"
    SURRENDER = "surrender"


class PlayerAction(Enum):
    HIT = "hit"
    STAND = "stand"
    DOUBLE_DOWN = "double"
    SPLIT = "split"
    SURRENDER = "surrender"


@dataclass
class Hand:
    cards: list[Card] = field(default_factory=list)
    is_split_hand: bool = False

    def add_card(self, card: Card):
        self.cards.append(card)

    def mark_as_split_hand(self):
        self.is_split_hand = True

    @property
    def card_count(self) -> int:
        return len(self.cards)

    def _totals(self) -> tuple[int, int]:
        total = sum(card.value for card in self.cards)
        aces = sum(1 for card in self.cards if card.rank == Rank.ACE)
        while total > 21 and aces:
            total -= 10
            aces -= 1
        return total, aces

    @property
    def value(self) -> int:
        return self._totals()[0]

    @property
    def is_soft(self) -> bool:
        # an ace is still being counted as 11
        return self._totals()[1] > 0

    @property
    def is_blackjack(self) -> bool:
        return len(self.cards) == 2 and self.value == 21 and not self.is_split_hand

    @property
    def is_busted(self) -> bool:
        return self.value > 21

    def __str__(self) -> str:
        return " ".join(str(card) for card in self.cards)


class ReshuffleKind(Enum):
    NEEDED = "needed"
    RESHUFFLED = "reshuffled"
    OCCURRED = "occurred"
    REQUIRED = "required"


@dataclass(frozen=True)
class ReshuffleEvent:
    kind: ReshuffleKind
    reason: str
    remaining_percentage: float
    penetration_threshold: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return (
            f"Shoe reshuffle ({self.kind.value}) - {self.reason} "
            f"(remaining: {self.remaining_percentage:.1%}, threshold: {self.penetration_threshold:.1%})"
        )


ShoeListener = Callable[[ReshuffleEvent], None]


class Shoe:
    def __init__(
        self,
        num_decks: int = 6,
        seed: int | None = None,
        penetration_threshold: float = 0.25,
    ):
        if num_decks < 1:
            raise InvalidArgument("Deck count must be at least 1.")
        self.num_decks = num_decks
        self.seed = seed
        self.rng = random.Random(seed)
        self.penetration_threshold = penetration_threshold
        self.cards: list[Card] = []
        self._listeners: list[ShoeListener] = []
        self._threshold_signalled = False
        self.reset()

    @property
    def total_cards(self) -> int:
        return self.num_decks * CARDS_PER_DECK

    @property
    def remaining_cards(self) -> int:
        return len(self.cards)

    @property
    def is_empty(self) -> bool:
        return not self.cards

    def add_listener(self, listener: ShoeListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: ShoeListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def shuffle(self):
        self.rng.shuffle(self.cards)

    def reset(self, in_play: Iterable[Card] = (), reason: str = "Shoe reset"):
        """Rebuild every deck, leave out cards still on the table, and shuffle."""
        cards = [card for _ in range(self.num_decks) for card in create_standard_deck()]
        for card in in_play:
            cards.remove(card)
        self.cards = cards
        self.shuffle()
        self._threshold_signalled = False
        logger.debug("Shoe reset: %d of %d cards", self.remaining_cards, self.total_cards)
        self._notify(ReshuffleKind.RESHUFFLED, reason)

    def draw(self) -> Card:
        if not self.cards:
            raise EmptyShoe("Cannot draw from an empty shoe.")
        card = self.cards.pop(0)
        if not self._threshold_signalled and self.needs_reshuffle():
            self._threshold_signalled = True
            self._notify(ReshuffleKind.NEEDED, "Penetration threshold reached")
        return card

    def remaining_percentage(self) -> float:
        return self.remaining_cards / self.total_cards

    def needs_reshuffle(self, threshold: float | None = None) -> bool:
        if threshold is None:
            threshold = self.penetration_threshold
        return self.remaining_percentage() <= threshold

    def _notify(self, kind: ReshuffleKind, reason: str):
        event = ReshuffleEvent(
            kind=kind,
            reason=reason,
            remaining_percentage=self.remaining_percentage(),
            penetration_threshold=self.penetration_threshold,
        )
        for listener in list(self._listeners):
            listener(event)

    def __str__(self) -> str:
        return (
            f"Shoe with {self.num_decks} decks, {self.remaining_cards} cards remaining "
            f"({self.remaining_percentage():.1%})"
        )
