import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass

from blackjack import Card, ReshuffleEvent, ReshuffleKind, Shoe, ShoeListener
from errors import InvalidArgument, InvalidOperation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShoeStatus:
    deck_count: int
    total_cards: int
    remaining_cards: int
    remaining_percentage: float
    penetration_threshold: float
    needs_reshuffle: bool
    auto_reshuffle_enabled: bool

    @property
    def cards_dealt(self) -> int:
        return self.total_cards - self.remaining_cards

    @property
    def is_empty(self) -> bool:
        return self.remaining_cards == 0

    @property
    def is_nearly_empty(self) -> bool:
        return self.remaining_percentage < 0.05

    def __str__(self) -> str:
        status = f"Shoe: {self.remaining_cards}/{self.total_cards} cards ({self.remaining_percentage:.1%})"
        if self.needs_reshuffle:
            status += " - RESHUFFLE NEEDED"
        return status


class ShoeManager:
    """Owns the shoe and its reshuffle policy.

    Subscribers register for ``ReshuffleKind.OCCURRED`` (the shoe was rebuilt)
    or ``ReshuffleKind.REQUIRED`` (the threshold was crossed while automatic
    reshuffling is off, so somebody has to call ``trigger_manual_reshuffle``).
    """

    def __init__(
        self,
        shoe: Shoe | None = None,
        *,
        penetration_threshold: float = 0.25,
        auto_reshuffle_enabled: bool = True,
    ):
        self._lock = threading.RLock()
        self._shoe: Shoe | None = None
        self._auto_reshuffle_enabled = auto_reshuffle_enabled
        self._penetration_threshold = 0.25
        self.penetration_threshold = penetration_threshold
        self._subscribers: dict[ReshuffleKind, list[ShoeListener]] = {
            ReshuffleKind.OCCURRED: [],
            ReshuffleKind.REQUIRED: [],
        }
        if shoe is not None:
            self.initialize(shoe)

    @property
    def current_shoe(self) -> Shoe:
        if self._shoe is None:
            raise InvalidOperation("Shoe manager has not been initialized with a shoe.")
        return self._shoe

    @property
    def auto_reshuffle_enabled(self) -> bool:
        return self._auto_reshuffle_enabled

    @auto_reshuffle_enabled.setter
    def auto_reshuffle_enabled(self, value: bool):
        self._auto_reshuffle_enabled = value

    @property
    def penetration_threshold(self) -> float:
        return self._penetration_threshold

    @penetration_threshold.setter
    def penetration_threshold(self, value: float):
        if not 0.0 <= value <= 1.0:
            raise InvalidArgument("Penetration threshold must be between 0.0 and 1.0.")
        self._penetration_threshold = value
        if self._shoe is not None:
            self._shoe.penetration_threshold = value

    def initialize(self, shoe: Shoe):
        with self._lock:
            if self._shoe is not None:
                self._shoe.remove_listener(self._on_shoe_event)
            self._shoe = shoe
            shoe.penetration_threshold = self._penetration_threshold
            shoe.add_listener(self._on_shoe_event)
        logger.info("Shoe manager initialized: %s", shoe)

    def subscribe(self, kind: ReshuffleKind, callback: ShoeListener):
        if kind not in self._subscribers:
            raise InvalidArgument(f"Cannot subscribe to {kind}")
        with self._lock:
            self._subscribers[kind].append(callback)

    def unsubscribe(self, kind: ReshuffleKind, callback: ShoeListener):
        with self._lock:
            subscribers = self._subscribers.get(kind, [])
            if callback in subscribers:
                subscribers.remove(callback)

    def draw(self) -> Card:
        with self._lock:
            card = self.current_shoe.draw()
        logger.debug("Drew %s (%d left)", card, self.current_shoe.remaining_cards)
        return card

    def is_reshuffle_needed(self) -> bool:
        if self._shoe is None:
            return False
        return self._shoe.needs_reshuffle(self._penetration_threshold)

    def handle_automatic_reshuffle(self) -> bool:
        shoe = self.current_shoe
        with self._lock:
            if not self._auto_reshuffle_enabled or not self.is_reshuffle_needed():
                return False
            self._reshuffle(shoe, "Automatic reshuffle", ())
        return True

    def trigger_manual_reshuffle(self, reason: str = "Manual reshuffle", in_play: Iterable[Card] = ()):
        shoe = self.current_shoe
        with self._lock:
            self._reshuffle(shoe, reason, in_play)

    def status(self) -> ShoeStatus:
        shoe = self.current_shoe
        return ShoeStatus(
            deck_count=shoe.num_decks,
            total_cards=shoe.total_cards,
            remaining_cards=shoe.remaining_cards,
            remaining_percentage=shoe.remaining_percentage(),
            penetration_threshold=self._penetration_threshold,
            needs_reshuffle=self.is_reshuffle_needed(),
            auto_reshuffle_enabled=self._auto_reshuffle_enabled,
        )

    def _reshuffle(self, shoe: Shoe, reason: str, in_play: Iterable[Card]):
        remaining = shoe.remaining_percentage()
        shoe.reset(in_play=in_play, reason=reason)
        logger.info("Shoe reshuffled (%s) at %.1f%% remaining", reason, remaining * 100)
        self._publish(ReshuffleKind.OCCURRED, reason, remaining)

    def _on_shoe_event(self, event: ReshuffleEvent):
        # RESHUFFLED is republished by _reshuffle with the pre-reset percentage
        if event.kind != ReshuffleKind.NEEDED:
            return
        if self._auto_reshuffle_enabled:
            logger.debug("Penetration threshold reached; reshuffling before the next deal")
            return
        logger.warning("Penetration threshold reached with automatic reshuffle disabled")
        self._publish(ReshuffleKind.REQUIRED, "Reshuffle required: penetration threshold reached", event.remaining_percentage)

    def _publish(self, kind: ReshuffleKind, reason: str, remaining_percentage: float):
        event = ReshuffleEvent(
            kind=kind,
            reason=reason,
            remaining_percentage=remaining_percentage,
            penetration_threshold=self._penetration_threshold,
        )
        with self._lock:
            subscribers = list(self._subscribers[kind])
        for callback in subscribers:
            callback(event)
