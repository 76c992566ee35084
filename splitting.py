import logging
from typing import TYPE_CHECKING

import rules
from blackjack import Hand, Rank
from errors import InsufficientFunds, InvalidOperation, InvalidSplit, SplitLimitReached
from money import Bet, BetType, Money

if TYPE_CHECKING:
    from game_service import PlayerState

logger = logging.getLogger(__name__)

DEFAULT_MAX_SPLITS = 3


class SplitHandManager:
    """Split eligibility, execution and the wager a split needs.

    Splitting never touches the original hand: it hands back two fresh
    one-card hands and leaves the caller to swap them into the turn order.
    """

    def __init__(self, max_splits: int = DEFAULT_MAX_SPLITS):
        self.max_splits = max_splits

    def can_split(self, hand: Hand) -> bool:
        return rules.can_split(hand)

    def split_hand(self, hand: Hand) -> tuple[Hand, Hand]:
        if not self.can_split(hand):
            raise InvalidSplit("Hand cannot be split. Must have exactly 2 cards of the same rank.")
        first = Hand(cards=[hand.cards[0]], is_split_hand=True)
        second = Hand(cards=[hand.cards[1]], is_split_hand=True)
        logger.debug("Split %s into [%s] and [%s]", hand, first, second)
        return first, second

    def is_split_aces_hand(self, hand: Hand) -> bool:
        return hand.is_split_hand and hand.card_count == 1 and hand.cards[0].rank == Rank.ACE

    def can_resplit(self, hand: Hand, resplit_aces: bool = False) -> bool:
        if not self.can_split(hand):
            return False
        if hand.is_split_hand and hand.cards[0].rank == Rank.ACE:
            return resplit_aces
        return True

    def has_sufficient_funds_for_split(self, bet: Bet | None, bankroll: Money) -> bool:
        if bet is None or bet.is_settled:
            return False
        return bankroll >= bet.amount

    def create_split_bet(self, original_bet: Bet, hand_id: int = 0) -> Bet:
        if original_bet.is_settled:
            raise InvalidOperation("Cannot create split bet from a settled bet.")
        if original_bet.bet_type != BetType.STANDARD:
            raise InvalidOperation("Can only split standard bets.")
        return Bet(original_bet.amount, original_bet.player_name, BetType.SPLIT, hand_id=hand_id)

    def get_maximum_splits(self) -> int:
        return self.max_splits

    def count_split_hands(self, player: "PlayerState") -> int:
        return sum(1 for player_hand in player.hands if player_hand.hand.is_split_hand)

    def splits_performed(self, player: "PlayerState") -> int:
        return len(player.hands) - 1

    def validate_split(self, hand: Hand, player: "PlayerState", bankroll: Money):
        if not self.can_split(hand):
            raise InvalidSplit("Can only split a two-card pair of the same rank.")
        if self.splits_performed(player) >= self.max_splits:
            raise SplitLimitReached(f"Maximum of {self.max_splits} splits per round reached.")
        if not self.has_sufficient_funds_for_split(player.original_bet, bankroll):
            raise InsufficientFunds(f"Insufficient funds to split. Available: {bankroll}.")
