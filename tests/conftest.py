import pytest

from blackjack import Card, Hand, Rank, Shoe, Suit
from game_service import GameService
from settings import GameConfiguration

RANKS = {rank.symbol: rank for rank in Rank}


def card(symbol: str, suit: Suit = Suit.SPADES) -> Card:
    return Card(RANKS[symbol], suit)


def hand(*symbols: str, split: bool = False) -> Hand:
    return Hand(cards=[card(s) for s in symbols], is_split_hand=split)


def stack_shoe(shoe: Shoe, *symbols: str):
    """Move one card of each rank to the front of the shoe, in draw order."""
    front = []
    for symbol in symbols:
        rank = RANKS[symbol]
        index = next(i for i, c in enumerate(shoe.cards) if c.rank == rank)
        front.append(shoe.cards.pop(index))
    shoe.cards[:0] = front


@pytest.fixture
def make_game():
    def factory(*stack: str, **overrides) -> GameService:
        overrides.setdefault("seed", 7)
        game = GameService(GameConfiguration(**overrides))
        stack_shoe(game.shoe_manager.current_shoe, *stack)
        return game

    return factory
