import itertools

import pytest

from blackjack import CARDS_PER_DECK, ReshuffleKind, Shoe, create_standard_deck
from conftest import card, hand
from errors import EmptyShoe, InvalidArgument


class TestHand:
    def test_number_cards(self):
        assert hand("5", "9").value == 14

    def test_face_cards_are_ten(self):
        assert hand("K", "Q").value == 20
        assert hand("J", "10").value == 20

    def test_ace_counts_eleven_when_safe(self):
        h = hand("A", "6")
        assert h.value == 17
        assert h.is_soft

    def test_ace_drops_to_one(self):
        h = hand("A", "6", "9")
        assert h.value == 16
        assert not h.is_soft

    def test_two_aces(self):
        assert hand("A", "A").value == 12
        assert hand("A", "A", "9").value == 21

    def test_natural_blackjack(self):
        h = hand("A", "K")
        assert h.is_blackjack
        assert not h.is_busted

    def test_three_card_21_is_not_blackjack(self):
        assert not hand("7", "7", "7").is_blackjack

    def test_split_hand_21_is_not_blackjack(self):
        h = hand("A", "K", split=True)
        assert h.value == 21
        assert not h.is_blackjack

    def test_bust(self):
        h = hand("K", "Q", "2")
        assert h.is_busted
        assert h.value == 22

    def test_split_flag_is_sticky(self):
        h = hand("8")
        h.mark_as_split_hand()
        h.add_card(card("3"))
        assert h.is_split_hand
        assert h.card_count == 2

    @pytest.mark.parametrize("symbols", [("A", "5", "3"), ("A", "2", "3", "4"), ("A", "9")])
    def test_value_is_order_independent(self, symbols):
        values = {hand(*order).value for order in itertools.permutations(symbols)}
        assert len(values) == 1

    def test_str(self):
        assert str(hand("A", "K")) == "A♠ K♠"


class TestShoe:
    def test_full_shoe(self):
        shoe = Shoe(num_decks=6, seed=1)
        assert shoe.remaining_cards == 6 * CARDS_PER_DECK
        assert shoe.total_cards == 312

    def test_single_deck_has_every_card_once(self):
        shoe = Shoe(num_decks=1, seed=1)
        assert sorted(shoe.cards, key=str) == sorted(create_standard_deck(), key=str)

    def test_rejects_zero_decks(self):
        with pytest.raises(InvalidArgument):
            Shoe(num_decks=0)

    def test_draw_removes_front_card(self):
        shoe = Shoe(num_decks=2, seed=3)
        front = shoe.cards[0]
        assert shoe.draw() == front
        assert shoe.remaining_cards == 103

    def test_dealt_plus_remaining_is_constant(self):
        shoe = Shoe(num_decks=2, seed=3)
        dealt = [shoe.draw() for _ in range(30)]
        assert len(dealt) + shoe.remaining_cards == 2 * CARDS_PER_DECK

    def test_empty_shoe_raises(self):
        shoe = Shoe(num_decks=1, seed=3)
        for _ in range(CARDS_PER_DECK):
            shoe.draw()
        assert shoe.is_empty
        with pytest.raises(EmptyShoe):
            shoe.draw()

    def test_reset_restores_all_cards(self):
        shoe = Shoe(num_decks=1, seed=3)
        for _ in range(20):
            shoe.draw()
        shoe.reset()
        assert shoe.remaining_cards == CARDS_PER_DECK

    def test_reset_leaves_out_cards_in_play(self):
        shoe = Shoe(num_decks=1, seed=3)
        in_play = [shoe.draw() for _ in range(5)]
        shoe.reset(in_play=in_play)
        assert shoe.remaining_cards == CARDS_PER_DECK - 5
        assert not set(in_play) & set(shoe.cards)

    def test_seed_is_reproducible(self):
        assert Shoe(1, seed=42).cards == Shoe(1, seed=42).cards

    def test_needs_reshuffle_boundary(self):
        shoe = Shoe(num_decks=1, seed=3)
        for _ in range(38):
            shoe.draw()
        assert not shoe.needs_reshuffle(0.25)
        shoe.draw()
        assert shoe.remaining_cards == 13
        assert shoe.needs_reshuffle(0.25)

    def test_threshold_listener_fires_once(self):
        shoe = Shoe(num_decks=1, seed=3)
        events = []
        shoe.add_listener(events.append)
        for _ in range(38):
            shoe.draw()
        assert events == []
        shoe.draw()
        shoe.draw()
        assert [e.kind for e in events] == [ReshuffleKind.NEEDED]

        shoe.reset()
        assert events[-1].kind == ReshuffleKind.RESHUFFLED

    def test_remove_listener(self):
        shoe = Shoe(num_decks=1, seed=3)
        events = []
        shoe.add_listener(events.append)
        shoe.remove_listener(events.append)
        shoe.reset()
        assert events == []
        assert shoe.listener_count == 0
