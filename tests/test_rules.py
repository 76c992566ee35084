import pytest

import rules
from blackjack import GameResult, PlayerAction
from conftest import card, hand


class TestCardValue:
    def test_pips_and_faces(self):
        assert rules.card_value(card("7"), 0) == 7
        assert rules.card_value(card("10"), 0) == 10
        assert rules.card_value(card("Q"), 5) == 10

    def test_ace_soft_or_hard(self):
        assert rules.card_value(card("A"), 10) == 11
        assert rules.card_value(card("A"), 11) == 1


class TestDealer:
    @pytest.mark.parametrize("value, hits", [(12, True), (16, True), (17, False), (21, False)])
    def test_stands_on_17(self, value, hits):
        assert rules.should_dealer_hit(value) is hits

    def test_soft_17_variant(self):
        assert not rules.should_dealer_hit(17, is_soft=True)
        assert rules.should_dealer_hit(17, is_soft=True, hit_soft_17=True)
        assert not rules.should_dealer_hit(17, is_soft=False, hit_soft_17=True)


class TestDetermineResult:
    def test_player_bust_loses_even_if_dealer_busts(self):
        assert rules.determine_result(hand("K", "6", "9"), hand("K", "6", "8")) == GameResult.LOSE

    def test_dealer_bust(self):
        assert rules.determine_result(hand("10", "8"), hand("K", "6", "8")) == GameResult.WIN

    def test_player_blackjack(self):
        assert rules.determine_result(hand("A", "K"), hand("10", "7")) == GameResult.BLACKJACK

    def test_both_blackjack_push(self):
        assert rules.determine_result(hand("A", "K"), hand("A", "Q")) == GameResult.PUSH

    def test_dealer_blackjack_beats_three_card_21(self):
        assert rules.determine_result(hand("7", "7", "7"), hand("A", "J")) == GameResult.LOSE

    def test_split_21_is_not_blackjack(self):
        assert rules.determine_result(hand("A", "K", split=True), hand("10", "7")) == GameResult.WIN

    def test_compare_totals(self):
        assert rules.determine_result(hand("10", "9"), hand("10", "8")) == GameResult.WIN
        assert rules.determine_result(hand("10", "7"), hand("10", "8")) == GameResult.LOSE
        assert rules.determine_result(hand("10", "8"), hand("9", "9")) == GameResult.PUSH


class TestEligibility:
    def test_natural(self):
        assert rules.is_natural_blackjack(hand("A", "10"))
        assert not rules.is_natural_blackjack(hand("A", "10", split=True))

    def test_double_down(self):
        assert rules.can_double_down(hand("5", "6"))
        assert not rules.can_double_down(hand("5", "6", "2"))
        assert not rules.can_double_down(hand("A", "K"))

    def test_split_needs_matching_rank(self):
        assert rules.can_split(hand("8", "8"))
        assert not rules.can_split(hand("K", "Q"))
        assert not rules.can_split(hand("8", "8", "2"))

    def test_valid_actions(self):
        assert rules.is_valid_player_action(PlayerAction.HIT, hand("5", "6"))
        assert not rules.is_valid_player_action(PlayerAction.STAND, hand("K", "Q", "5"))
        assert not rules.is_valid_player_action(PlayerAction.SURRENDER, hand("10", "6", split=True))
