from decimal import Decimal

import pytest

from betting import BettingResult, BettingService
from blackjack import GameResult
from errors import InsufficientFunds, InvalidArgument, InvalidOperation
from money import Bet, BetType, Money


@pytest.fixture
async def service():
    service = BettingService()
    await service.set_initial_bankroll("Alice", Money(100))
    return service


def test_limits_must_be_ordered():
    with pytest.raises(InvalidArgument):
        BettingService(minimum_bet=Money(100), maximum_bet=Money(10))


def test_failure_defaults_to_invalid_operation():
    result = BettingResult.failure("nope")
    assert result.is_failure
    assert isinstance(result.error, InvalidOperation)


async def test_place_bet_debits_bankroll(service):
    result = await service.place_bet("Alice", Money(10))
    assert result.is_success
    assert result.bet.bet_type == BetType.STANDARD
    assert await service.get_player_bankroll("Alice") == Money(90)
    assert await service.get_current_bet("alice") is result.bet


async def test_names_are_case_insensitive(service):
    await service.place_bet("ALICE", Money(10))
    assert await service.get_player_bankroll("alice") == Money(90)
    assert service.has_bankroll("Alice ")


async def test_second_bet_is_rejected(service):
    await service.place_bet("Alice", Money(10))
    result = await service.place_bet("Alice", Money(10))
    assert result.is_failure
    assert isinstance(result.error, InvalidOperation)
    assert await service.get_player_bankroll("Alice") == Money(90)


@pytest.mark.parametrize(
    "amount, error",
    [
        (Money(Decimal("0.50")), InvalidArgument),
        (Money(2000), InvalidArgument),
        (Money(10, "EUR"), InvalidArgument),
    ],
)
async def test_invalid_bets(service, amount, error):
    result = await service.validate_bet("Alice", amount)
    assert result.is_failure
    assert isinstance(result.error, error)


async def test_insufficient_funds_never_debits(service):
    result = await service.place_bet("Alice", Money(500))
    assert isinstance(result.error, InsufficientFunds)
    assert await service.get_player_bankroll("Alice") == Money(100)
    assert await service.get_bets("Alice") == []


async def test_blank_name_fails_validation(service):
    result = await service.validate_bet(" ", Money(10))
    assert isinstance(result.error, InvalidArgument)


async def test_unknown_player_has_nothing(service):
    assert await service.get_player_bankroll("Bob") == Money(0)
    assert not await service.has_sufficient_funds("Bob", Money(1))
    assert await service.get_current_bet("Bob") is None


async def test_additional_bet(service):
    await service.place_bet("Alice", Money(10))
    result = await service.place_additional_bet(Bet(Money(10), "Alice", BetType.DOUBLE_DOWN))
    assert result.is_success
    assert await service.get_player_bankroll("Alice") == Money(80)
    assert len(await service.get_bets("Alice")) == 2


async def test_additional_bet_needs_funds(service):
    await service.place_bet("Alice", Money(60))
    result = await service.place_additional_bet(Bet(Money(60), "Alice", BetType.SPLIT))
    assert isinstance(result.error, InsufficientFunds)
    assert await service.get_player_bankroll("Alice") == Money(40)


async def test_additional_bet_needs_a_standard_bet(service):
    result = await service.place_additional_bet(Bet(Money(10), "Alice", BetType.SPLIT))
    assert result.is_failure


@pytest.mark.parametrize(
    "result, payout, total",
    [
        (GameResult.WIN, 10, 20),
        (GameResult.BLACKJACK, 15, 25),
        (GameResult.PUSH, 0, 10),
        (GameResult.LOSE, 0, 0),
    ],
)
async def test_payout_table(service, result, payout, total):
    payout_result = await service.calculate_payout(result, Bet(Money(10), "Alice"))
    assert payout_result.payout_amount == Money(payout)
    assert payout_result.total_return == Money(total)


async def test_six_to_five_tables():
    service = BettingService(blackjack_multiplier=Decimal("1.2"))
    payout = await service.calculate_payout(GameResult.BLACKJACK, Bet(Money(10), "Alice"))
    assert payout.payout_amount == Money(12)


async def test_process_payouts_credits_and_clears(service):
    await service.set_initial_bankroll("Bob", Money(100))
    alice = (await service.place_bet("Alice", Money(10))).bet
    await service.place_bet("Bob", Money(20))

    summary = await service.process_payouts({"alice": GameResult.BLACKJACK, "Bob": GameResult.LOSE})

    assert await service.get_player_bankroll("Alice") == Money(115)
    assert await service.get_player_bankroll("Bob") == Money(80)
    assert alice.is_settled
    assert await service.get_bets("Alice") == []
    assert summary.total_payouts == 2
    assert summary.blackjack_count == 1
    assert summary.win_count == 1
    assert summary.loss_count == 1
    assert summary.total_payout_amount == Money(15)
    assert summary.total_return_amount == Money(25)


async def test_process_payouts_per_hand(service):
    await service.place_bet("Alice", Money(10))
    await service.place_additional_bet(Bet(Money(10), "Alice", BetType.SPLIT, hand_id=1))

    summary = await service.process_payouts({"Alice": {0: GameResult.WIN, 1: GameResult.PUSH}})

    assert await service.get_player_bankroll("Alice") == Money(110)
    assert summary.push_count == 1
    assert [p.game_result for p in summary.payouts_for("alice")] == [GameResult.WIN, GameResult.PUSH]


async def test_process_payouts_missing_hand_changes_nothing(service):
    await service.place_bet("Alice", Money(10))
    await service.place_additional_bet(Bet(Money(10), "Alice", BetType.SPLIT, hand_id=1))

    with pytest.raises(InvalidArgument):
        await service.process_payouts({"Alice": {0: GameResult.WIN}})

    assert await service.get_player_bankroll("Alice") == Money(80)
    assert all(bet.is_active for bet in await service.get_bets("Alice"))


async def test_surrender_returns_half(service):
    await service.place_bet("Alice", Money(10))
    summary = await service.process_payouts({"Alice": GameResult.SURRENDER})
    assert await service.get_player_bankroll("Alice") == Money(95)
    assert summary.surrender_count == 1


async def test_update_bankroll_floors_at_zero(service):
    await service.update_bankroll("Alice", Money(-500))
    assert await service.get_player_bankroll("Alice") == Money(0)


async def test_initial_bankroll_validation(service):
    with pytest.raises(InvalidArgument):
        await service.set_initial_bankroll("Bob", Money(-1))
    with pytest.raises(InvalidArgument):
        await service.set_initial_bankroll("", Money(10))


async def test_clear_all_bets(service):
    await service.place_bet("Alice", Money(10))
    await service.clear_all_bets()
    assert await service.get_current_bet("Alice") is None
    assert service.get_all_bankrolls() == {"alice": Money(90)}
