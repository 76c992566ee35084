import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

import rules
from betting import BettingResult, BettingService, PayoutSummary
from blackjack import Card, GameResult, Hand, PlayerAction, ReshuffleEvent, ReshuffleKind, Shoe
from errors import (
    BettingPhaseError,
    EmptyShoe,
    InsufficientFunds,
    InvalidArgument,
    InvalidOperation,
    InvalidPlayerAction,
)
from money import Bet, BetType, Money
from settings import GameConfiguration
from shoe_manager import ShoeManager, ShoeStatus
from splitting import SplitHandManager

logger = logging.getLogger(__name__)

HIDDEN_CARD = "??"


class GamePhase(Enum):
    NOT_STARTED = "not_started"
    BETTING_OPEN = "betting_open"
    INITIAL_DEAL = "initial_deal"
    PLAYER_TURNS = "player_turns"
    DEALER_TURN = "dealer_turn"
    ROUND_COMPLETE = "round_complete"


@dataclass
class PlayerHand:
    hand: Hand
    hand_id: int
    bets: list[Bet] = field(default_factory=list)
    is_standing: bool = False
    is_doubled: bool = False
    is_surrendered: bool = False

    @property
    def wagered(self) -> Money:
        total = self.bets[0].amount
        for bet in self.bets[1:]:
            total = total + bet.amount
        return total

    @property
    def is_complete(self) -> bool:
        return (
            self.is_standing
            or self.is_doubled
            or self.is_surrendered
            or self.hand.is_busted
            or self.hand.value == 21
        )


@dataclass
class PlayerState:
    name: str
    hands: list[PlayerHand] = field(default_factory=list)
    original_bet: Bet | None = None
    next_hand_id: int = 0

    def new_hand_id(self) -> int:
        hand_id = self.next_hand_id
        self.next_hand_id += 1
        return hand_id


@dataclass(frozen=True)
class HandView:
    hand_id: int
    cards: list[str]
    value: int
    is_soft: bool
    is_blackjack: bool
    is_busted: bool
    is_split_hand: bool
    is_complete: bool
    wagered: Money
    allowed_actions: list[PlayerAction]


@dataclass(frozen=True)
class PlayerView:
    name: str
    hands: list[HandView]
    is_current: bool


@dataclass(frozen=True)
class DealerView:
    cards: list[str]
    visible_value: int
    hole_card_hidden: bool


@dataclass(frozen=True)
class GameState:
    phase: GamePhase
    round_number: int
    current_player: str | None
    current_hand_index: int | None
    players: list[PlayerView]
    dealer: DealerView
    shoe: ShoeStatus
    can_place_bets: bool


@dataclass(frozen=True)
class PlayerActionResult:
    player_name: str
    action: PlayerAction
    hand_id: int
    cards: list[str]
    value: int
    is_busted: bool
    is_blackjack: bool
    should_continue_turn: bool
    phase: GamePhase


@dataclass(frozen=True)
class HandOutcome:
    hand_id: int
    cards: list[str]
    value: int
    result: GameResult
    wagered: Money
    payout: Money
    total_return: Money


@dataclass(frozen=True)
class PlayerSummary:
    name: str
    hands: list[HandOutcome]
    bankroll: Money

    @property
    def net(self) -> Money:
        total = Money.zero(self.bankroll.currency)
        for outcome in self.hands:
            total = total + outcome.total_return - outcome.wagered
        return total


@dataclass(frozen=True)
class GameSummary:
    round_number: int
    players: list[PlayerSummary]
    dealer_cards: list[str]
    dealer_value: int
    payouts: PayoutSummary
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def _results(self) -> list[GameResult]:
        return [outcome.result for player in self.players for outcome in player.hands]

    def player(self, name: str) -> PlayerSummary | None:
        key = name.strip().casefold()
        return next((p for p in self.players if p.name.casefold() == key), None)

    @property
    def winner_count(self) -> int:
        return sum(1 for r in self._results() if r in (GameResult.WIN, GameResult.BLACKJACK))

    @property
    def loser_count(self) -> int:
        return sum(1 for r in self._results() if r in (GameResult.LOSE, GameResult.SURRENDER))

    @property
    def push_count(self) -> int:
        return sum(1 for r in self._results() if r == GameResult.PUSH)

    @property
    def blackjack_count(self) -> int:
        return sum(1 for r in self._results() if r == GameResult.BLACKJACK)


class GameService:
    """Runs one table through betting, dealing, player turns, dealer play and payouts.

    Every round follows ``GamePhase`` in order. Operations called in the wrong
    phase raise without changing anything, and each action is checked before
    any card is drawn or any money moves.
    """

    def __init__(
        self,
        config: GameConfiguration | None = None,
        *,
        shoe_manager: ShoeManager | None = None,
        betting: BettingService | None = None,
        split_manager: SplitHandManager | None = None,
    ):
        self.config = config or GameConfiguration()
        if shoe_manager is None:
            shoe_manager = ShoeManager(
                Shoe(self.config.num_decks, seed=self.config.seed),
                penetration_threshold=self.config.penetration_threshold,
                auto_reshuffle_enabled=self.config.auto_reshuffle_enabled,
            )
        self.shoe_manager = shoe_manager
        self.betting = betting or BettingService(
            self.config.blackjack_payout,
            minimum_bet=self.config.money(self.config.minimum_bet),
            maximum_bet=self.config.money(self.config.maximum_bet),
        )
        self.split_manager = split_manager or SplitHandManager(self.config.max_splits)

        self.phase = GamePhase.NOT_STARTED
        self.round_number = 0
        self.players: list[PlayerState] = []
        self.dealer_hand = Hand()
        self.hole_card_revealed = False
        self.reshuffle_events: deque[ReshuffleEvent] = deque(maxlen=50)
        self._player_index = 0
        self._hand_index = 0
        self._dealer_played = False
        self._summary: GameSummary | None = None

        self.shoe_manager.subscribe(ReshuffleKind.OCCURRED, self._on_reshuffle)
        self.shoe_manager.subscribe(ReshuffleKind.REQUIRED, self._on_reshuffle)

    @property
    def is_game_in_progress(self) -> bool:
        return self.phase not in (GamePhase.NOT_STARTED, GamePhase.ROUND_COMPLETE)

    @property
    def current_player(self) -> PlayerState | None:
        if self.phase != GamePhase.PLAYER_TURNS or self._player_index >= len(self.players):
            return None
        return self.players[self._player_index]

    @property
    def current_hand(self) -> PlayerHand | None:
        player = self.current_player
        if player is None or self._hand_index >= len(player.hands):
            return None
        return player.hands[self._hand_index]

    def get_player(self, name: str) -> PlayerState | None:
        if not name or not name.strip():
            return None
        key = name.strip().casefold()
        return next((p for p in self.players if p.name.casefold() == key), None)

    def _require_player(self, name: str) -> PlayerState:
        player = self.get_player(name)
        if player is None:
            raise InvalidArgument(f"Player '{name}' is not seated in the current game.")
        return player

    async def start_new_game(self, player_names: Iterable[str]) -> GameState:
        if self.is_game_in_progress:
            raise InvalidOperation("A game is already in progress. Complete the current game before starting a new one.")

        names = list(player_names or [])
        if not names:
            raise InvalidArgument("At least one player name must be provided.")
        if any(not isinstance(n, str) or not n.strip() for n in names):
            raise InvalidArgument("Player names cannot be empty.")
        names = [n.strip() for n in names]
        seen: set[str] = set()
        duplicates = []
        for name in names:
            if name.casefold() in seen:
                duplicates.append(name)
            seen.add(name.casefold())
        if duplicates:
            raise InvalidArgument(f"Duplicate player names are not allowed: {', '.join(duplicates)}")
        if not self.config.min_players <= len(names) <= self.config.max_players:
            raise InvalidArgument(
                f"Table seats between {self.config.min_players} and {self.config.max_players} players."
            )

        minimum_bet = self.config.money(self.config.minimum_bet)
        default_bankroll = self.config.money(self.config.default_bankroll)
        short = []
        for name in names:
            bankroll = default_bankroll
            if self.betting.has_bankroll(name):
                bankroll = await self.betting.get_player_bankroll(name)
            if bankroll < minimum_bet:
                short.append(name)
        if short:
            raise InsufficientFunds(f"Cannot cover the minimum bet of {minimum_bet}: {', '.join(short)}")

        for name in names:
            if not self.betting.has_bankroll(name):
                await self.betting.set_initial_bankroll(name, default_bankroll)

        self.players = [PlayerState(name) for name in names]
        self.dealer_hand = Hand()
        self.hole_card_revealed = False
        self._player_index = 0
        self._hand_index = 0
        self._dealer_played = False
        self._summary = None
        self.round_number += 1
        self.phase = GamePhase.BETTING_OPEN
        logger.info("Round %d started with %s", self.round_number, ", ".join(names))
        return self.get_current_game_state()

    async def place_bet(self, player_name: str, amount) -> BettingResult:
        if self.phase != GamePhase.BETTING_OPEN:
            raise BettingPhaseError("Bets can only be placed while betting is open.")
        player = self._require_player(player_name)
        if player.original_bet is not None:
            raise BettingPhaseError(f"{player.name} has already placed a bet this round.")
        money = amount if isinstance(amount, Money) else self.config.money(amount)

        result = await self.betting.place_bet(player.name, money)
        if result.is_failure:
            raise result.error
        player.original_bet = result.bet

        self._check_bets_complete()
        return result

    def leave_table(self, player_name: str) -> GameState | None:
        """Drop a player who has not bet yet; the deal then waits only for those still seated."""
        if self.phase != GamePhase.BETTING_OPEN:
            raise BettingPhaseError("Players can only leave while betting is open.")
        player = self._require_player(player_name)
        if player.original_bet is not None:
            raise BettingPhaseError(f"{player.name} has already placed a bet this round.")
        self.players.remove(player)
        logger.info("%s left the table", player.name)
        if not self.players:
            self.phase = GamePhase.NOT_STARTED
            logger.info("Table is empty; round %d abandoned", self.round_number)
        else:
            self._check_bets_complete()
        return self.get_current_game_state()

    def _check_bets_complete(self):
        if all(p.original_bet is not None for p in self.players):
            self.phase = GamePhase.INITIAL_DEAL
            logger.info("All bets placed; ready to deal")

    def _cards_in_play(self) -> list[Card]:
        cards = list(self.dealer_hand.cards)
        for player in self.players:
            for player_hand in player.hands:
                cards.extend(player_hand.hand.cards)
        return cards

    def _ensure_cards(self, count: int):
        shoe = self.shoe_manager.current_shoe
        if shoe.remaining_cards >= count:
            return
        if not self.shoe_manager.auto_reshuffle_enabled:
            raise EmptyShoe(
                f"Shoe has {shoe.remaining_cards} cards but {count} are needed; a manual reshuffle is required."
            )
        logger.warning("Shoe exhausted mid-round; reshuffling cards not in play")
        self.shoe_manager.trigger_manual_reshuffle("Shoe exhausted mid-round", in_play=self._cards_in_play())
        if shoe.remaining_cards < count:
            raise EmptyShoe("Not enough cards outside of play to continue the round.")

    def _draw(self) -> Card:
        self._ensure_cards(1)
        return self.shoe_manager.draw()

    def deal_initial_cards(self) -> GameState:
        if self.phase != GamePhase.INITIAL_DEAL:
            raise InvalidOperation("Cannot deal initial cards. All bets must be placed first.")

        self.shoe_manager.handle_automatic_reshuffle()
        self._ensure_cards((len(self.players) + 1) * 2)

        for player in self.players:
            player.hands = [PlayerHand(Hand(), player.new_hand_id(), bets=[player.original_bet])]
        self.dealer_hand = Hand()
        for _ in range(2):
            for player in self.players:
                player.hands[0].hand.add_card(self._draw())
            self.dealer_hand.add_card(self._draw())

        logger.info("Initial cards dealt; dealer shows %s", self.dealer_hand.cards[0])
        self.phase = GamePhase.PLAYER_TURNS
        self._player_index = 0
        self._hand_index = 0
        if self.dealer_hand.is_blackjack:
            logger.info("Dealer has blackjack; skipping player turns")
            self._player_index = len(self.players)
            self.phase = GamePhase.DEALER_TURN
        else:
            self._advance()
        return self.get_current_game_state()

    def _deal_to_split_hand(self, player_hand: PlayerHand):
        split_aces = self.split_manager.is_split_aces_hand(player_hand.hand)
        player_hand.hand.add_card(self._draw())
        if split_aces and self.config.split_aces_one_card:
            player_hand.is_standing = True

    def _advance(self):
        while self._player_index < len(self.players):
            player = self.players[self._player_index]
            while self._hand_index < len(player.hands):
                player_hand = player.hands[self._hand_index]
                if player_hand.hand.card_count == 1:
                    self._deal_to_split_hand(player_hand)
                if not player_hand.is_complete:
                    return
                self._hand_index += 1
            self._player_index += 1
            self._hand_index = 0
        self.phase = GamePhase.DEALER_TURN
        logger.info("Player turns complete; dealer to play")

    def _allowed_actions(self, player: PlayerState, player_hand: PlayerHand) -> list[PlayerAction]:
        if player_hand.is_complete:
            return []
        return [
            action
            for action in PlayerAction
            if rules.is_valid_player_action(action, player_hand.hand)
            and self._table_allows(action, player, player_hand.hand)
        ]

    def _table_allows(self, action: PlayerAction, player: PlayerState, hand: Hand) -> bool:
        match action:
            case PlayerAction.DOUBLE_DOWN:
                return self.config.allow_double_down and (not hand.is_split_hand or self.config.double_after_split)
            case PlayerAction.SPLIT:
                return (
                    self.config.allow_split
                    and self.split_manager.can_resplit(hand, self.config.resplit_aces)
                    and self.split_manager.splits_performed(player) < self.split_manager.get_maximum_splits()
                )
            case PlayerAction.SURRENDER:
                return self.config.allow_surrender and len(player.hands) == 1
        return True

    def get_allowed_actions(self, player_name: str) -> list[PlayerAction]:
        player = self.get_player(player_name)
        if player is None or player is not self.current_player or self.current_hand is None:
            return []
        return self._allowed_actions(player, self.current_hand)

    async def process_player_action(self, player_name: str, action: PlayerAction | str) -> PlayerActionResult:
        if self.phase != GamePhase.PLAYER_TURNS:
            raise InvalidPlayerAction("It is not currently a player's turn.")
        player = self.get_player(player_name)
        if player is None:
            raise InvalidPlayerAction(f"Player '{player_name}' is not seated in the current game.")
        if player is not self.current_player:
            raise InvalidPlayerAction(f"It is not {player.name}'s turn.")
        try:
            action = PlayerAction(action)
        except ValueError as exc:
            raise InvalidArgument(f"Unknown action: {action}") from exc

        player_hand = self.current_hand
        if action not in self._allowed_actions(player, player_hand):
            raise InvalidPlayerAction(f"Action '{action.value}' is not valid for the current hand ({player_hand.hand}).")

        match action:
            case PlayerAction.HIT:
                player_hand.hand.add_card(self._draw())
            case PlayerAction.STAND:
                player_hand.is_standing = True
            case PlayerAction.DOUBLE_DOWN:
                await self._double_down(player, player_hand)
            case PlayerAction.SPLIT:
                await self._split(player)
                player_hand = self.current_hand
            case PlayerAction.SURRENDER:
                player_hand.is_surrendered = True
        logger.debug("%s %s -> %s (%d)", player.name, action.value, player_hand.hand, player_hand.hand.value)

        hand = player_hand.hand
        continues = not player_hand.is_complete
        self._advance()
        return PlayerActionResult(
            player_name=player.name,
            action=action,
            hand_id=player_hand.hand_id,
            cards=[str(c) for c in hand.cards],
            value=hand.value,
            is_busted=hand.is_busted,
            is_blackjack=hand.is_blackjack,
            should_continue_turn=continues,
            phase=self.phase,
        )

    async def _double_down(self, player: PlayerState, player_hand: PlayerHand):
        self._ensure_cards(1)
        original = player_hand.bets[0]
        bet = Bet(original.amount, player.name, BetType.DOUBLE_DOWN, hand_id=player_hand.hand_id)
        result = await self.betting.place_additional_bet(bet)
        if result.is_failure:
            raise result.error
        player_hand.bets.append(bet)
        player_hand.is_doubled = True
        player_hand.hand.add_card(self._draw())

    async def _split(self, player: PlayerState):
        index = self._hand_index
        player_hand = player.hands[index]
        bankroll = await self.betting.get_player_bankroll(player.name)
        self.split_manager.validate_split(player_hand.hand, player, bankroll)
        self._ensure_cards(1)

        split_bet = self.split_manager.create_split_bet(player.original_bet, hand_id=player.next_hand_id)
        result = await self.betting.place_additional_bet(split_bet)
        if result.is_failure:
            raise result.error
        first, second = self.split_manager.split_hand(player_hand.hand)
        player.hands[index] = PlayerHand(first, player_hand.hand_id, bets=player_hand.bets)
        player.hands.insert(index + 1, PlayerHand(second, player.new_hand_id(), bets=[split_bet]))
        logger.info("%s split %s; now playing %d hands", player.name, player_hand.hand, len(player.hands))
        self._deal_to_split_hand(player.hands[index])

    def play_dealer_turn(self) -> Hand:
        if self.phase != GamePhase.DEALER_TURN:
            raise InvalidOperation("Cannot play dealer turn. Player turns must be complete first.")
        if self._dealer_played:
            raise InvalidOperation("Dealer has already played this round.")

        self.hole_card_revealed = True
        all_out = all(
            player_hand.hand.is_busted or player_hand.is_surrendered
            for player in self.players
            for player_hand in player.hands
        )
        if all_out and not self.config.dealer_plays_when_all_bust:
            logger.info("Every hand is out; dealer reveals %s and stands", self.dealer_hand)
        else:
            while rules.should_dealer_hit(
                self.dealer_hand.value, self.dealer_hand.is_soft, self.config.dealer_hits_soft_17
            ):
                self.dealer_hand.add_card(self._draw())
            logger.info("Dealer finishes with %s (%d)", self.dealer_hand, self.dealer_hand.value)
        self._dealer_played = True
        return self.dealer_hand

    async def get_game_results(self) -> GameSummary:
        if self.phase == GamePhase.ROUND_COMPLETE and self._summary is not None:
            return self._summary
        if self.phase != GamePhase.DEALER_TURN or not self._dealer_played:
            raise InvalidOperation("Game results are not available until the dealer has played.")

        results: dict[str, dict[int, GameResult]] = {}
        for player in self.players:
            results[player.name] = {
                player_hand.hand_id: (
                    GameResult.SURRENDER
                    if player_hand.is_surrendered
                    else rules.determine_result(player_hand.hand, self.dealer_hand)
                )
                for player_hand in player.hands
            }
        payouts = await self.betting.process_payouts(results)

        summaries = []
        for player in self.players:
            player_payouts = payouts.payouts_for(player.name)
            outcomes = []
            for player_hand in player.hands:
                hand_payouts = [p for p in player_payouts if p.bet.hand_id == player_hand.hand_id]
                zero = Money.zero(self.betting.currency)
                outcomes.append(
                    HandOutcome(
                        hand_id=player_hand.hand_id,
                        cards=[str(c) for c in player_hand.hand.cards],
                        value=player_hand.hand.value,
                        result=results[player.name][player_hand.hand_id],
                        wagered=player_hand.wagered,
                        payout=sum((p.payout_amount for p in hand_payouts), zero),
                        total_return=sum((p.total_return for p in hand_payouts), zero),
                    )
                )
            bankroll = await self.betting.get_player_bankroll(player.name)
            summaries.append(PlayerSummary(player.name, outcomes, bankroll))

        self._summary = GameSummary(
            round_number=self.round_number,
            players=summaries,
            dealer_cards=[str(c) for c in self.dealer_hand.cards],
            dealer_value=self.dealer_hand.value,
            payouts=payouts,
        )
        self.phase = GamePhase.ROUND_COMPLETE
        logger.info("Round %d complete: %s", self.round_number, payouts)
        return self._summary

    def _dealer_view(self) -> DealerView:
        cards = self.dealer_hand.cards
        if self.hole_card_revealed or len(cards) < 2:
            return DealerView([str(c) for c in cards], self.dealer_hand.value, False)
        upcard = Hand(cards=[cards[0]])
        return DealerView([str(cards[0]), HIDDEN_CARD], upcard.value, True)

    def _hand_view(self, player: PlayerState, player_hand: PlayerHand, is_current: bool) -> HandView:
        hand = player_hand.hand
        return HandView(
            hand_id=player_hand.hand_id,
            cards=[str(c) for c in hand.cards],
            value=hand.value,
            is_soft=hand.is_soft,
            is_blackjack=hand.is_blackjack,
            is_busted=hand.is_busted,
            is_split_hand=hand.is_split_hand,
            is_complete=player_hand.is_complete,
            wagered=player_hand.wagered,
            allowed_actions=self._allowed_actions(player, player_hand) if is_current else [],
        )

    def get_current_game_state(self) -> GameState | None:
        if self.phase == GamePhase.NOT_STARTED:
            return None
        current = self.current_player
        players = []
        for player in self.players:
            hands = [
                self._hand_view(player, player_hand, player is current and i == self._hand_index)
                for i, player_hand in enumerate(player.hands)
            ]
            players.append(PlayerView(player.name, hands, player is current))
        return GameState(
            phase=self.phase,
            round_number=self.round_number,
            current_player=current.name if current else None,
            current_hand_index=self._hand_index if current else None,
            players=players,
            dealer=self._dealer_view(),
            shoe=self.shoe_manager.status(),
            can_place_bets=self.phase == GamePhase.BETTING_OPEN,
        )

    def trigger_manual_reshuffle(self, reason: str = "Manual reshuffle") -> ShoeStatus:
        in_play = self._cards_in_play() if self.is_game_in_progress else []
        self.shoe_manager.trigger_manual_reshuffle(reason, in_play=in_play)
        return self.shoe_manager.status()

    def replace_shoe(self, shoe: Shoe):
        if self.is_game_in_progress and self.phase != GamePhase.BETTING_OPEN:
            raise InvalidOperation("Cannot replace the shoe while cards are on the table.")
        self.shoe_manager.initialize(shoe)

    def _on_reshuffle(self, event: ReshuffleEvent):
        self.reshuffle_events.append(event)
