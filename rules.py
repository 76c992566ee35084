from blackjack import Card, GameResult, Hand, PlayerAction, Rank


def card_value(card: Card, current_hand_value: int) -> int:
    if card.rank == Rank.ACE:
        return 11 if current_hand_value + 11 <= 21 else 1
    return card.value


def should_dealer_hit(dealer_value: int, is_soft: bool = False, hit_soft_17: bool = False) -> bool:
    if dealer_value <= 16:
        return True
    return hit_soft_17 and dealer_value == 17 and is_soft


def is_natural_blackjack(hand: Hand) -> bool:
    return hand.is_blackjack


def is_busted(hand: Hand) -> bool:
    return hand.is_busted


def can_double_down(hand: Hand) -> bool:
    return hand.card_count == 2 and not hand.is_busted and not hand.is_blackjack


def can_split(hand: Hand) -> bool:
    if hand.card_count != 2:
        return False
    return hand.cards[0].rank == hand.cards[1].rank


def is_valid_player_action(action: PlayerAction, hand: Hand) -> bool:
    if hand.is_busted:
        return False
    match action:
        case PlayerAction.HIT | PlayerAction.STAND:
            return True
        case PlayerAction.DOUBLE_DOWN:
            return can_double_down(hand)
        case PlayerAction.SPLIT:
            return can_split(hand)
        case PlayerAction.SURRENDER:
            return hand.card_count == 2 and not hand.is_split_hand
    return False


def determine_result(player_hand: Hand, dealer_hand: Hand) -> GameResult:
    if player_hand.is_busted:
        return GameResult.LOSE
    if dealer_hand.is_busted:
        return GameResult.BLACKJACK if player_hand.is_blackjack else GameResult.WIN
    if player_hand.is_blackjack and dealer_hand.is_blackjack:
        return GameResult.PUSH
    if player_hand.is_blackjack:
        return GameResult.BLACKJACK
    if dealer_hand.is_blackjack:
        return GameResult.LOSE
    if player_hand.value > dealer_hand.value:
        return GameResult.WIN
    if player_hand.value < dealer_hand.value:
        return GameResult.LOSE
    return GameResult.PUSH
