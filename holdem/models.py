from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Union

from .cards import Card, cards_to_labels


class Phase(str, Enum):
    WAITING = "waiting"
    PREFLOP = "preflop"
    FLOP = "flop"
    TURN = "turn"
    RIVER = "river"
    SHOWDOWN = "showdown"
    ENDED = "ended"


INTERACTIVE_PHASES = (Phase.PREFLOP, Phase.FLOP, Phase.TURN, Phase.RIVER)


class ActionType(str, Enum):
    FOLD = "fold"
    CHECK = "check"
    CALL = "call"
    RAISE = "raise"
    ALL_IN = "all-in"


class HandCategory(str, Enum):
    HIGH_CARD = "high-card"
    ONE_PAIR = "one-pair"
    TWO_PAIR = "two-pair"
    THREE_OF_A_KIND = "three-of-a-kind"
    STRAIGHT = "straight"
    FLUSH = "flush"
    FULL_HOUSE = "full-house"
    FOUR_OF_A_KIND = "four-of-a-kind"
    STRAIGHT_FLUSH = "straight-flush"
    ROYAL_FLUSH = "royal-flush"

    @property
    def strength(self) -> int:
        return _CATEGORY_ORDER.index(self) + 1


_CATEGORY_ORDER = list(HandCategory)


class Rejection(str, Enum):
    """Why the engine refused a request. Nothing was mutated."""

    HAND_NOT_ACTIVE = "HAND_NOT_ACTIVE"
    UNKNOWN_PLAYER = "UNKNOWN_PLAYER"
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    PLAYER_FOLDED = "PLAYER_FOLDED"
    PLAYER_ALL_IN = "PLAYER_ALL_IN"
    ILLEGAL_ACTION = "ILLEGAL_ACTION"
    AMOUNT_REQUIRED = "AMOUNT_REQUIRED"
    UNEXPECTED_AMOUNT = "UNEXPECTED_AMOUNT"
    RAISE_OUT_OF_RANGE = "RAISE_OUT_OF_RANGE"
    NOT_ENOUGH_PLAYERS = "NOT_ENOUGH_PLAYERS"
    HAND_IN_PROGRESS = "HAND_IN_PROGRESS"
    TABLE_FULL = "TABLE_FULL"
    DUPLICATE_PLAYER = "DUPLICATE_PLAYER"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INSUFFICIENT_CHIPS = "INSUFFICIENT_CHIPS"


# Actions ---------------------------------------------------------------
# Only Raise carries an amount: the increment over the current bet.


@dataclass(frozen=True)
class Fold:
    type: ClassVar[ActionType] = ActionType.FOLD


@dataclass(frozen=True)
class Check:
    type: ClassVar[ActionType] = ActionType.CHECK


@dataclass(frozen=True)
class Call:
    type: ClassVar[ActionType] = ActionType.CALL


@dataclass(frozen=True)
class Raise:
    amount: int
    type: ClassVar[ActionType] = ActionType.RAISE


@dataclass(frozen=True)
class AllIn:
    type: ClassVar[ActionType] = ActionType.ALL_IN


Action = Union[Fold, Check, Call, Raise, AllIn]

_SIMPLE_ACTIONS = {
    ActionType.FOLD: Fold(),
    ActionType.CHECK: Check(),
    ActionType.CALL: Call(),
    ActionType.ALL_IN: AllIn(),
}


def build_action(action: Union[ActionType, str], amount: Optional[int] = None) -> Union[Action, Rejection]:
    """Turn a wire-style (name, amount) pair into an action value."""
    try:
        action_type = ActionType(action)
    except ValueError:
        return Rejection.ILLEGAL_ACTION
    if action_type == ActionType.RAISE:
        if amount is None or isinstance(amount, bool) or not isinstance(amount, int):
            return Rejection.AMOUNT_REQUIRED
        return Raise(amount)
    if amount not in (None, 0):
        return Rejection.UNEXPECTED_AMOUNT
    return _SIMPLE_ACTIONS[action_type]


# Table -----------------------------------------------------------------


@dataclass
class GameSettings:
    max_players: int = 9
    small_blind: int = 10
    big_blind: int = 20
    starting_chips: int = 1000
    turn_time_limit: int = 30  # seconds, 0 disables the turn clock
    extension_time: int = 30

    def to_dict(self) -> Dict[str, object]:
        return {
            "max_players": self.max_players,
            "small_blind": self.small_blind,
            "big_blind": self.big_blind,
            "starting_chips": self.starting_chips,
            "turn_time_limit": self.turn_time_limit,
            "extension_time": self.extension_time,
        }


@dataclass
class Player:
    id: str
    name: str
    seat_index: int
    chips: int
    cards: List[Card] = field(default_factory=list)
    bet: int = 0
    total_bet: int = 0
    folded: bool = False
    is_all_in: bool = False
    has_acted: bool = False
    is_turn: bool = False
    is_dealer: bool = False
    is_small_blind: bool = False
    is_big_blind: bool = False
    is_connected: bool = True
    joined_mid_hand: bool = False
    avatar: Optional[str] = None

    def reset_for_hand(self) -> None:
        self.cards.clear()
        self.bet = 0
        self.total_bet = 0
        self.folded = False
        self.is_all_in = False
        self.has_acted = False
        self.is_turn = False
        self.is_dealer = False
        self.is_small_blind = False
        self.is_big_blind = False
        self.joined_mid_hand = False

    def reset_for_round(self) -> None:
        self.bet = 0
        self.has_acted = False

    def to_dict(self, reveal_cards: bool = True) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "avatar": self.avatar,
            "seat_index": self.seat_index,
            "chips": self.chips,
            "cards": cards_to_labels(self.cards) if reveal_cards else [None] * len(self.cards),
            "bet": self.bet,
            "total_bet": self.total_bet,
            "folded": self.folded,
            "is_all_in": self.is_all_in,
            "has_acted": self.has_acted,
            "is_turn": self.is_turn,
            "is_dealer": self.is_dealer,
            "is_small_blind": self.is_small_blind,
            "is_big_blind": self.is_big_blind,
            "is_connected": self.is_connected,
            "joined_mid_hand": self.joined_mid_hand,
        }


def create_player(
    player_id: str,
    name: str,
    seat_index: int,
    chips: int,
    avatar: Optional[str] = None,
) -> Player:
    return Player(id=player_id, name=name, seat_index=seat_index, chips=chips, avatar=avatar)


@dataclass
class Pot:
    amount: int = 0
    eligible_players: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {"amount": self.amount, "eligible_players": list(self.eligible_players)}


@dataclass
class HandResult:
    category: HandCategory
    strength: int
    cards: List[Card]
    kickers: List[int]
    description: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "category": self.category.value,
            "strength": self.strength,
            "cards": cards_to_labels(self.cards),
            "kickers": list(self.kickers),
            "description": self.description,
        }


@dataclass
class WinnerInfo:
    player_id: str
    pot_index: int
    amount: int
    hand: Optional[HandResult] = None  # None when everyone else folded

    def to_dict(self) -> Dict[str, object]:
        return {
            "player_id": self.player_id,
            "pot_index": self.pot_index,
            "amount": self.amount,
            "hand": self.hand.to_dict() if self.hand else None,
        }


@dataclass(frozen=True)
class LastAction:
    player_id: str
    action: ActionType
    amount: Optional[int]
    phase: Phase

    def to_dict(self) -> Dict[str, object]:
        return {
            "player_id": self.player_id,
            "action": self.action.value,
            "amount": self.amount,
            "phase": self.phase.value,
        }


@dataclass
class GameState:
    phase: Phase = Phase.WAITING
    players: List[Player] = field(default_factory=list)
    community_cards: List[Card] = field(default_factory=list)
    pots: List[Pot] = field(default_factory=lambda: [Pot()])
    current_bet: int = 0
    min_raise: int = 0
    dealer_index: int = -1
    current_player_index: int = -1
    small_blind: int = 0
    big_blind: int = 0
    last_action: Optional[LastAction] = None
    winners: Optional[List[WinnerInfo]] = None

    def _reveals(self, player: Player, viewer: Optional[str]) -> bool:
        if viewer is None or player.id == viewer:
            return True
        if self.phase not in (Phase.SHOWDOWN, Phase.ENDED) or player.folded:
            return False
        # An uncalled winner never has to show.
        return sum(1 for other in self.players if not other.folded) > 1

    def to_dict(self, viewer: Optional[str] = None) -> Dict[str, object]:
        """Serialise the state; with ``viewer`` set, hide hole cards that were not shown down."""
        return {
            "phase": self.phase.value,
            "players": [
                player.to_dict(reveal_cards=self._reveals(player, viewer)) for player in self.players
            ],
            "community_cards": cards_to_labels(self.community_cards),
            "pots": [pot.to_dict() for pot in self.pots],
            "current_bet": self.current_bet,
            "min_raise": self.min_raise,
            "dealer_index": self.dealer_index,
            "current_player_index": self.current_player_index,
            "small_blind": self.small_blind,
            "big_blind": self.big_blind,
            "last_action": self.last_action.to_dict() if self.last_action else None,
            "winners": [winner.to_dict() for winner in self.winners] if self.winners is not None else None,
        }


@dataclass
class RoomState:
    room_id: str
    host_id: Optional[str]
    players: List[Player]
    game_state: Optional[GameState]
    settings: GameSettings
    is_game_started: bool = False

    def to_dict(self, viewer: Optional[str] = None) -> Dict[str, object]:
        game = self.game_state.to_dict(viewer) if self.game_state else None
        return {
            "room_id": self.room_id,
            "host_id": self.host_id,
            "players": game["players"] if game else [p.to_dict(reveal_cards=False) for p in self.players],
            "game_state": game,
            "settings": self.settings.to_dict(),
            "is_game_started": self.is_game_started,
        }


@dataclass
class ActionOutcome:
    ok: bool
    rejection: Optional[Rejection] = None
    events: List[Dict[str, object]] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok
