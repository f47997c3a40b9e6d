"""Texas Hold'em rules engine: deck, hand evaluation, betting and settlement."""

from .cards import RANKS, SUITS, Card, Deck, build_deck, parse_cards, parse_label
from .evaluator import compare, evaluate, find_winners
from .game import GameEngine
from .models import (
    Action,
    ActionOutcome,
    ActionType,
    AllIn,
    Call,
    Check,
    Fold,
    GameSettings,
    GameState,
    HandCategory,
    HandResult,
    Phase,
    Player,
    Pot,
    Raise,
    Rejection,
    RoomState,
    WinnerInfo,
    build_action,
    create_player,
)

__all__ = [
    "RANKS",
    "SUITS",
    "Card",
    "Deck",
    "build_deck",
    "parse_cards",
    "parse_label",
    "compare",
    "evaluate",
    "find_winners",
    "GameEngine",
    "Action",
    "ActionOutcome",
    "ActionType",
    "AllIn",
    "Call",
    "Check",
    "Fold",
    "GameSettings",
    "GameState",
    "HandCategory",
    "HandResult",
    "Phase",
    "Player",
    "Pot",
    "Raise",
    "Rejection",
    "RoomState",
    "WinnerInfo",
    "build_action",
    "create_player",
]
