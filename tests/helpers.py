from __future__ import annotations

import random
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from holdem.cards import Card, Deck, full_deck, parse_cards
from holdem.game import GameEngine
from holdem.models import ActionType, GameSettings, Phase, create_player


class StackedDeck(Deck):
    """Deals ``top`` first, then the remaining cards in a fixed order."""

    def __init__(self, top: Sequence[Card]) -> None:
        self.top = list(top)
        super().__init__(random.Random(0))

    def reset(self) -> None:
        rest = [card for card in full_deck() if card not in self.top]
        self._cards = self.top + rest
        self._cursor = 0


def arrange_deck(
    holes: Dict[int, Sequence[str]],
    board: Sequence[str],
    dealer: int = 0,
) -> StackedDeck:
    """Stack a deck so seat ``i`` receives ``holes[i]`` and the board comes out as given.

    Hole cards go round-robin starting left of the dealer; a burn card
    precedes the flop, the turn and the river.
    """
    count = len(holes)
    order = [(dealer + offset) % count for offset in range(1, count + 1)]
    hole_cards = {idx: parse_cards(labels) for idx, labels in holes.items()}
    board_cards = parse_cards(board)
    used = {card for cards in hole_cards.values() for card in cards} | set(board_cards)
    burns = iter(card for card in full_deck() if card not in used)

    top: List[Card] = []
    for round_idx in range(2):
        for idx in order:
            top.append(hole_cards[idx][round_idx])
    top.append(next(burns))
    top.extend(board_cards[:3])
    top.append(next(burns))
    top.append(board_cards[3])
    top.append(next(burns))
    top.append(board_cards[4])
    return StackedDeck(top)


def create_engine(
    *,
    players: int = 3,
    chips: int = 1_000,
    sb: int = 10,
    bb: int = 20,
    stacks: Optional[Sequence[int]] = None,
    deck: Optional[Deck] = None,
    seed: int = 42,
) -> GameEngine:
    """Instantiate an engine with ``players`` seated as P0, P1, ..."""
    engine = GameEngine(
        GameSettings(small_blind=sb, big_blind=bb, starting_chips=chips),
        rng=random.Random(seed),
    )
    for idx in range(players):
        stack = stacks[idx] if stacks is not None else chips
        engine.add_player(create_player(f"P{idx}", f"Player{idx}", idx, stack))
    if deck is not None:
        engine.deck = deck
    return engine


def start_hand(engine: GameEngine) -> GameEngine:
    assert engine.start_hand()
    return engine


def actor(engine: GameEngine) -> str:
    player = engine.current_player()
    assert player is not None, "nobody holds the turn"
    return player.id


def perform_actions(engine: GameEngine, actions: Iterable[Tuple[str, ActionType, Optional[int]]]) -> None:
    """Apply a scripted sequence of (player, action, amount)."""
    for player_id, action, amount in actions:
        assert engine.process_action(player_id, action, amount), f"{player_id} {action} {amount} rejected"


def check_down(engine: GameEngine) -> None:
    """Check or call with whoever is on turn until the hand ends."""
    while engine.phase not in (Phase.ENDED, Phase.WAITING):
        player_id = actor(engine)
        legal = engine.get_valid_actions(player_id)
        if ActionType.CHECK in legal:
            engine.process_action(player_id, ActionType.CHECK)
        elif ActionType.CALL in legal:
            engine.process_action(player_id, ActionType.CALL)
        else:
            engine.process_action(player_id, ActionType.FOLD)


def stacks(engine: GameEngine) -> List[int]:
    return [player.chips for player in engine.players]
