"""Command/reducer view of the engine.

``reduce(engine, command)`` never touches its input: it works on a deep copy
and hands back the new engine with the events produced, or the rejection.
Useful for replay, determinism checks and diffing network snapshots.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Dict, List, Union

from .game import GameEngine
from .models import Action, Phase, Player, Rejection


@dataclass(frozen=True)
class StartHand:
    pass


@dataclass(frozen=True)
class Act:
    player_id: str
    action: Action


@dataclass(frozen=True)
class AddPlayer:
    player: Player


@dataclass(frozen=True)
class RemovePlayer:
    player_id: str


@dataclass(frozen=True)
class Tip:
    from_id: str
    to_id: str
    amount: int


@dataclass(frozen=True)
class AddChips:
    amount: int


@dataclass(frozen=True)
class Timeout:
    player_id: str


@dataclass(frozen=True)
class ResetForNextHand:
    pass


Command = Union[StartHand, Act, AddPlayer, RemovePlayer, Tip, AddChips, Timeout, ResetForNextHand]


@dataclass
class Reduction:
    engine: GameEngine
    events: List[Dict[str, object]] = field(default_factory=list)


def reduce(engine: GameEngine, command: Command) -> Union[Reduction, Rejection]:
    draft = copy.deepcopy(engine)
    draft.drain_events()
    rejection = _apply(draft, command)
    if rejection is not None:
        return rejection
    return Reduction(engine=draft, events=draft.drain_events())


def _apply(engine: GameEngine, command: Command) -> Union[Rejection, None]:
    if isinstance(command, Act):
        outcome = engine.submit(command.player_id, command.action)
        return None if outcome.ok else outcome.rejection
    if isinstance(command, StartHand):
        if engine.phase != Phase.WAITING:
            return Rejection.HAND_IN_PROGRESS
        return None if engine.start_hand() else Rejection.NOT_ENOUGH_PLAYERS
    if isinstance(command, AddPlayer):
        if len(engine.players) >= engine.settings.max_players:
            return Rejection.TABLE_FULL
        player = copy.deepcopy(command.player)
        return None if engine.add_player(player) else Rejection.DUPLICATE_PLAYER
    if isinstance(command, RemovePlayer):
        return None if engine.remove_player(command.player_id) else Rejection.UNKNOWN_PLAYER
    if isinstance(command, Tip):
        if command.amount <= 0:
            return Rejection.INVALID_AMOUNT
        if engine.find_player(command.from_id) is None or engine.find_player(command.to_id) is None:
            return Rejection.UNKNOWN_PLAYER
        return None if engine.tip(command.from_id, command.to_id, command.amount) else Rejection.INSUFFICIENT_CHIPS
    if isinstance(command, AddChips):
        if command.amount <= 0:
            return Rejection.INVALID_AMOUNT
        engine.add_chips_to_all(command.amount)
        return None
    if isinstance(command, Timeout):
        return None if engine.handle_turn_timeout(command.player_id) else Rejection.NOT_YOUR_TURN
    if isinstance(command, ResetForNextHand):
        return None if engine.reset_for_next_hand() else Rejection.HAND_IN_PROGRESS
    raise TypeError(f"Unsupported command {command!r}")
