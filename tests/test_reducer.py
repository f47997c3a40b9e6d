import pytest

from holdem.models import Call, Check, Fold, Phase, Raise, Rejection, create_player
from holdem.reducer import (
    Act,
    AddChips,
    AddPlayer,
    RemovePlayer,
    Reduction,
    ResetForNextHand,
    StartHand,
    Timeout,
    Tip,
    reduce,
)

from .helpers import create_engine


def apply_all(engine, commands):
    for command in commands:
        result = reduce(engine, command)
        assert isinstance(result, Reduction), f"{command} rejected: {result}"
        engine = result.engine
    return engine


def test_reduce_leaves_input_engine_untouched():
    engine = create_engine(players=3)
    before = engine.state.to_dict()

    result = reduce(engine, StartHand())

    assert isinstance(result, Reduction)
    assert result.engine is not engine
    assert result.engine.phase == Phase.PREFLOP
    assert [event["ev"] for event in result.events] == ["HAND_START", "BLIND", "BLIND"]
    assert engine.phase == Phase.WAITING
    assert engine.state.to_dict() == before
    assert engine.deck.remaining == 52


def test_reduce_returns_rejection_for_illegal_command():
    engine = apply_all(create_engine(players=3), [StartHand()])
    before = engine.state.to_dict()

    assert reduce(engine, Act("P1", Call())) == Rejection.NOT_YOUR_TURN
    assert reduce(engine, Act("P0", Check())) == Rejection.ILLEGAL_ACTION
    assert reduce(engine, StartHand()) == Rejection.HAND_IN_PROGRESS
    assert reduce(engine, ResetForNextHand()) == Rejection.HAND_IN_PROGRESS
    assert reduce(engine, Timeout("P2")) == Rejection.NOT_YOUR_TURN
    assert engine.state.to_dict() == before


def test_reduce_rejects_bad_roster_and_chip_commands():
    engine = create_engine(players=2)

    assert reduce(create_engine(players=1), StartHand()) == Rejection.NOT_ENOUGH_PLAYERS
    assert reduce(engine, AddPlayer(create_player("P0", "Again", 4, 100))) == Rejection.DUPLICATE_PLAYER
    assert reduce(engine, RemovePlayer("ghost")) == Rejection.UNKNOWN_PLAYER
    assert reduce(engine, Tip("P0", "P1", 0)) == Rejection.INVALID_AMOUNT
    assert reduce(engine, Tip("P0", "ghost", 5)) == Rejection.UNKNOWN_PLAYER
    assert reduce(engine, Tip("P0", "P1", 5_000)) == Rejection.INSUFFICIENT_CHIPS
    assert reduce(engine, AddChips(-1)) == Rejection.INVALID_AMOUNT

    engine.settings.max_players = 2
    assert reduce(engine, AddPlayer(create_player("P2", "Late", 2, 100))) == Rejection.TABLE_FULL


def test_reduce_applies_roster_and_chip_commands():
    engine = create_engine(players=2)
    newcomer = create_player("P2", "Player2", 2, 300)

    engine = apply_all(engine, [AddPlayer(newcomer), Tip("P0", "P2", 100), AddChips(50)])

    assert [player.chips for player in engine.players] == [950, 1_050, 450]
    # The command payload is copied, not adopted.
    assert engine.find_player("P2") is not newcomer
    assert newcomer.chips == 300

    engine = apply_all(engine, [RemovePlayer("P1")])
    assert [player.id for player in engine.players] == ["P0", "P2"]


def test_timeout_command_folds_the_acting_player():
    engine = apply_all(create_engine(players=3), [StartHand()])
    result = reduce(engine, Timeout("P0"))

    assert isinstance(result, Reduction)
    assert result.engine.find_player("P0").folded
    assert [event["ev"] for event in result.events] == ["ACTION"]
    assert not engine.find_player("P0").folded


def test_replay_with_same_seed_is_deterministic():
    commands = [
        StartHand(),
        Act("P0", Call()),
        Act("P1", Call()),
        Act("P2", Check()),
        Act("P1", Raise(40)),
        Act("P2", Call()),
        Act("P0", Call()),
    ]

    first = apply_all(create_engine(players=3, seed=11), commands)
    second = apply_all(create_engine(players=3, seed=11), commands)

    assert first.phase == Phase.TURN
    assert first.state.to_dict() == second.state.to_dict()
    assert first.state.community_cards == second.state.community_cards


def test_reduce_rejects_unknown_commands():
    with pytest.raises(TypeError):
        reduce(create_engine(players=2), object())  # type: ignore[arg-type]


def test_reset_command_prepares_the_next_deal():
    engine = apply_all(create_engine(players=2), [StartHand(), Act("P0", Fold())])
    assert engine.phase == Phase.ENDED

    engine = apply_all(engine, [ResetForNextHand()])
    assert engine.phase == Phase.WAITING

    engine = apply_all(engine, [StartHand()])
    assert engine.players[1].is_dealer
