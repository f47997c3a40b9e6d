import pytest

from holdem.cards import build_deck, parse_cards
from holdem.evaluator import compare, evaluate, find_winners
from holdem.models import HandCategory


def hand(*labels):
    return evaluate(parse_cards(labels))


def test_evaluate_identifies_all_hand_categories():
    cases = [
        (HandCategory.ROYAL_FLUSH, ["Ah", "Kh", "Qh", "Jh", "Th"]),
        (HandCategory.STRAIGHT_FLUSH, ["9h", "8h", "7h", "6h", "5h"]),
        (HandCategory.FOUR_OF_A_KIND, ["As", "Ah", "Ad", "Ac", "Kd"]),
        (HandCategory.FULL_HOUSE, ["Qc", "Qd", "Qs", "9h", "9s"]),
        (HandCategory.FLUSH, ["Ah", "Jh", "9h", "6h", "2h"]),
        (HandCategory.STRAIGHT, ["9h", "8d", "7c", "6s", "5h"]),
        (HandCategory.THREE_OF_A_KIND, ["8h", "8d", "8s", "Qd", "Js"]),
        (HandCategory.TWO_PAIR, ["7h", "7d", "4s", "4c", "As"]),
        (HandCategory.ONE_PAIR, ["6h", "6s", "Qh", "8d", "4c"]),
        (HandCategory.HIGH_CARD, ["As", "Kd", "Jh", "9c", "4d"]),
    ]

    for expected, labels in cases:
        result = hand(*labels)
        assert result.category == expected, f"labels={labels}"
        assert result.strength == expected.strength
        assert len(result.cards) == 5


def test_strength_follows_category_ranking():
    ordered = [
        HandCategory.ROYAL_FLUSH,
        HandCategory.STRAIGHT_FLUSH,
        HandCategory.FOUR_OF_A_KIND,
        HandCategory.FULL_HOUSE,
        HandCategory.FLUSH,
        HandCategory.STRAIGHT,
        HandCategory.THREE_OF_A_KIND,
        HandCategory.TWO_PAIR,
        HandCategory.ONE_PAIR,
        HandCategory.HIGH_CARD,
    ]
    strengths = [category.strength for category in ordered]
    assert strengths == sorted(strengths, reverse=True)
    assert HandCategory.ROYAL_FLUSH.strength == 10
    assert HandCategory.HIGH_CARD.strength == 1


def test_literal_ranking_examples():
    royal = hand("As", "Ks", "Qs", "Js", "10s")
    straight_flush = hand("9h", "8h", "7h", "6h", "5h")
    assert compare(royal, straight_flush) == 1

    quads = hand("Ks", "Kh", "Kd", "Kc", "7s")
    full_house = hand("Qs", "Qh", "Qd", "8c", "8s")
    assert compare(quads, full_house) == 1

    flush = hand("Kd", "Jd", "8d", "4d", "2d")
    straight = hand("9s", "8h", "7d", "6c", "5s")
    assert compare(flush, straight) == 1
    assert compare(straight, flush) == -1


def test_wheel_is_a_five_high_straight():
    wheel = hand("5c", "4d", "3s", "2h", "Ac")
    assert wheel.category == HandCategory.STRAIGHT
    assert wheel.kickers == [5]
    six_high = hand("6c", "5d", "4s", "3h", "2c")
    assert compare(six_high, wheel) == 1

    seven_cards = hand("Ah", "2d", "3c", "4s", "5h", "9d", "Kd")
    assert seven_cards.category == HandCategory.STRAIGHT
    assert seven_cards.kickers == [5]


def test_steel_wheel_is_a_straight_flush_not_royal():
    result = hand("Ah", "2h", "3h", "4h", "5h", "Kh", "Qc")
    assert result.category == HandCategory.STRAIGHT_FLUSH
    assert result.kickers == [5]


def test_straight_flush_beats_higher_plain_straight_in_seven_cards():
    result = hand("9h", "8h", "7h", "6h", "5h", "Ts", "Jd")
    assert result.category == HandCategory.STRAIGHT_FLUSH
    assert result.kickers == [9]


def test_full_house_prefers_highest_trips_and_pair():
    result = hand("Qc", "Qd", "Qs", "9h", "9s", "9d", "2c")
    assert result.category == HandCategory.FULL_HOUSE
    assert result.kickers == [12, 9]

    result = hand("5c", "5d", "5s", "Kh", "Ks", "2h", "2c")
    assert result.kickers == [5, 13]


def test_four_of_a_kind_takes_best_kicker():
    result = hand("7s", "7h", "7d", "7c", "2d", "Kd", "9c")
    assert result.kickers == [7, 13]


def test_flush_takes_five_highest_of_suit():
    result = hand("Ah", "Jh", "9h", "6h", "2h", "3h", "Kc")
    assert result.category == HandCategory.FLUSH
    assert result.kickers == [14, 11, 9, 6, 3]


def test_two_pair_uses_third_pair_as_kicker():
    result = hand("Kh", "Kd", "8s", "8c", "5h", "5d", "2c")
    assert result.category == HandCategory.TWO_PAIR
    assert result.kickers == [13, 8, 5]


def test_compare_breaks_ties_on_kickers():
    hand_a = hand("Ah", "Ad", "Kc", "Qs", "9h", "2d", "3c")
    hand_b = hand("Ah", "Ad", "Qc", "Js", "8h", "2d", "3c")
    assert compare(hand_a, hand_b) == 1
    assert compare(hand_b, hand_a) == -1
    assert compare(hand_a, hand("As", "Ac", "Kd", "Qh", "9s", "4d", "3h")) == 0


def test_find_winners_returns_all_tied_players_in_order():
    board = parse_cards(["Ah", "Kh", "Qs", "Js", "Tc"])
    winners = find_winners(
        [
            ("alice", parse_cards(["2c", "3d"]), board),
            ("bob", parse_cards(["Kc", "Kd"]), board),
            ("carol", parse_cards(["2h", "3s"]), board),
        ]
    )
    assert [player_id for player_id, _ in winners] == ["alice", "bob", "carol"]
    assert all(result.category == HandCategory.STRAIGHT for _, result in winners)


def test_find_winners_picks_single_best_hand():
    board = parse_cards(["2h", "7d", "9c", "Js", "4h"])
    winners = find_winners(
        [
            ("alice", parse_cards(["Ac", "Kd"]), board),
            ("bob", parse_cards(["9d", "9s"]), board),
        ]
    )
    assert [player_id for player_id, _ in winners] == ["bob"]
    assert winners[0][1].category == HandCategory.THREE_OF_A_KIND
    assert find_winners([]) == []


def test_evaluate_requires_five_cards():
    with pytest.raises(ValueError, match="at least 5 cards"):
        evaluate(parse_cards(["Ah", "Kd", "Qc", "Js"]))


def test_evaluate_handles_many_random_seven_card_hands():
    deck = build_deck(seed=777)
    for idx in range(0, 42, 7):
        result = evaluate(deck[idx : idx + 7])
        assert 1 <= result.strength <= 10
        assert len(result.cards) == 5
        assert len(set(result.cards)) == 5


def test_evaluate_rejects_more_than_seven_cards():
    with pytest.raises(ValueError, match="more than 7 cards"):
        evaluate(build_deck(seed=3)[:8])
