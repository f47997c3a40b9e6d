from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from .cards import Card
from .models import HandCategory, HandResult

RANK_NAMES = {
    2: "2", 3: "3", 4: "4", 5: "5", 6: "6", 7: "7", 8: "8",
    9: "9", 10: "10", 11: "J", 12: "Q", 13: "K", 14: "A",
}

WHEEL = (5, 4, 3, 2, 14)

Candidate = Tuple[str, Sequence[Card], Sequence[Card]]


def evaluate(cards: Sequence[Card]) -> HandResult:
    """Best five-card hand out of 5-7 cards. Categories are tried strongest first."""
    if len(cards) < 5:
        raise ValueError("Need at least 5 cards to evaluate a hand")
    if len(cards) > 7:
        raise ValueError("Cannot evaluate more than 7 cards")

    by_rank = _group_by_rank(cards)
    # Most copies first, higher rank breaks the tie.
    rank_counts = sorted(by_rank.items(), key=lambda item: (len(item[1]), item[0]), reverse=True)

    straight_flush = _straight_flush(cards)
    if straight_flush is not None:
        high, chosen = straight_flush
        if high == 14:
            return _result(HandCategory.ROYAL_FLUSH, chosen, [high], "Royal flush")
        return _result(HandCategory.STRAIGHT_FLUSH, chosen, [high], f"Straight flush, {RANK_NAMES[high]} high")

    quads = next((value for value, group in rank_counts if len(group) == 4), None)
    if quads is not None:
        kicker = _by_value_desc(card for card in cards if card.value != quads)[0]
        return _result(
            HandCategory.FOUR_OF_A_KIND,
            by_rank[quads] + [kicker],
            [quads, kicker.value],
            f"Four of a kind, {RANK_NAMES[quads]}s",
        )

    trips = next((value for value, group in rank_counts if len(group) == 3), None)
    if trips is not None:
        pairs = sorted((value for value, group in by_rank.items() if len(group) >= 2 and value != trips), reverse=True)
        if pairs:
            pair = pairs[0]
            return _result(
                HandCategory.FULL_HOUSE,
                by_rank[trips][:3] + by_rank[pair][:2],
                [trips, pair],
                f"Full house, {RANK_NAMES[trips]}s full of {RANK_NAMES[pair]}s",
            )

    flush = _flush_cards(cards)
    if flush is not None:
        return _result(
            HandCategory.FLUSH,
            flush,
            [card.value for card in flush],
            f"Flush, {RANK_NAMES[flush[0].value]} high",
        )

    straight = _straight(cards)
    if straight is not None:
        high, chosen = straight
        return _result(HandCategory.STRAIGHT, chosen, [high], f"Straight, {RANK_NAMES[high]} high")

    if trips is not None:
        kickers = _by_value_desc(card for card in cards if card.value != trips)[:2]
        return _result(
            HandCategory.THREE_OF_A_KIND,
            by_rank[trips][:3] + kickers,
            [trips] + [card.value for card in kickers],
            f"Three of a kind, {RANK_NAMES[trips]}s",
        )

    pairs = [value for value, group in rank_counts if len(group) == 2]
    if len(pairs) >= 2:
        high_pair, low_pair = pairs[0], pairs[1]
        kicker = _by_value_desc(card for card in cards if card.value not in (high_pair, low_pair))[0]
        return _result(
            HandCategory.TWO_PAIR,
            by_rank[high_pair][:2] + by_rank[low_pair][:2] + [kicker],
            [high_pair, low_pair, kicker.value],
            f"Two pair, {RANK_NAMES[high_pair]}s and {RANK_NAMES[low_pair]}s",
        )
    if len(pairs) == 1:
        pair = pairs[0]
        kickers = _by_value_desc(card for card in cards if card.value != pair)[:3]
        return _result(
            HandCategory.ONE_PAIR,
            by_rank[pair][:2] + kickers,
            [pair] + [card.value for card in kickers],
            f"Pair of {RANK_NAMES[pair]}s",
        )

    high_cards = _by_value_desc(cards)[:5]
    return _result(
        HandCategory.HIGH_CARD,
        high_cards,
        [card.value for card in high_cards],
        f"High card, {RANK_NAMES[high_cards[0].value]}",
    )


def compare(a: HandResult, b: HandResult) -> int:
    """1 if ``a`` wins, -1 if ``b`` wins, 0 for an exact tie."""
    if a.strength != b.strength:
        return 1 if a.strength > b.strength else -1
    for left, right in zip(a.kickers, b.kickers):
        if left != right:
            return 1 if left > right else -1
    return 0


def find_winners(candidates: Sequence[Candidate]) -> List[Tuple[str, HandResult]]:
    """Every candidate holding the best hand, in the order they were given."""
    results = [
        (player_id, evaluate(list(hole_cards) + list(community)))
        for player_id, hole_cards, community in candidates
    ]
    if not results:
        return []
    best = results[0][1]
    for _, hand in results[1:]:
        if compare(hand, best) > 0:
            best = hand
    return [(player_id, hand) for player_id, hand in results if compare(hand, best) == 0]


def _result(category: HandCategory, cards: List[Card], kickers: List[int], description: str) -> HandResult:
    return HandResult(
        category=category,
        strength=category.strength,
        cards=list(cards),
        kickers=kickers,
        description=description,
    )


def _by_value_desc(cards) -> List[Card]:
    return sorted(cards, key=lambda card: card.value, reverse=True)


def _group_by_rank(cards: Sequence[Card]) -> Dict[int, List[Card]]:
    groups: Dict[int, List[Card]] = defaultdict(list)
    for card in cards:
        groups[card.value].append(card)
    return dict(groups)


def _group_by_suit(cards: Sequence[Card]) -> Dict[str, List[Card]]:
    groups: Dict[str, List[Card]] = defaultdict(list)
    for card in cards:
        groups[card.suit].append(card)
    return dict(groups)


def _straight_high(values: Sequence[int]) -> Optional[int]:
    distinct = sorted(set(values), reverse=True)
    for idx in range(len(distinct) - 4):
        window = distinct[idx : idx + 5]
        if window[0] - window[4] == 4:
            return window[0]
    if set(WHEEL).issubset(distinct):
        return 5
    return None


def _straight(cards: Sequence[Card]) -> Optional[Tuple[int, List[Card]]]:
    high = _straight_high([card.value for card in cards])
    if high is None:
        return None
    wanted = WHEEL if high == 5 else tuple(range(high, high - 5, -1))
    by_rank = _group_by_rank(cards)
    return high, [by_rank[value][0] for value in wanted]


def _straight_flush(cards: Sequence[Card]) -> Optional[Tuple[int, List[Card]]]:
    best: Optional[Tuple[int, List[Card]]] = None
    for suited in _group_by_suit(cards).values():
        if len(suited) < 5:
            continue
        found = _straight(suited)
        if found is not None and (best is None or found[0] > best[0]):
            best = found
    return best


def _flush_cards(cards: Sequence[Card]) -> Optional[List[Card]]:
    for suited in _group_by_suit(cards).values():
        if len(suited) >= 5:
            return _by_value_desc(suited)[:5]
    return None
