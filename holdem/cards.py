from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

RANKS = "23456789TJQKA"
SUITS = "hdcs"
RANK_VALUE = {rank: idx for idx, rank in enumerate(RANKS, start=2)}
SUIT_SYMBOLS = {"h": "♥", "d": "♦", "c": "♣", "s": "♠"}


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def __post_init__(self) -> None:
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")

    @property
    def label(self) -> str:
        return f"{self.rank}{self.suit}"

    @property
    def value(self) -> int:
        return RANK_VALUE[self.rank]

    @property
    def symbol(self) -> str:
        rank = "10" if self.rank == "T" else self.rank
        return f"{SUIT_SYMBOLS[self.suit]}{rank}"

    @property
    def is_red(self) -> bool:
        return self.suit in ("h", "d")


def full_deck() -> List[Card]:
    return [Card(rank, suit) for suit in SUITS for rank in RANKS]


def build_deck(seed: Optional[int] = None) -> List[Card]:
    rng = random.Random(seed)
    deck = full_deck()
    rng.shuffle(deck)
    return deck


class Deck:
    """Shuffled 52-card deck dealt from a cursor.

    Dealing past the end returns ``None`` instead of raising; with at most
    nine players plus a board the deck never runs dry in correct play.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()
        self._cards: List[Card] = []
        self._cursor = 0
        self.reset()

    def reset(self) -> None:
        cards = full_deck()
        self.rng.shuffle(cards)
        self._cards = cards
        self._cursor = 0

    def deal(self) -> Optional[Card]:
        if self._cursor >= len(self._cards):
            return None
        card = self._cards[self._cursor]
        self._cursor += 1
        return card

    def deal_n(self, count: int) -> List[Card]:
        cards = []
        for _ in range(count):
            card = self.deal()
            if card is None:
                break
            cards.append(card)
        return cards

    def burn(self) -> None:
        self.deal()

    @property
    def remaining(self) -> int:
        return len(self._cards) - self._cursor

    @property
    def dealt(self) -> List[Card]:
        return list(self._cards[: self._cursor])


def cards_to_labels(cards: Sequence[Card]) -> List[str]:
    return [card.label for card in cards]


def parse_label(label: str) -> Card:
    # "10h" is accepted alongside "Th".
    text = label.strip()
    if text[:2] == "10":
        text = "T" + text[2:]
    if len(text) != 2:
        raise ValueError(f"Invalid card label: {label}")
    return Card(text[0].upper(), text[1].lower())


def parse_cards(labels: Sequence[str]) -> List[Card]:
    return [parse_label(label) for label in labels]
