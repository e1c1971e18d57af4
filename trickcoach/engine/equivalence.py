"""
Equivalence reduction: collapse interchangeable cards within one holding.

Two adjacent held ranks of the same seat and suit are interchangeable when
they are rank-adjacent (K-Q), or when every rank strictly between them is
absent from the other three hands (K and 9 with Q-J-T already played).
Runs of interchangeable ranks form an equivalence class; the classes
partition the holding.

Class id format: 'seat:suit:top-bottom', e.g. 'W:S:K-J'.
The representative card of a class is its lowest member.

Everything here is a pure function of the position; nothing is cached.
"""

from __future__ import annotations

from typing import NamedTuple

from .cards import RANKS, SEATS, SUITS, card_id, rank_value
from .deal import Hands


class EquivalenceClass(NamedTuple):
    seat: str
    suit: str
    ranks: tuple[str, ...]  # highest first

    @property
    def class_id(self) -> str:
        return f"{self.seat}:{self.suit}:{self.ranks[0]}-{self.ranks[-1]}"

    @property
    def representative(self) -> str:
        return card_id(self.suit, self.ranks[-1])

    @property
    def cards(self) -> tuple[str, ...]:
        return tuple(card_id(self.suit, r) for r in self.ranks)


def _ranks_between(high: str, low: str) -> tuple[str, ...]:
    return RANKS[rank_value(low) - 1:rank_value(high) - 2]


def _gap_absent_from_others(hands: Hands, seat: str, suit: str, high: str, low: str) -> bool:
    between = _ranks_between(high, low)
    others = [s for s in SEATS if s != seat]
    return all(rank not in hands[other][suit] for rank in between for other in others)


def suit_equivalence_classes(hands: Hands, seat: str, suit: str) -> list[EquivalenceClass]:
    """Partition `seat`'s holding in `suit` into equivalence classes.

    Classes are returned highest first. An empty holding gives no classes.

    Examples:
        >>> from .deal import make_hands
        >>> hands = make_hands({'W': 'KJ...', 'N': 'A8...'})
        >>> [c.class_id for c in suit_equivalence_classes(hands, 'W', 'S')]
        ['W:S:K-J']
        >>> hands = make_hands({'W': 'KJ...', 'N': 'Q8...'})
        >>> [c.class_id for c in suit_equivalence_classes(hands, 'W', 'S')]
        ['W:S:K-K', 'W:S:J-J']
    """
    held = hands[seat][suit]
    if not held:
        return []

    runs: list[list[str]] = [[held[0]]]
    for prev, curr in zip(held, held[1:]):
        adjacent = rank_value(prev) - rank_value(curr) == 1
        if adjacent or _gap_absent_from_others(hands, seat, suit, prev, curr):
            runs[-1].append(curr)
        else:
            runs.append([curr])
    return [EquivalenceClass(seat, suit, tuple(run)) for run in runs]


def seat_equivalence_classes(hands: Hands, seat: str) -> list[EquivalenceClass]:
    """All classes of a seat, suits in S, H, D, C order."""
    classes = []
    for suit in SUITS:
        classes.extend(suit_equivalence_classes(hands, seat, suit))
    return classes


def class_for_card(hands: Hands, seat: str, card: str) -> EquivalenceClass:
    """Return the class containing `card` in `seat`'s current holding.

    A card that is not held gets a singleton class, so ids can still be
    computed for cards that have just left the hand.
    """
    suit, rank = card[0], card[1:]
    for eq_class in suit_equivalence_classes(hands, seat, suit):
        if rank in eq_class.ranks:
            return eq_class
    return EquivalenceClass(seat, suit, (rank,))


def class_id_for_card(hands: Hands, seat: str, card: str) -> str:
    return class_for_card(hands, seat, card).class_id
