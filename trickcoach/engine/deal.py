"""
Hand construction and deal bookkeeping.

A hand maps each suit to a tuple of ranks, highest first:
    {'S': ('A', '8'), 'H': ('8',), 'D': (), 'C': ()}

A position (`Hands`) maps each seat to its hand. Hands are treated as
immutable values: helpers that change a hand return a new mapping.

Deal integrity is checked with a numpy int8 mask of length 52, indexed by
card_index():
    1 = card is held by some seat
    0 = card is not in the deal (already played, or absent from an ending)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import numpy as np

from .cards import RANK_VALUES, SEATS, SUITS, card_id, card_index, sort_ranks
from .errors import SetupError

Hand = dict[str, tuple[str, ...]]
Hands = dict[str, Hand]


def empty_hand() -> Hand:
    return {suit: () for suit in SUITS}


def make_hand(holding: Mapping[str, Iterable[str] | str] | str) -> Hand:
    """Build a normalised hand from a mapping or a dotted S.H.D.C string.

    Ranks may be given as a string ('AK8'), a sequence (['A', 'K', '8']),
    and '10' is accepted for the ten when a sequence is used. '-' marks a void.

    Raises:
        SetupError: On an unknown suit or rank, or a rank repeated in a suit.

    Examples:
        >>> make_hand('A8.8..')['S']
        ('A', '8')
        >>> make_hand({'S': ['A', '8'], 'H': '8'})['D']
        ()
    """
    if isinstance(holding, str):
        parts = holding.split('.')
        if len(parts) != 4:
            raise SetupError(f"Dotted hand needs four suits: {holding!r}")
        holding = dict(zip(SUITS, parts))

    hand = empty_hand()
    for suit, ranks in holding.items():
        suit_key = suit.upper()
        if suit_key not in SUITS:
            raise SetupError(f"Unknown suit {suit!r}")
        if isinstance(ranks, str):
            ranks = [] if ranks in ('', '-') else list(ranks.upper())
        normalised = ['T' if str(r).upper() == '10' else str(r).upper() for r in ranks]
        for rank in normalised:
            if rank not in RANK_VALUES:
                raise SetupError(f"Unknown rank {rank!r} in suit {suit_key}")
        if len(set(normalised)) != len(normalised):
            raise SetupError(f"Repeated rank in suit {suit_key}: {normalised}")
        hand[suit_key] = sort_ranks(normalised)
    return hand


def make_hands(raw: Mapping[str, Mapping | str]) -> Hands:
    """Build all four hands; missing seats become empty hands.

    Raises:
        SetupError: On an unknown seat, or any malformed hand.
    """
    for seat in raw:
        if seat not in SEATS:
            raise SetupError(f"Unknown seat {seat!r}")
    return {seat: make_hand(raw[seat]) if seat in raw else empty_hand() for seat in SEATS}


# ─── Queries ──────────────────────────────────────────────────────────────────

def hand_cards(hand: Hand) -> list[str]:
    """Return every CardId in a hand, suits S,H,D,C, highest rank first."""
    return [card_id(suit, rank) for suit in SUITS for rank in hand[suit]]


def hand_size(hand: Hand) -> int:
    return sum(len(hand[suit]) for suit in SUITS)


def holds(hand: Hand, card: str) -> bool:
    return card[1:] in hand[card[0]]


def holders_of(hands: Hands, card: str) -> list[str]:
    """Return the seats currently holding `card` (normally zero or one)."""
    return [seat for seat in SEATS if holds(hands[seat], card)]


def all_empty(hands: Hands) -> bool:
    return all(hand_size(hands[seat]) == 0 for seat in SEATS)


def hand_to_str(hand: Hand) -> str:
    """Dotted S.H.D.C representation.

    Examples:
        >>> hand_to_str(make_hand({'S': 'A8', 'H': '8'}))
        'A8.8..'
    """
    return '.'.join(''.join(hand[suit]) for suit in SUITS)


# ─── Transitions ──────────────────────────────────────────────────────────────

def remove_card(hands: Hands, seat: str, card: str) -> Hands:
    """Return a new position with `card` removed from `seat`'s hand.

    Only the touched hand and suit are rebuilt; other hands are shared.

    Raises:
        ValueError: If the seat does not hold the card.
    """
    suit, rank = card[0], card[1:]
    hand = hands[seat]
    if rank not in hand[suit]:
        raise ValueError(f"Card {card} not in {seat} hand")
    new_hand = dict(hand)
    new_hand[suit] = tuple(r for r in hand[suit] if r != rank)
    new_hands = dict(hands)
    new_hands[seat] = new_hand
    return new_hands


# ─── Deal integrity ───────────────────────────────────────────────────────────

def deck_mask(hands: Hands) -> np.ndarray:
    """Return the 52-length int8 mask of cards held across all hands.

    Raises:
        SetupError: If any card is held twice.

    Examples:
        >>> mask = deck_mask(make_hands({'N': 'A8.8..', 'E': '...A'}))
        >>> int(mask.sum())
        4
    """
    mask = np.zeros(52, dtype=np.int8)
    for seat in SEATS:
        for card in hand_cards(hands[seat]):
            index = card_index(card)
            if mask[index]:
                raise SetupError(f"Card {card} dealt more than once")
            mask[index] = 1
    return mask


def validate_deal(hands: Hands, require_full: bool = False) -> np.ndarray:
    """Check that the hands are disjoint, and optionally cover all 52 cards.

    Puzzle endings hold fewer than 52 cards; pass require_full=True to
    enforce a complete partition of the deck.

    Returns:
        The deck mask from deck_mask().

    Raises:
        SetupError: On a duplicate card, or a gap when require_full is set.
    """
    mask = deck_mask(hands)
    if require_full and int(mask.sum()) != 52:
        missing = int(52 - mask.sum())
        raise SetupError(f"Deal is missing {missing} cards")
    return mask
