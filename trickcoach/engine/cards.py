"""
Card, seat and rank primitives.

Card identity (CardId) is a two-character string: suit then rank.
    suits: S, H, D, C   (listing order, spades first)
    ranks: 2-9, T, J, Q, K, A   (A high, strength 2..14)

Examples: 'SA' = ace of spades, 'H8' = eight of hearts, 'DT' = ten of diamonds.

A dense integer index is also provided for numpy deck masks:
    rank_index = index // 4  ->  0=2, 1=3, ..., 8=T, 9=J, 10=Q, 11=K, 12=A
    suit_index = index % 4   ->  0=C, 1=D, 2=H, 3=S

Seats run N, E, S, W in turn order. N/S are the declaring side (the learner);
E/W are the defenders played by the autoplay policy.
"""

from __future__ import annotations

from typing import NamedTuple

SUITS: tuple[str, ...] = ('S', 'H', 'D', 'C')
RANKS: tuple[str, ...] = ('2', '3', '4', '5', '6', '7', '8', '9', 'T', 'J', 'Q', 'K', 'A')
RANK_VALUES: dict[str, int] = {rank: i + 2 for i, rank in enumerate(RANKS)}

# Suit order used by the integer index (clubs lowest, spades highest).
INDEX_SUITS: tuple[str, ...] = ('C', 'D', 'H', 'S')

SEATS: tuple[str, ...] = ('N', 'E', 'S', 'W')
DEFENDERS: tuple[str, ...] = ('E', 'W')
DECLARERS: tuple[str, ...] = ('N', 'S')

SIDE_NS: str = 'NS'
SIDE_EW: str = 'EW'
SIDES: tuple[str, ...] = (SIDE_NS, SIDE_EW)

NO_TRUMP: str = 'NT'
STRAINS: tuple[str, ...] = SUITS + (NO_TRUMP,)


class Play(NamedTuple):
    """One card played by one seat."""
    seat: str
    suit: str
    rank: str

    @property
    def card(self) -> str:
        return self.suit + self.rank

    @classmethod
    def of(cls, seat: str, card: str) -> Play:
        suit, rank = parse_card(card)
        return cls(seat, suit, rank)

    def __str__(self) -> str:
        return f"{self.seat}:{self.suit}{self.rank}"


# ─── Card identity ────────────────────────────────────────────────────────────

def card_id(suit: str, rank: str) -> str:
    """Build a CardId from its suit and rank.

    Examples:
        >>> card_id('S', 'A')
        'SA'
    """
    return suit + rank


def card_suit(card: str) -> str:
    """Return the suit character of a CardId.

    Examples:
        >>> card_suit('H8')
        'H'
    """
    return card[0]


def card_rank(card: str) -> str:
    """Return the rank character of a CardId.

    Examples:
        >>> card_rank('H8')
        '8'
    """
    return card[1:]


def parse_card(card: str) -> tuple[str, str]:
    """Validate a CardId and split it into (suit, rank).

    Accepts '10' as an alias for 'T' at this I/O boundary.

    Raises:
        ValueError: If the suit or rank is not recognised.

    Examples:
        >>> parse_card('SK')
        ('S', 'K')
        >>> parse_card('D10')
        ('D', 'T')
    """
    if not isinstance(card, str) or len(card) < 2:
        raise ValueError(f"Invalid CardId: {card!r}")
    suit = card[0].upper()
    rank = card[1:].upper()
    if rank == '10':
        rank = 'T'
    if suit not in SUITS or rank not in RANK_VALUES:
        raise ValueError(f"Invalid CardId: {card!r}")
    return suit, rank


def rank_value(rank: str) -> int:
    """Return the strength of a rank (2..14, ace high).

    Examples:
        >>> rank_value('T')
        10
        >>> rank_value('A')
        14
    """
    return RANK_VALUES[rank]


def card_index(card: str) -> int:
    """Return the dense 0–51 index of a CardId.

    Examples:
        >>> card_index('C2')
        0
        >>> card_index('SA')
        51
    """
    suit, rank = parse_card(card)
    return (RANK_VALUES[rank] - 2) * 4 + INDEX_SUITS.index(suit)


def index_to_card(index: int) -> str:
    """Inverse of card_index().

    Examples:
        >>> index_to_card(51)
        'SA'
    """
    return INDEX_SUITS[index % 4] + RANKS[index // 4]


# ─── Ordering helpers ─────────────────────────────────────────────────────────

def sort_ranks(ranks) -> tuple[str, ...]:
    """Return ranks highest first."""
    return tuple(sorted(ranks, key=lambda r: RANK_VALUES[r], reverse=True))


def sort_cards(cards) -> list[str]:
    """Return CardIds grouped by suit (S, H, D, C), highest rank first."""
    return sorted(cards, key=lambda c: (SUITS.index(card_suit(c)), -RANK_VALUES[card_rank(c)]))


# ─── Seats ────────────────────────────────────────────────────────────────────

def next_seat(seat: str) -> str:
    """Return the seat to play after `seat`.

    Examples:
        >>> next_seat('W')
        'N'
    """
    return SEATS[(SEATS.index(seat) + 1) % len(SEATS)]


def seat_side(seat: str) -> str:
    """Return the partnership ('NS' or 'EW') a seat belongs to."""
    return SIDE_NS if seat in DECLARERS else SIDE_EW


def partner(seat: str) -> str:
    return SEATS[(SEATS.index(seat) + 2) % len(SEATS)]


def is_defender(seat: str) -> bool:
    return seat in DEFENDERS
