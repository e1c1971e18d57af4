"""
Trick-taking rules: legal plays, trick resolution and the goal test.

Rules:
    1. Leading (empty trick): any card in hand.
    2. Following: a card of the led suit if one is held, otherwise any card.
    3. A trick is won by the highest trump played, if any trump was played;
       otherwise by the highest card of the led suit. Off-suit discards
       never win.
    4. The winner's side is credited one trick and the winner leads next.
    5. The goal is met when the goal side has won at least `min_tricks`.

Strain 'NT' means there is no trump suit.
"""

from __future__ import annotations

from typing import NamedTuple

from .cards import NO_TRUMP, SUITS, Play, rank_value
from .deal import Hand


class Goal(NamedTuple):
    side: str
    min_tricks: int


def trump_suit(strain: str) -> str | None:
    """Return the trump suit for a strain, or None for no-trump.

    Examples:
        >>> trump_suit('NT') is None
        True
        >>> trump_suit('C')
        'C'
    """
    return None if strain == NO_TRUMP else strain


def legal_plays_for(seat: str, hand: Hand, trick: tuple[Play, ...]) -> list[Play]:
    """Return the legal plays for `seat`, suits S,H,D,C, ranks highest first.

    Args:
        seat: The seat to move.
        hand: That seat's current holding.
        trick: Plays made so far in the current trick (empty when leading).
    """
    if trick:
        led = trick[0].suit
        suits = (led,) if hand[led] else SUITS
    else:
        suits = SUITS
    return [Play(seat, suit, rank) for suit in suits for rank in hand[suit]]


def trick_winner(trick: tuple[Play, ...] | list[Play], trump: str | None) -> str:
    """Return the seat winning a completed trick.

    Raises:
        ValueError: If the trick is empty.

    Examples:
        >>> trick = (Play('N', 'S', '9'), Play('E', 'S', 'K'),
        ...          Play('S', 'H', 'A'), Play('W', 'S', '3'))
        >>> trick_winner(trick, None)
        'E'
        >>> trick_winner(trick, 'H')
        'S'
    """
    if not trick:
        raise ValueError("Cannot resolve an empty trick")
    led = trick[0].suit
    trumps = [p for p in trick if trump is not None and p.suit == trump]
    candidates = trumps if trumps else [p for p in trick if p.suit == led]

    winner = candidates[0]
    for play in candidates[1:]:
        if rank_value(play.rank) > rank_value(winner.rank):
            winner = play
    return winner.seat


def goal_met(goal: Goal, tricks_won: dict[str, int]) -> bool:
    """Return True if the goal side has taken at least the required tricks."""
    return tricks_won[goal.side] >= goal.min_tricks
