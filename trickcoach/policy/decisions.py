"""
Decision bookkeeping types for defender autoplay and replay.

A defender decision is identified by its fingerprint: what the defender sees
when choosing (seat, led suit, strain, the equivalence classes of its legal
plays, and the classes already played to the trick). Two runs that reach the
same fingerprint at the same decision index face the same choice.

Policy classes group the cards of a decision coarsely:

    Idle         any idle card (one class for the whole decision)
    Busy(suit)   busy cards of one suit
    Other(suit)  cards that are neither, grouped by suit

All types are NamedTuples or frozen dataclasses and compare structurally, so
recorded transcripts can be matched against live play after a JSON round trip.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

from trickcoach.policy.discard import (
    BUSY_TIERS,
    DOUBLE_STOP_TIERS,
    IDLE_TIERS,
    SINGLE_STOP_TIERS,
    DiscardTiers,
)
from trickcoach.policy.threats import Classification


# ─── Enumerations ─────────────────────────────────────────────────────────────

class PolicyClassKind(Enum):
    IDLE = 'idle'
    BUSY = 'busy'
    OTHER = 'other'


class BusyBranching(Enum):
    """How far a busy discard decision offers alternatives.

    STRICT      only the classes of the chosen bucket
    SAME_LEVEL  the a/b buckets of the chosen busy level (tier2 or tier3)
    ALL         every busy bucket, tier2a through tier3b
    """
    STRICT = 'strict'
    SAME_LEVEL = 'sameLevel'
    ALL = 'all'


# ─── Value types ──────────────────────────────────────────────────────────────

class PolicyClass(NamedTuple):
    """Tagged variant: Idle, Busy(suit) or Other(suit).

    Example:
        >>> str(PolicyClass.busy('S'))
        'busy:S'
        >>> PolicyClass.parse('idle') == PolicyClass.idle()
        True
    """
    kind: PolicyClassKind
    suit: str | None = None

    @classmethod
    def idle(cls) -> PolicyClass:
        return cls(PolicyClassKind.IDLE, None)

    @classmethod
    def busy(cls, suit: str) -> PolicyClass:
        return cls(PolicyClassKind.BUSY, suit)

    @classmethod
    def other(cls, suit: str) -> PolicyClass:
        return cls(PolicyClassKind.OTHER, suit)

    @classmethod
    def parse(cls, text: str) -> PolicyClass:
        """Inverse of str(); raises ValueError on unknown text."""
        if text == 'idle':
            return cls.idle()
        kind, _, suit = text.partition(':')
        if kind == 'busy' and suit:
            return cls.busy(suit)
        if kind == 'other' and suit:
            return cls.other(suit)
        raise ValueError(f"Unknown policy class {text!r}")

    @property
    def is_idle(self) -> bool:
        return self.kind is PolicyClassKind.IDLE

    def __str__(self) -> str:
        if self.kind is PolicyClassKind.IDLE:
            return 'idle'
        return f"{self.kind.value}:{self.suit}"


class DecisionFingerprint(NamedTuple):
    """What a defender observes at a decision point.

    Attributes:
        seat:          Defender to move.
        led_suit:      Suit led to the trick, None when leading.
        strain:        Trump suit or 'NT'.
        legal_classes: Sorted equivalence-class ids of the legal plays.
        trick:         (seat, equivalence-class id) of each card already in the trick.
    """
    seat: str
    led_suit: str | None
    strain: str
    legal_classes: tuple[str, ...]
    trick: tuple[tuple[str, str], ...]


class UserPlayRecord(NamedTuple):
    index: int
    seat: str
    class_id: str


@dataclass(frozen=True)
class DecisionRecord:
    """One recorded defender decision.

    `offered` lists the policy classes available in the chosen bucket (the
    chosen class included, in bucket order); `representatives` maps each
    offered class to the card that stands for it.
    """
    index: int
    seat: str
    fingerprint: DecisionFingerprint
    chosen_card: str
    chosen_class_id: str
    policy_class: PolicyClass
    bucket: str
    bucket_cards: tuple[str, ...]
    offered: tuple[PolicyClass, ...]
    representatives: dict[PolicyClass, str] = field(default_factory=dict)

    @property
    def alternatives(self) -> tuple[PolicyClass, ...]:
        return tuple(c for c in self.offered if c != self.policy_class)

    @property
    def non_idle_offered(self) -> tuple[PolicyClass, ...]:
        return tuple(c for c in self.offered if not c.is_idle)


@dataclass(frozen=True)
class Transcript:
    """Ordered record of a successful run."""
    problem_id: str
    seed: int
    decisions: tuple[DecisionRecord, ...] = ()
    user_plays: tuple[UserPlayRecord, ...] = ()


# ─── Policy class mapping ─────────────────────────────────────────────────────

def policy_class_for(
    card: str,
    bucket: str,
    seat: str,
    classification: Classification | None,
) -> PolicyClass:
    """Map one card of a decision bucket to its policy class.

    Discard tiers decide directly (tier1 -> Idle, tier2/3 -> Busy, tier4 ->
    Other); any other bucket falls back to the card's busy / idle label.

    Examples:
        >>> str(policy_class_for('SK', 'tier3b', 'W', None))
        'busy:S'
        >>> str(policy_class_for('H4', 'legal', 'N', None))
        'other:H'
    """
    suit = card[0]
    if bucket in IDLE_TIERS:
        return PolicyClass.idle()
    if bucket in BUSY_TIERS:
        return PolicyClass.busy(suit)
    if bucket == 'tier4':
        return PolicyClass.other(suit)
    if classification is not None:
        if classification.is_busy(seat, card):
            return PolicyClass.busy(suit)
        if classification.is_idle(seat, card):
            return PolicyClass.idle()
    return PolicyClass.other(suit)


def card_matches_class(
    card: str,
    target: PolicyClass,
    seat: str,
    classification: Classification | None,
) -> bool:
    """True if a card outside any bucket context belongs to `target`."""
    if target.kind is PolicyClassKind.OTHER:
        return card[0] == target.suit
    return policy_class_for(card, '', seat, classification) == target


def exploration_cards(
    bucket: str,
    bucket_cards: tuple[str, ...],
    tiers: DiscardTiers | None,
    branching: BusyBranching,
) -> tuple[str, ...]:
    """Cards whose classes are offered as alternatives at a decision.

    Busy discard buckets widen according to `branching`; every other bucket
    offers its own cards.
    """
    if tiers is None or bucket not in BUSY_TIERS or branching is BusyBranching.STRICT:
        return bucket_cards
    if branching is BusyBranching.SAME_LEVEL:
        names = DOUBLE_STOP_TIERS if bucket in DOUBLE_STOP_TIERS else SINGLE_STOP_TIERS
    else:
        names = BUSY_TIERS
    merged: list[str] = []
    for name in names:
        for card in tiers.bucket(name):
            if card not in merged:
                merged.append(card)
    return tuple(merged) if merged else bucket_cards


def offered_classes(
    cards: tuple[str, ...],
    bucket: str,
    seat: str,
    classification: Classification | None,
    chosen_card: str,
) -> tuple[tuple[PolicyClass, ...], dict[PolicyClass, str]]:
    """Distinct policy classes among `cards` with one representative each.

    The first card of each class represents it, except the chosen card
    represents its own class.
    """
    order: list[PolicyClass] = []
    representatives: dict[PolicyClass, str] = {}
    for card in cards:
        cls = policy_class_for(card, bucket, seat, classification)
        if cls not in representatives:
            order.append(cls)
            representatives[cls] = card
    chosen = policy_class_for(chosen_card, bucket, seat, classification)
    if chosen not in representatives:
        order.append(chosen)
    representatives[chosen] = chosen_card
    return tuple(order), representatives
