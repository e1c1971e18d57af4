"""
Threat classification: which defender cards are committed to a stop.

A threat is a designated card (at most one per suit) held by one seat. While
the holder still owns it the threat is active and has a length: the number
of ranks at or above the threat rank in the holder's suit.

Labeling, per defender (E, W) and suit:
    busy = the top `threat_length` cards, when the threat is active, the
           defender holds at least `threat_length` cards in the suit and at
           least one of them ranks above the threat rank
    idle = every other card (the whole suit when the condition fails)

Stop status of an active threat, by number of busy defenders in its suit:
    2 -> double   1 -> single   0 -> none (the threat is a promoted winner)

After each play only the played suit is relabelled; the snapshots of all
other suits are carried over unchanged. Once the threat card leaves its
original holder the threat is permanently inactive.

Card roles (for annotation):
    promotedWinner > threat > busy > idle > default
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum

from loguru import logger

from trickcoach.engine.cards import DEFENDERS, SEATS, SUITS, card_id, parse_card, rank_value
from trickcoach.engine.deal import Hands, holders_of
from trickcoach.engine.errors import SetupError


# ─── Enumerations ─────────────────────────────────────────────────────────────

class StopStatus(Enum):
    NONE = 'none'
    SINGLE = 'single'
    DOUBLE = 'double'


class CardRole(Enum):
    PROMOTED_WINNER = 'promotedWinner'
    THREAT = 'threat'
    BUSY = 'busy'
    IDLE = 'idle'
    DEFAULT = 'default'


# ─── Snapshot types ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ThreatDescriptor:
    suit: str
    card: str
    rank: str
    established_owner: str
    active: bool
    threat_length: int
    stop_status: StopStatus | None = None  # None while inactive


@dataclass(frozen=True)
class DefenderLabels:
    """Busy / idle split of one defender's holding in one suit."""
    busy: frozenset[str] = frozenset()
    idle: frozenset[str] = frozenset()


@dataclass(frozen=True)
class SuitLabels:
    """Classification snapshot for one suit."""
    suit: str
    threat: ThreatDescriptor | None
    east: DefenderLabels
    west: DefenderLabels

    def for_seat(self, seat: str) -> DefenderLabels:
        if seat == 'E':
            return self.east
        if seat == 'W':
            return self.west
        return DefenderLabels()


@dataclass(frozen=True)
class Classification:
    """Per-suit snapshots plus the declared threat cards."""
    suits: dict[str, SuitLabels] = field(default_factory=dict)
    threat_cards: tuple[str, ...] = ()

    def threat(self, suit: str) -> ThreatDescriptor | None:
        return self.suits[suit].threat

    def active_threat(self, suit: str) -> ThreatDescriptor | None:
        threat = self.suits[suit].threat
        return threat if threat is not None and threat.active else None

    def has_threats(self) -> bool:
        return bool(self.threat_cards)

    def labels(self, seat: str, suit: str) -> DefenderLabels:
        return self.suits[suit].for_seat(seat)

    def is_busy(self, seat: str, card: str) -> bool:
        return card in self.labels(seat, card[0]).busy

    def is_idle(self, seat: str, card: str) -> bool:
        return card in self.labels(seat, card[0]).idle

    def stop_status(self, suit: str) -> StopStatus | None:
        threat = self.active_threat(suit)
        return threat.stop_status if threat is not None else None


# ─── Threat descriptors ───────────────────────────────────────────────────────

def _threat_length(hands: Hands, owner: str, suit: str, rank: str) -> int:
    return sum(1 for r in hands[owner][suit] if rank_value(r) >= rank_value(rank))


def init_threats(hands: Hands, threat_cards: Iterable[str]) -> dict[str, ThreatDescriptor]:
    """Build the initial descriptor for each declared threat card.

    Returns:
        Mapping suit -> ThreatDescriptor (stop status not yet computed).

    Raises:
        SetupError: If two threats share a suit, a card id is malformed, or a
            threat card is held by zero or several seats.
    """
    by_suit: dict[str, ThreatDescriptor] = {}
    for raw in threat_cards:
        try:
            suit, rank = parse_card(raw)
        except ValueError as exc:
            raise SetupError(str(exc)) from exc
        card = card_id(suit, rank)
        if suit in by_suit:
            raise SetupError(f"Duplicate threat suit: {suit}")
        owners = holders_of(hands, card)
        if len(owners) != 1:
            raise SetupError(
                f"Threat card {card} must exist in exactly one hand (found {len(owners)})"
            )
        owner = owners[0]
        by_suit[suit] = ThreatDescriptor(
            suit=suit,
            card=card,
            rank=rank,
            established_owner=owner,
            active=True,
            threat_length=_threat_length(hands, owner, suit, rank),
        )
    return by_suit


def update_threat(threat: ThreatDescriptor, hands: Hands) -> ThreatDescriptor:
    """Re-check a threat against the current hands.

    Deactivation is permanent: an inactive threat is returned with length 0
    and no stop status regardless of the hands.
    """
    still_established = holders_of(hands, threat.card) == [threat.established_owner]
    active = threat.active and still_established
    if threat.active and not active:
        logger.debug(f"Threat {threat.card} deactivated")
    length = _threat_length(hands, threat.established_owner, threat.suit, threat.rank) if active else 0
    return replace(threat, active=active, threat_length=length, stop_status=None)


# ─── Labeling ─────────────────────────────────────────────────────────────────

def _defender_labels(hands: Hands, seat: str, suit: str, threat: ThreatDescriptor | None) -> DefenderLabels:
    ranks = hands[seat][suit]
    cards = [card_id(suit, r) for r in ranks]
    if threat is None or not threat.active or threat.threat_length <= 0:
        return DefenderLabels(busy=frozenset(), idle=frozenset(cards))

    has_higher = any(rank_value(r) > rank_value(threat.rank) for r in ranks)
    long_enough = len(ranks) >= threat.threat_length
    if not (has_higher and long_enough):
        return DefenderLabels(busy=frozenset(), idle=frozenset(cards))

    # ranks are stored highest first
    busy = frozenset(cards[:threat.threat_length])
    return DefenderLabels(busy=busy, idle=frozenset(cards) - busy)


def _stop_status(east: DefenderLabels, west: DefenderLabels) -> StopStatus:
    busy_count = int(bool(east.busy)) + int(bool(west.busy))
    if busy_count == 2:
        return StopStatus.DOUBLE
    if busy_count == 1:
        return StopStatus.SINGLE
    return StopStatus.NONE


def label_suit(hands: Hands, suit: str, threat: ThreatDescriptor | None) -> SuitLabels:
    """Compute the snapshot of one suit from the hands and its threat."""
    east = _defender_labels(hands, 'E', suit, threat)
    west = _defender_labels(hands, 'W', suit, threat)
    if threat is not None:
        stop = _stop_status(east, west) if threat.active else None
        threat = replace(threat, stop_status=stop)
    return SuitLabels(suit=suit, threat=threat, east=east, west=west)


def classify(hands: Hands, threat_cards: Iterable[str] = ()) -> Classification:
    """Build the full classification for a position.

    Raises:
        SetupError: See init_threats().
    """
    threat_cards = tuple(threat_cards)
    threats = init_threats(hands, threat_cards)
    suits = {suit: label_suit(hands, suit, threats.get(suit)) for suit in SUITS}
    return Classification(
        suits=suits,
        threat_cards=tuple(t.card for t in threats.values()),
    )


def refresh(classification: Classification, hands: Hands, played_card: str) -> Classification:
    """Return the classification after `played_card` left its hand.

    `hands` is the position after the play. Only the played suit is
    recomputed; every other suit keeps its snapshot object.
    """
    suit = played_card[0]
    threat = classification.suits[suit].threat
    if threat is not None:
        threat = update_threat(threat, hands)
    suits = dict(classification.suits)
    suits[suit] = label_suit(hands, suit, threat)
    return Classification(suits=suits, threat_cards=classification.threat_cards)


# ─── Derived queries ──────────────────────────────────────────────────────────

def promoted_winner_rank(classification: Classification, suit: str) -> str | None:
    """Rank of the threat card if its suit has no busy defender, else None."""
    threat = classification.active_threat(suit)
    if threat is None or threat.stop_status is not StopStatus.NONE:
        return None
    return threat.rank


def idle_threat_threshold(classification: Classification, suit: str) -> str | None:
    """The higher of the threat rank and the promoted-winner rank.

    None when the suit has no active threat.

    Examples:
        >>> from trickcoach.engine.deal import make_hands
        >>> hands = make_hands({'N': '98...', 'E': 'A2...', 'S': 'QJ...', 'W': 'K3...'})
        >>> idle_threat_threshold(classify(hands, ['S8']), 'S')
        '8'
    """
    threat = classification.active_threat(suit)
    if threat is None:
        return None
    promoted = promoted_winner_rank(classification, suit)
    if promoted is not None and rank_value(promoted) > rank_value(threat.rank):
        return promoted
    return threat.rank


def card_role(classification: Classification, card: str) -> CardRole:
    """Role of one card still in play; cards out of play are DEFAULT."""
    suit = card[0]
    threat = classification.active_threat(suit)
    if threat is not None and threat.card == card:
        if threat.stop_status is StopStatus.NONE:
            return CardRole.PROMOTED_WINNER
        return CardRole.THREAT
    for seat in DEFENDERS:
        labels = classification.labels(seat, suit)
        if card in labels.busy:
            return CardRole.BUSY
        if card in labels.idle:
            return CardRole.IDLE
    return CardRole.DEFAULT


def card_roles(classification: Classification, hands: Hands) -> dict[str, CardRole]:
    """Role of every card still held, keyed by CardId."""
    roles = {}
    for seat in SEATS:
        for suit in SUITS:
            for rank in hands[seat][suit]:
                card = card_id(suit, rank)
                roles[card] = card_role(classification, card)
    return roles
