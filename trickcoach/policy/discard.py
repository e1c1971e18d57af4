"""
Tiered discard selection for a defender that cannot follow suit.

Buckets are tried in order; the first non-empty one is used and a card is
picked uniformly inside it with the run RNG.

    tier1a  idle, suit has no active threat
    tier1b  idle, suit has an active threat, rank below the idle threshold
    tier1c  any other idle card
    tier2a  busy in a double-stopped suit, rank below the threat rank
    tier2b  busy in a double-stopped suit
    tier3a  busy in a single-stopped suit (this defender is the stopper),
            rank below the threat rank
    tier3b  busy in a single-stopped suit
    tier4   every legal card

tier2b contains tier2a and tier3b contains tier3a; the narrower bucket wins
because it is tried first. Idle cards are always shed before busy ones.
"""

from __future__ import annotations

from dataclasses import dataclass

from trickcoach.engine.cards import SUITS, card_id, rank_value
from trickcoach.engine.deal import Hand
from trickcoach.engine.rng import RngState, pick_uniform
from trickcoach.policy.threats import (
    Classification,
    StopStatus,
    idle_threat_threshold,
    promoted_winner_rank,
)

# ─── Constants ────────────────────────────────────────────────────────────────

TIER_ORDER: tuple[str, ...] = (
    'tier1a', 'tier1b', 'tier1c',
    'tier2a', 'tier2b',
    'tier3a', 'tier3b',
    'tier4',
)

IDLE_TIERS: tuple[str, ...] = ('tier1a', 'tier1b', 'tier1c')
DOUBLE_STOP_TIERS: tuple[str, ...] = ('tier2a', 'tier2b')
SINGLE_STOP_TIERS: tuple[str, ...] = ('tier3a', 'tier3b')
BUSY_TIERS: tuple[str, ...] = DOUBLE_STOP_TIERS + SINGLE_STOP_TIERS


# ─── Result types ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class DiscardTiers:
    """Every discard bucket for one decision, cards in legal-play order."""
    legal: tuple[str, ...]
    tier1a: tuple[str, ...]
    tier1b: tuple[str, ...]
    tier1c: tuple[str, ...]
    tier2a: tuple[str, ...]
    tier2b: tuple[str, ...]
    tier3a: tuple[str, ...]
    tier3b: tuple[str, ...]
    tier4: tuple[str, ...]

    def bucket(self, name: str) -> tuple[str, ...]:
        if name not in TIER_ORDER:
            raise ValueError(f"Unknown discard tier {name!r}")
        return getattr(self, name)

    def first_non_empty(self) -> tuple[str, tuple[str, ...]]:
        """Return (tier name, cards) of the first non-empty bucket."""
        for name in TIER_ORDER:
            cards = self.bucket(name)
            if cards:
                return name, cards
        return 'tier4', self.tier4


@dataclass(frozen=True)
class Tier1Card:
    card: str
    label: str  # 'busy' | 'idle' | 'default'
    suit_active_threat: bool
    threshold: str | None
    below_threshold: bool | None
    tier1a: bool
    tier1b: bool
    tier1c: bool


@dataclass(frozen=True)
class ThreatSummary:
    suit: str
    threat_rank: str
    promoted_winner_rank: str | None
    threshold: str
    stop_status: StopStatus | None


@dataclass(frozen=True)
class Tier1Explanation:
    cards: tuple[Tier1Card, ...]
    idle_legal: tuple[str, ...]
    tier1a: tuple[str, ...]
    tier1b: tuple[str, ...]
    tier1c: tuple[str, ...]
    active_threats: tuple[ThreatSummary, ...]
    missing: tuple[str, ...]
    overlap: tuple[str, ...]

    @property
    def integrity_ok(self) -> bool:
        """Every idle legal card sits in exactly one tier-1 bucket."""
        total = len(self.tier1a) + len(self.tier1b) + len(self.tier1c)
        return not self.missing and not self.overlap and total == len(self.idle_legal)


# ─── Predicates ───────────────────────────────────────────────────────────────

def _below_threat_rank(card: str, classification: Classification) -> bool:
    threat = classification.active_threat(card[0])
    if threat is None:
        return False
    return rank_value(card[1:]) < rank_value(threat.rank)


def _tier1a(seat: str, card: str, classification: Classification) -> bool:
    if not classification.is_idle(seat, card):
        return False
    return classification.active_threat(card[0]) is None


def _tier1b(seat: str, card: str, classification: Classification) -> bool:
    if not classification.is_idle(seat, card):
        return False
    threshold = idle_threat_threshold(classification, card[0])
    if threshold is None:
        return False
    return rank_value(card[1:]) < rank_value(threshold)


def _tier1c(seat: str, card: str, classification: Classification) -> bool:
    if not classification.is_idle(seat, card):
        return False
    return not _tier1a(seat, card, classification) and not _tier1b(seat, card, classification)


def _busy_with_stop(seat: str, card: str, classification: Classification, stop: StopStatus) -> bool:
    if not classification.is_busy(seat, card):
        return False
    return classification.stop_status(card[0]) is stop


def _legal_cards(hand: Hand, led_suit: str | None) -> tuple[str, ...]:
    if led_suit is not None and hand[led_suit]:
        return tuple(card_id(led_suit, r) for r in hand[led_suit])
    return tuple(card_id(suit, r) for suit in SUITS for r in hand[suit])


# ─── Public API ───────────────────────────────────────────────────────────────

def compute_discard_tiers(
    seat: str,
    hand: Hand,
    led_suit: str | None,
    classification: Classification,
) -> DiscardTiers:
    """Compute every discard bucket for `seat`.

    Args:
        seat: The defender to move ('E' or 'W').
        hand: That defender's current holding.
        led_suit: Suit led to the current trick, or None when leading.
        classification: Current threat classification.

    Examples:
        >>> from trickcoach.engine.deal import make_hands
        >>> from trickcoach.policy.threats import classify
        >>> hands = make_hands({'N': '98...', 'E': 'A2...', 'S': 'QJ...', 'W': 'K3...'})
        >>> tiers = compute_discard_tiers('W', hands['W'], 'H', classify(hands, ['S8']))
        >>> tiers.tier2a, tiers.tier2b
        (('S3',), ('SK', 'S3'))
    """
    legal = _legal_cards(hand, led_suit)

    def select(predicate) -> tuple[str, ...]:
        return tuple(c for c in legal if predicate(c))

    def busy_single(c: str) -> bool:
        return _busy_with_stop(seat, c, classification, StopStatus.SINGLE)

    def busy_double(c: str) -> bool:
        return _busy_with_stop(seat, c, classification, StopStatus.DOUBLE)

    return DiscardTiers(
        legal=legal,
        tier1a=select(lambda c: _tier1a(seat, c, classification)),
        tier1b=select(lambda c: _tier1b(seat, c, classification)),
        tier1c=select(lambda c: _tier1c(seat, c, classification)),
        tier2a=select(lambda c: busy_double(c) and _below_threat_rank(c, classification)),
        tier2b=select(busy_double),
        tier3a=select(lambda c: busy_single(c) and _below_threat_rank(c, classification)),
        tier3b=select(busy_single),
        tier4=legal,
    )


def choose_discard(tiers: DiscardTiers, rng: RngState) -> tuple[str, str, RngState]:
    """Pick a discard from the first non-empty bucket.

    Returns:
        (tier name, chosen card, advanced RNG state).

    Raises:
        ValueError: If the defender has no legal card.
    """
    if not tiers.legal:
        raise ValueError("No legal cards to discard")
    name, cards = tiers.first_non_empty()
    card, rng = pick_uniform(rng, cards)
    return name, card, rng


def explain_tier1(seat: str, legal, classification: Classification) -> Tier1Explanation:
    """Break down the tier-1 membership of each legal card of `seat`.

    The integrity check holds when every idle legal card lands in exactly one
    of tier1a, tier1b and tier1c.
    """
    rows = []
    for card in legal:
        suit = card[0]
        idle = classification.is_idle(seat, card)
        busy = classification.is_busy(seat, card)
        threshold = idle_threat_threshold(classification, suit)
        rows.append(Tier1Card(
            card=card,
            label='busy' if busy else 'idle' if idle else 'default',
            suit_active_threat=classification.active_threat(suit) is not None,
            threshold=threshold,
            below_threshold=(
                rank_value(card[1:]) < rank_value(threshold) if threshold is not None else None
            ),
            tier1a=_tier1a(seat, card, classification),
            tier1b=_tier1b(seat, card, classification),
            tier1c=_tier1c(seat, card, classification),
        ))

    tier1a = tuple(r.card for r in rows if r.tier1a)
    tier1b = tuple(r.card for r in rows if r.tier1b)
    tier1c = tuple(r.card for r in rows if r.tier1c)
    idle_legal = tuple(r.card for r in rows if r.label == 'idle')

    counts: dict[str, int] = {}
    for card in tier1a + tier1b + tier1c:
        counts[card] = counts.get(card, 0) + 1
    missing = tuple(c for c in idle_legal if c not in counts)
    overlap = tuple(c for c, n in counts.items() if n > 1)

    summaries = []
    for suit in SUITS:
        threat = classification.active_threat(suit)
        if threat is None:
            continue
        summaries.append(ThreatSummary(
            suit=suit,
            threat_rank=threat.rank,
            promoted_winner_rank=promoted_winner_rank(classification, suit),
            threshold=idle_threat_threshold(classification, suit) or threat.rank,
            stop_status=threat.stop_status,
        ))

    return Tier1Explanation(
        cards=tuple(rows),
        idle_legal=idle_legal,
        tier1a=tier1a,
        tier1b=tier1b,
        tier1c=tier1c,
        active_threats=tuple(summaries),
        missing=missing,
        overlap=overlap,
    )
