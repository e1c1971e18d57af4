"""
Autoplay policy for the seats the learner does not control.

Each automated move is decided in three steps:

    1. Replay forcing: while a recorded transcript is attached and the live
       fingerprint matches the record at the cursor, replay the recorded card
       (or, at the divergence decision, the forced card). A legal card of the
       same policy class substitutes for an unavailable one. Any mismatch
       switches forcing off for the rest of the run.
    2. Preferred discard: a seat that cannot follow suit plays its declared
       preferred discard once per run.
    3. Policy dispatch:
         randomLegal   uniform over legal plays              bucket 'legal'
         threatAware   defender leading: uniform             bucket 'lead:none'
                       defender following: cards below the idle-threat
                       threshold first                       'follow:below' / 'follow:above'
                       (no active threat in the led suit)    'follow:baseline'
                       defender discarding: discard tiers    'tier1a' .. 'tier4'
                       declarer seat: uniform                'legal'

choose_autoplay() is pure: it returns the chosen play together with the
advanced RNG and replay state, and the engine decides whether to commit them.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, NamedTuple

from loguru import logger

from trickcoach.engine.cards import Play, is_defender, rank_value
from trickcoach.engine.deal import holds
from trickcoach.engine.equivalence import class_id_for_card
from trickcoach.engine.rng import RngState, pick_uniform
from trickcoach.engine.rules import legal_plays_for
from trickcoach.policy.decisions import (
    DecisionFingerprint,
    DecisionRecord,
    PolicyClass,
    Transcript,
    card_matches_class,
)
from trickcoach.policy.discard import DiscardTiers, choose_discard, compute_discard_tiers
from trickcoach.policy.threats import idle_threat_threshold

if TYPE_CHECKING:
    from trickcoach.engine.game_state import GameState


# ─── Enumerations ─────────────────────────────────────────────────────────────

class PolicyKind(Enum):
    RANDOM_LEGAL = 'randomLegal'
    THREAT_AWARE = 'threatAware'


class PreferredReason(Enum):
    APPLIED = 'applied'
    NOT_DISCARD = 'not-discard'
    CAN_FOLLOW_SUIT = 'can-follow-suit'
    ALREADY_USED = 'already-used'
    NOT_IN_HAND = 'not-in-hand'
    NOT_LEGAL = 'not-legal'


# ─── State / result types ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class ReplayState:
    """Replay forcing state threaded through a run.

    Attributes:
        transcript:            Recorded successful run, or None.
        enabled:               Forcing is on.
        cursor:                Index of the next recorded decision to force.
        divergence_index:      Decision at which `forced_card` replaces the
                               recorded card; forcing stops after it.
        forced_card:           Card to play at the divergence decision.
        forced_class:          Policy class that card stands for.
        user_divergence_index: Cursor at which the learner left the recorded
                               line, None while they follow it.
    """
    transcript: Transcript | None = None
    enabled: bool = False
    cursor: int = 0
    divergence_index: int | None = None
    forced_card: str | None = None
    forced_class: PolicyClass | None = None
    user_divergence_index: int | None = None

    @property
    def active(self) -> bool:
        return self.enabled and self.transcript is not None

    def disabled(self) -> ReplayState:
        return replace(self, enabled=False)


class PreferredDiscardDecision(NamedTuple):
    preferred: tuple[str, ...]
    applied: bool
    reason: PreferredReason
    chosen: str | None = None


class ReplayNote(NamedTuple):
    action: str                 # 'forced' | 'disabled'
    index: int | None = None
    reason: str | None = None   # 'sig-mismatch' | 'card-not-legal' | 'user-divergence'
    card: str | None = None


@dataclass(frozen=True)
class AutoChoice:
    """Outcome of one autoplay evaluation (play is None on failure)."""
    play: Play | None
    rng: RngState
    replay: ReplayState
    bucket: str | None = None
    bucket_cards: tuple[str, ...] = ()
    tiers: DiscardTiers | None = None
    fingerprint: DecisionFingerprint | None = None
    preferred: PreferredDiscardDecision | None = None
    replay_note: ReplayNote | None = None
    uses_preference: bool = False
    source_record: DecisionRecord | None = None
    forced_class: PolicyClass | None = None


# ─── Helpers ──────────────────────────────────────────────────────────────────

def decision_fingerprint(state: GameState, legal: list[Play]) -> DecisionFingerprint:
    """Fingerprint of the decision facing the seat to move."""
    legal_classes = sorted({class_id_for_card(state.hands, p.seat, p.card) for p in legal})
    return DecisionFingerprint(
        seat=state.turn,
        led_suit=state.trick[0].suit if state.trick else None,
        strain=state.strain,
        legal_classes=tuple(legal_classes),
        trick=tuple(state.trick_classes),
    )


def _uniform(plays: list[Play], rng: RngState) -> tuple[Play | None, RngState]:
    if not plays:
        return None, rng
    return pick_uniform(rng, plays)


def evaluate_preferred_discard(state: GameState, legal: list[Play]) -> PreferredDiscardDecision | None:
    """Decide whether the seat to move plays its preferred discard.

    Returns None when the seat declared no preference.
    """
    seat = state.turn
    preferred = state.preferred_discards.get(seat, ())
    if not preferred:
        return None
    if not state.trick:
        return PreferredDiscardDecision(preferred, False, PreferredReason.NOT_DISCARD)
    led = state.trick[0].suit
    hand = state.hands[seat]
    if hand[led]:
        return PreferredDiscardDecision(preferred, False, PreferredReason.CAN_FOLLOW_SUIT)
    if seat in state.preferred_used:
        return PreferredDiscardDecision(preferred, False, PreferredReason.ALREADY_USED)

    legal_cards = {p.card for p in legal}
    for card in preferred:
        if not holds(hand, card):
            continue
        if card not in legal_cards:
            return PreferredDiscardDecision(preferred, False, PreferredReason.NOT_LEGAL, card)
        return PreferredDiscardDecision(preferred, True, PreferredReason.APPLIED, card)
    return PreferredDiscardDecision(preferred, False, PreferredReason.NOT_IN_HAND)


def _force_from_replay(
    state: GameState,
    legal: list[Play],
    fingerprint: DecisionFingerprint,
) -> tuple[AutoChoice | None, ReplayState, ReplayNote | None]:
    replay = state.replay
    decisions = replay.transcript.decisions
    if replay.cursor >= len(decisions):
        return None, replay.disabled(), None

    rec = decisions[replay.cursor]
    if rec.fingerprint != fingerprint:
        logger.debug(f"Replay disabled at decision {rec.index}: fingerprint mismatch")
        note = ReplayNote('disabled', rec.index, 'sig-mismatch', rec.chosen_card)
        return None, replay.disabled(), note

    at_divergence = replay.divergence_index is not None and replay.cursor == replay.divergence_index
    if at_divergence and replay.forced_card is not None:
        force_card = replay.forced_card
        target = replay.forced_class or rec.policy_class
    else:
        force_card = rec.chosen_card
        target = rec.policy_class

    play = next((p for p in legal if p.card == force_card), None)
    if play is None:
        play = next(
            (p for p in legal if card_matches_class(p.card, target, p.seat, state.classification)),
            None,
        )
    if play is None:
        logger.debug(f"Replay disabled at decision {rec.index}: {force_card} not playable")
        note = ReplayNote('disabled', rec.index, 'card-not-legal', force_card)
        return None, replay.disabled(), note

    stop = replay.divergence_index is not None and rec.index == replay.divergence_index
    next_replay = replace(replay, cursor=replay.cursor + 1, enabled=not stop)
    choice = AutoChoice(
        play=play,
        rng=state.rng,
        replay=next_replay,
        bucket=rec.bucket,
        bucket_cards=rec.bucket_cards,
        fingerprint=fingerprint,
        replay_note=ReplayNote('forced', rec.index, None, play.card),
        source_record=rec,
        forced_class=target,
    )
    return choice, next_replay, None


# ─── Public API ───────────────────────────────────────────────────────────────

def choose_autoplay(state: GameState, policy: PolicyKind) -> AutoChoice:
    """Choose the move for the automated seat to play.

    Args:
        state: Current game state; `state.turn` is the seat to move.
        policy: The policy configured for that seat.

    Returns:
        AutoChoice with the play (None when nothing can be chosen), the
        bucket it came from, and the RNG / replay state to commit.
    """
    seat = state.turn
    legal = legal_plays_for(seat, state.hands[seat], state.trick)
    defender = is_defender(seat)
    fingerprint = decision_fingerprint(state, legal) if defender else None
    replay = state.replay
    note = None

    if defender and replay.active:
        forced, replay, note = _force_from_replay(state, legal, fingerprint)
        if forced is not None:
            return forced

    preferred = evaluate_preferred_discard(state, legal)
    common = dict(fingerprint=fingerprint, preferred=preferred, replay_note=note, replay=replay)
    if preferred is not None and preferred.applied:
        return AutoChoice(
            play=Play.of(seat, preferred.chosen),
            rng=state.rng,
            bucket='preferred',
            bucket_cards=(preferred.chosen,),
            uses_preference=True,
            **common,
        )

    all_cards = tuple(p.card for p in legal)
    if policy is PolicyKind.RANDOM_LEGAL or not defender:
        play, rng = _uniform(legal, state.rng)
        return AutoChoice(play=play, rng=rng, bucket='legal', bucket_cards=all_cards, **common)

    if not state.trick:
        play, rng = _uniform(legal, state.rng)
        return AutoChoice(play=play, rng=rng, bucket='lead:none', bucket_cards=all_cards, **common)

    led = state.trick[0].suit
    if state.hands[seat][led]:
        threshold = idle_threat_threshold(state.classification, led)
        if threshold is None:
            play, rng = _uniform(legal, state.rng)
            return AutoChoice(play=play, rng=rng, bucket='follow:baseline', bucket_cards=all_cards, **common)
        below = [p for p in legal if rank_value(p.rank) < rank_value(threshold)]
        above = [p for p in legal if rank_value(p.rank) >= rank_value(threshold)]
        bucket_plays = below if below else above
        play, rng = _uniform(bucket_plays, state.rng)
        return AutoChoice(
            play=play,
            rng=rng,
            bucket='follow:below' if below else 'follow:above',
            bucket_cards=tuple(p.card for p in bucket_plays),
            **common,
        )

    if not legal:
        return AutoChoice(play=None, rng=state.rng, **common)
    tiers = compute_discard_tiers(seat, state.hands[seat], led, state.classification)
    bucket, card, rng = choose_discard(tiers, state.rng)
    return AutoChoice(
        play=Play.of(seat, card),
        rng=rng,
        bucket=bucket,
        bucket_cards=tiers.bucket(bucket),
        tiers=tiers,
        **common,
    )
