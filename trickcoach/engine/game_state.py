"""
Game state management and the trick-resolution state machine.

Implements the hand flow of a trick-taking ending:
    INIT → (AWAIT_USER ⇄ AUTO)* → END

    - The learner's seats move through apply(); every other seat is played by
      its autoplay policy until a learner seat is to move again, the hand
      ends, or autoplay cannot produce a move.
    - Illegal moves and autoplay failures are reported as events and leave
      the state untouched; setup problems raise SetupError from init().
    - Every transition returns a new GameState. Old states stay valid, so a
      retained history supports undo.
    - The threat classification is refreshed after every card for the played
      suit only.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import ClassVar, NamedTuple

from loguru import logger

from trickcoach import config
from trickcoach.policy.autoplay import (
    AutoChoice,
    PolicyKind,
    PreferredDiscardDecision,
    ReplayNote,
    ReplayState,
    choose_autoplay,
)
from trickcoach.policy.decisions import (
    BusyBranching,
    DecisionFingerprint,
    DecisionRecord,
    PolicyClass,
    Transcript,
    exploration_cards,
    offered_classes,
    policy_class_for,
)
from trickcoach.policy.threats import CardRole, Classification, classify, refresh
from trickcoach.policy.threats import card_roles as _card_roles
from trickcoach.policy.threats import idle_threat_threshold as _idle_threat_threshold
from .cards import SEATS, SIDES, STRAINS, Play, is_defender, next_seat, parse_card, seat_side
from .deal import Hands, all_empty, hand_size, remove_card, validate_deal
from .equivalence import EquivalenceClass, class_id_for_card, suit_equivalence_classes
from .errors import SetupError
from .rng import RngState, make_rng
from .rules import Goal, goal_met, legal_plays_for, trick_winner, trump_suit


# ─── Enumerations ─────────────────────────────────────────────────────────────

class Phase(Enum):
    AWAIT_USER = auto()
    AUTO = auto()
    END = auto()


# ─── Problem / State types ────────────────────────────────────────────────────

@dataclass(frozen=True)
class Problem:
    """A puzzle definition: deal, contract, goal and who plays what.

    `policies` maps each automated seat to its PolicyKind. `preferred_discards`
    maps a seat to its ordered preferred discard cards.
    """
    id: str
    strain: str
    leader: str
    user_seats: tuple[str, ...]
    goal: Goal
    hands: Hands
    policies: dict[str, PolicyKind] = field(default_factory=dict)
    threat_cards: tuple[str, ...] = ()
    preferred_discards: dict[str, tuple[str, ...]] = field(default_factory=dict)
    seed: int = 0


@dataclass(frozen=True)
class GameState:
    """Immutable snapshot of a hand in progress."""
    problem_id: str
    strain: str
    trump: str | None
    hands: Hands
    leader: str
    turn: str
    trick: tuple[Play, ...]
    trick_classes: tuple[tuple[str, str], ...]  # (seat, equivalence class id)
    tricks_won: dict[str, int]
    goal: Goal
    phase: Phase
    rng: RngState
    user_seats: frozenset[str]
    policies: dict[str, PolicyKind]
    preferred_discards: dict[str, tuple[str, ...]]
    preferred_used: frozenset[str]
    classification: Classification
    replay: ReplayState = ReplayState()
    busy_branching: BusyBranching = BusyBranching.STRICT
    decision_count: int = 0
    user_play_count: int = 0

    @property
    def is_user_turn(self) -> bool:
        return self.turn in self.user_seats

    @property
    def success(self) -> bool:
        return goal_met(self.goal, self.tricks_won)


# ─── Events ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PlayedEvent:
    type: ClassVar[str] = 'played'
    play: Play
    class_id: str
    replay: ReplayNote | None = None


@dataclass(frozen=True)
class AutoplayEvent:
    type: ClassVar[str] = 'autoplay'
    play: Play
    class_id: str
    bucket: str | None
    bucket_cards: tuple[str, ...]
    policy_classes: dict[str, PolicyClass]
    fingerprint: DecisionFingerprint | None
    preferred: PreferredDiscardDecision | None = None
    replay: ReplayNote | None = None
    record: DecisionRecord | None = None


@dataclass(frozen=True)
class IllegalEvent:
    type: ClassVar[str] = 'illegal'
    reason: str


@dataclass(frozen=True)
class TrickCompleteEvent:
    type: ClassVar[str] = 'trickComplete'
    winner: str
    trick: tuple[Play, ...]


@dataclass(frozen=True)
class HandCompleteEvent:
    type: ClassVar[str] = 'handComplete'
    success: bool
    tricks_won: dict[str, int]


Event = PlayedEvent | AutoplayEvent | IllegalEvent | TrickCompleteEvent | HandCompleteEvent


class StepResult(NamedTuple):
    state: GameState
    events: tuple[Event, ...]


# ─── Setup ────────────────────────────────────────────────────────────────────

def _check_problem(problem: Problem) -> None:
    if problem.strain not in STRAINS:
        raise SetupError(f"Unknown strain {problem.strain!r}")
    if problem.leader not in SEATS:
        raise SetupError(f"Unknown leader {problem.leader!r}")
    if problem.goal.side not in SIDES:
        raise SetupError(f"Unknown goal side {problem.goal.side!r}")
    if problem.goal.min_tricks < 0:
        raise SetupError(f"Goal trick count must be non-negative, got {problem.goal.min_tricks}")
    for seat in problem.user_seats:
        if seat not in SEATS:
            raise SetupError(f"Unknown user seat {seat!r}")
    for seat, policy in problem.policies.items():
        if seat not in SEATS:
            raise SetupError(f"Unknown policy seat {seat!r}")
        if not isinstance(policy, PolicyKind):
            raise SetupError(f"Unknown policy {policy!r} for seat {seat}")
    for seat, cards in problem.preferred_discards.items():
        if seat not in SEATS:
            raise SetupError(f"Unknown preferred-discard seat {seat!r}")
        for card in cards:
            try:
                parse_card(card)
            except ValueError as exc:
                raise SetupError(f"Malformed preferred discard for {seat}: {exc}") from exc

    if set(problem.hands) != set(SEATS):
        raise SetupError("Problem must define all four hands")
    validate_deal(problem.hands)
    sizes = {hand_size(problem.hands[seat]) for seat in SEATS}
    if len(sizes) != 1:
        raise SetupError(f"Hands must hold the same number of cards, got sizes {sorted(sizes)}")

    uses_threat_aware = any(p is PolicyKind.THREAT_AWARE for p in problem.policies.values())
    if uses_threat_aware and not problem.threat_cards:
        raise SetupError(f"Problem {problem.id} uses threatAware policy but has no threat cards")


def _phase_for(hands: Hands, turn: str, user_seats: frozenset[str]) -> Phase:
    if all_empty(hands):
        return Phase.END
    return Phase.AWAIT_USER if turn in user_seats else Phase.AUTO


def init(problem: Problem, busy_branching: BusyBranching | str | None = None) -> GameState:
    """Build the initial GameState for a problem.

    Args:
        problem: The puzzle definition.
        busy_branching: Alternative scope for busy discard decisions;
                        defaults to the TRICKCOACH_BUSY_BRANCHING setting.

    Raises:
        SetupError: On a malformed deal or problem definition, on threat cards
            missing from the deal, held twice or sharing a suit, or when a
            threatAware policy has no threat cards to work with.
    """
    try:
        _check_problem(problem)
        classification = classify(problem.hands, problem.threat_cards)
        branching = BusyBranching(busy_branching or config.BUSY_BRANCHING)
    except SetupError as exc:
        logger.warning(f"Problem {problem.id} rejected: {exc}")
        raise
    except ValueError as exc:
        logger.warning(f"Problem {problem.id} rejected: {exc}")
        raise SetupError(str(exc)) from exc

    user_seats = frozenset(problem.user_seats)
    state = GameState(
        problem_id=problem.id,
        strain=problem.strain,
        trump=trump_suit(problem.strain),
        hands=problem.hands,
        leader=problem.leader,
        turn=problem.leader,
        trick=(),
        trick_classes=(),
        tricks_won={side: 0 for side in SIDES},
        goal=problem.goal,
        phase=_phase_for(problem.hands, problem.leader, user_seats),
        rng=make_rng(problem.seed),
        user_seats=user_seats,
        policies=dict(problem.policies),
        preferred_discards={seat: tuple(c) for seat, c in problem.preferred_discards.items()},
        preferred_used=frozenset(),
        classification=classification,
        busy_branching=branching,
    )
    logger.debug(f"Initialised {problem.id} seed={state.rng.seed} leader={problem.leader}")
    return state


def attach_replay(
    state: GameState,
    transcript: Transcript,
    divergence_index: int | None = None,
    forced_card: str | None = None,
    forced_class: PolicyClass | None = None,
) -> GameState:
    """Return `state` with replay forcing switched on for `transcript`."""
    replay = ReplayState(
        transcript=transcript,
        enabled=True,
        cursor=0,
        divergence_index=divergence_index,
        forced_card=forced_card,
        forced_class=forced_class,
    )
    return replace(state, replay=replay)


# ─── Queries ──────────────────────────────────────────────────────────────────

def legal_plays(state: GameState) -> list[Play]:
    """Legal plays of the seat to move; empty once the hand is over."""
    if state.phase is Phase.END:
        return []
    return legal_plays_for(state.turn, state.hands[state.turn], state.trick)


def equivalence_classes(state: GameState, seat: str, suit: str) -> list[EquivalenceClass]:
    return suit_equivalence_classes(state.hands, seat, suit)


def card_roles(state: GameState) -> dict[str, CardRole]:
    return _card_roles(state.classification, state.hands)


def idle_threat_threshold(state: GameState, suit: str) -> str | None:
    return _idle_threat_threshold(state.classification, suit)


# ─── Transitions ──────────────────────────────────────────────────────────────

def _play_card(state: GameState, play: Play, first_event: Event) -> tuple[GameState, list[Event]]:
    """Remove the card, extend the trick, refresh classification, resolve tricks."""
    class_id = class_id_for_card(state.hands, play.seat, play.card)
    hands = remove_card(state.hands, play.seat, play.card)
    classification = refresh(state.classification, hands, play.card)
    trick = state.trick + (play,)
    trick_classes = state.trick_classes + ((play.seat, class_id),)
    events: list[Event] = [first_event]

    if len(trick) < 4:
        state = replace(
            state,
            hands=hands,
            classification=classification,
            trick=trick,
            trick_classes=trick_classes,
            turn=next_seat(play.seat),
        )
        return state, events

    winner = trick_winner(trick, state.trump)
    tricks_won = dict(state.tricks_won)
    tricks_won[seat_side(winner)] += 1
    events.append(TrickCompleteEvent(winner=winner, trick=trick))
    logger.debug(f"Trick {' '.join(str(p) for p in trick)} won by {winner}")

    phase = state.phase
    if all_empty(hands):
        phase = Phase.END
        success = goal_met(state.goal, tricks_won)
        events.append(HandCompleteEvent(success=success, tricks_won=dict(tricks_won)))
        logger.info(
            f"{state.problem_id} complete: NS {tricks_won['NS']} EW {tricks_won['EW']} "
            f"({'success' if success else 'failure'})"
        )

    state = replace(
        state,
        hands=hands,
        classification=classification,
        trick=(),
        trick_classes=(),
        tricks_won=tricks_won,
        leader=winner,
        turn=winner,
        phase=phase,
    )
    return state, events


def _decision_record(state: GameState, choice: AutoChoice) -> DecisionRecord:
    """Build the record for a defender decision, before its card is played."""
    seat = state.turn
    card = choice.play.card
    class_id = class_id_for_card(state.hands, seat, card)
    source = choice.source_record
    if source is not None:
        chosen = choice.forced_class or source.policy_class
        offered = source.offered if chosen in source.offered else source.offered + (chosen,)
        representatives = dict(source.representatives)
        representatives[chosen] = card
    else:
        bucket = choice.bucket or ''
        chosen = policy_class_for(card, bucket, seat, state.classification)
        cards = exploration_cards(bucket, choice.bucket_cards, choice.tiers, state.busy_branching)
        offered, representatives = offered_classes(cards, bucket, seat, state.classification, card)

    return DecisionRecord(
        index=state.decision_count,
        seat=seat,
        fingerprint=choice.fingerprint,
        chosen_card=card,
        chosen_class_id=class_id,
        policy_class=chosen,
        bucket=choice.bucket or '',
        bucket_cards=tuple(choice.bucket_cards),
        offered=offered,
        representatives=representatives,
    )


def _run_autoplay(state: GameState, events: list[Event]) -> GameState:
    """Advance automated seats until a user seat moves or play cannot continue."""
    while state.phase is not Phase.END and not state.is_user_turn:
        seat = state.turn
        policy = state.policies.get(seat)
        if policy is None:
            events.append(IllegalEvent(reason=f"No policy configured for auto seat {seat}"))
            logger.warning(f"No policy configured for auto seat {seat}")
            break

        choice = choose_autoplay(state, policy)
        if choice.play is None:
            legal_count = len(legal_plays(state))
            suffix = f", replay={choice.replay_note.reason}" if choice.replay_note and choice.replay_note.reason else ''
            reason = f"Autoplay failed for {seat} (policy={policy.value}, legal={legal_count}{suffix})"
            events.append(IllegalEvent(reason=reason))
            logger.warning(reason)
            break

        card = choice.play.card
        record = _decision_record(state, choice) if is_defender(seat) and choice.fingerprint else None
        policy_classes = {
            c: policy_class_for(c, choice.bucket or '', seat, state.classification)
            for c in choice.bucket_cards
        }
        event = AutoplayEvent(
            play=choice.play,
            class_id=class_id_for_card(state.hands, seat, card),
            bucket=choice.bucket,
            bucket_cards=tuple(choice.bucket_cards),
            policy_classes=policy_classes,
            fingerprint=choice.fingerprint,
            preferred=choice.preferred,
            replay=choice.replay_note,
            record=record,
        )
        logger.debug(f"{seat} plays {card} from {choice.bucket}")

        preferred_used = state.preferred_used | {seat} if choice.uses_preference else state.preferred_used
        state = replace(
            state,
            rng=choice.rng,
            replay=choice.replay,
            preferred_used=preferred_used,
            decision_count=state.decision_count + (1 if record is not None else 0),
            phase=Phase.AUTO,
        )
        state, new_events = _play_card(state, choice.play, event)
        events.extend(new_events)

    if state.phase is not Phase.END:
        state = replace(state, phase=_phase_for(state.hands, state.turn, state.user_seats))
    return state


def _check_user_divergence(state: GameState, play: Play, class_id: str) -> tuple[ReplayState, ReplayNote | None]:
    replay = state.replay
    if not replay.active:
        return replay, None
    user_plays = replay.transcript.user_plays
    expected = user_plays[state.user_play_count] if state.user_play_count < len(user_plays) else None
    if expected is not None and expected.seat == play.seat and expected.class_id == class_id:
        return replay, None
    logger.debug(f"User left the recorded line at decision {replay.cursor} with {play}")
    replay = replace(replay, enabled=False, user_divergence_index=replay.cursor)
    return replay, ReplayNote('disabled', replay.cursor, 'user-divergence', play.card)


def apply(state: GameState, play: Play) -> StepResult:
    """Apply a move for the seat to play, then auto-advance automated seats.

    Violations (hand over, wrong seat, illegal card) produce a single
    IllegalEvent and return the state unchanged.
    """
    if state.phase is Phase.END:
        return StepResult(state, (IllegalEvent(reason="Hand already complete"),))
    if play.seat != state.turn:
        return StepResult(state, (IllegalEvent(reason=f"Expected turn {state.turn}, got {play.seat}"),))
    if play not in legal_plays(state):
        return StepResult(state, (IllegalEvent(reason=f"Illegal play {play}"),))

    class_id = class_id_for_card(state.hands, play.seat, play.card)
    note = None
    if state.is_user_turn:
        replay, note = _check_user_divergence(state, play, class_id)
        state = replace(state, replay=replay, user_play_count=state.user_play_count + 1)

    state, events = _play_card(state, play, PlayedEvent(play=play, class_id=class_id, replay=note))
    state = _run_autoplay(state, events)
    return StepResult(state, tuple(events))


def advance(state: GameState) -> StepResult:
    """Run automated seats without a user move (e.g. an automated leader)."""
    events: list[Event] = []
    state = _run_autoplay(state, events)
    return StepResult(state, tuple(events))
