"""
Play session: one run of a problem with history, undo and transcript capture.

A session wraps the pure engine transitions. It keeps every state reached
after a user move (so undo is a pop), the events of each step, and derives
the decision and user-play records of the run from those events. When the
run ends with the goal met, transcript() returns the record of the run for
replay coverage.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable

from loguru import logger

from trickcoach.engine.cards import Play
from trickcoach.engine.game_state import (
    AutoplayEvent,
    Event,
    GameState,
    HandCompleteEvent,
    IllegalEvent,
    Phase,
    PlayedEvent,
    Problem,
    StepResult,
    advance,
    apply,
    attach_replay,
    init,
    legal_plays,
)
from trickcoach.engine.equivalence import class_for_card
from trickcoach.policy.decisions import (
    BusyBranching,
    DecisionRecord,
    PolicyClass,
    Transcript,
    UserPlayRecord,
)

# user_strategy(state) -> Play to make for the seat to move, or None to stop
UserStrategy = Callable[[GameState], Play | None]


def representative_user_play(state: GameState) -> Play | None:
    """Deterministic user strategy: the representative of the lowest class.

    Among the legal plays, take the equivalence class with the smallest class
    id (string order) and play its lowest member.

    Example:
        >>> from trickcoach.problems import problem_from_dict
        >>> from trickcoach.engine.game_state import init
        >>> p = problem_from_dict({'id': 'x', 'strain': 'NT', 'leader': 'N',
        ...     'userSeats': ['N', 'S'], 'goal': {'side': 'NS', 'minTricks': 1},
        ...     'hands': {'N': 'AK...', 'E': '32...', 'S': '54...', 'W': '76...'},
        ...     'policies': {'E': 'randomLegal', 'W': 'randomLegal'}, 'seed': 1})
        >>> str(representative_user_play(init(p)))
        'N:SK'
    """
    plays = legal_plays(state)
    if not plays:
        return None
    by_class: dict[str, Play] = {}
    for play in plays:
        eq_class = class_for_card(state.hands, play.seat, play.card)
        if eq_class.class_id not in by_class:
            rep = eq_class.representative
            by_class[eq_class.class_id] = next((p for p in plays if p.card == rep), play)
    return by_class[min(by_class)]


class PlaySession:
    """One run of a problem.

    Args:
        problem: The puzzle definition.
        seed: Overrides the problem's RNG seed when given.
        busy_branching: Alternative scope for busy discard decisions.
        transcript: Recorded successful run to replay, if any.
        divergence_index: Decision at which the replay plays `forced_card`.
        forced_card: Card forced at the divergence decision.
        forced_class: Policy class `forced_card` stands for.
    """

    def __init__(
        self,
        problem: Problem,
        seed: int | None = None,
        busy_branching: BusyBranching | str | None = None,
        transcript: Transcript | None = None,
        divergence_index: int | None = None,
        forced_card: str | None = None,
        forced_class: PolicyClass | None = None,
    ):
        if seed is not None:
            problem = replace(problem, seed=seed)
        self.problem = problem
        state = init(problem, busy_branching)
        if transcript is not None:
            state = attach_replay(state, transcript, divergence_index, forced_card, forced_class)
        result = advance(state)
        self._states: list[GameState] = [result.state]
        self._events: list[tuple[Event, ...]] = [result.events]

    # ─── State access ─────────────────────────────────────────────────────────

    @property
    def state(self) -> GameState:
        return self._states[-1]

    @property
    def seed(self) -> int:
        return self.state.rng.seed

    @property
    def events(self) -> list[Event]:
        return [event for step in self._events for event in step]

    @property
    def is_complete(self) -> bool:
        return self.state.phase is Phase.END

    @property
    def success(self) -> bool:
        return any(isinstance(e, HandCompleteEvent) and e.success for e in self.events)

    @property
    def user_divergence_index(self) -> int | None:
        return self.state.replay.user_divergence_index

    @property
    def decisions(self) -> tuple[DecisionRecord, ...]:
        return tuple(
            e.record for e in self.events
            if isinstance(e, AutoplayEvent) and e.record is not None
        )

    @property
    def user_plays(self) -> tuple[UserPlayRecord, ...]:
        records = []
        for event in self.events:
            if isinstance(event, PlayedEvent) and event.play.seat in self.state.user_seats:
                records.append(UserPlayRecord(len(records), event.play.seat, event.class_id))
        return tuple(records)

    # ─── Transitions ──────────────────────────────────────────────────────────

    def play(self, play: Play) -> StepResult:
        """Apply a user move; illegal moves leave the history untouched."""
        result = apply(self.state, play)
        if result.state is self.state:
            for event in result.events:
                if isinstance(event, IllegalEvent):
                    logger.debug(f"Rejected {play}: {event.reason}")
            return result
        self._states.append(result.state)
        self._events.append(result.events)
        return result

    def undo(self) -> bool:
        """Return to the state before the last user move.

        Decisions and user plays recorded after that point are discarded.
        Returns False when there is nothing to undo.
        """
        if len(self._states) <= 1:
            return False
        self._states.pop()
        self._events.pop()
        return True

    def play_out(self, strategy: UserStrategy) -> bool:
        """Play user seats with `strategy` until the hand ends or stalls.

        Returns:
            True if the hand completed with the goal met.
        """
        while not self.is_complete:
            if self.state.phase is not Phase.AWAIT_USER:
                logger.warning(f"{self.problem.id}: play stalled with {self.state.turn} to move")
                break
            play = strategy(self.state)
            if play is None:
                break
            before = self.state
            if self.play(play).state is before:
                logger.warning(f"{self.problem.id}: strategy produced illegal play {play}")
                break
        return self.success

    def transcript(self) -> Transcript | None:
        """Record of this run, or None unless it ended with the goal met."""
        if not (self.is_complete and self.success):
            return None
        return Transcript(
            problem_id=self.problem.id,
            seed=self.seed,
            decisions=self.decisions,
            user_plays=self.user_plays,
        )
