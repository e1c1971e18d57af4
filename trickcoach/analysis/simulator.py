"""
Multi-seed simulator for puzzle difficulty estimates.

Plays one problem once per seed with a fixed user strategy against the
configured defender policies and summarises how often the goal is met.

    success_rate  fraction of seeds whose run met the goal
    ci_95_*       normal-approximation 95% interval on success_rate
    tricks        tricks won by the goal side, one entry per seed
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

import numpy as np
from loguru import logger

from trickcoach.analysis.session import PlaySession, UserStrategy, representative_user_play
from trickcoach.engine.game_state import Problem
from trickcoach.policy.decisions import BusyBranching

# ─── Result type ──────────────────────────────────────────────────────────────


@dataclass
class SimulationResult:
    """Aggregate statistics over a batch of seeds.

    Attributes:
        problem_id:   Problem that was simulated.
        n_runs:       Number of seeds played.
        n_success:    Runs that met the goal.
        success_rate: n_success / n_runs.
        ci_95_low:    Lower bound of the 95% interval on success_rate (clipped to 0).
        ci_95_high:   Upper bound of the 95% interval on success_rate (clipped to 1).
        mean_tricks:  Mean tricks won by the goal side.
        tricks:       Per-seed tricks won by the goal side (int64).
        seeds:        Seeds played, in order (int64).
    """

    problem_id: str
    n_runs: int
    n_success: int
    success_rate: float
    ci_95_low: float
    ci_95_high: float
    mean_tricks: float
    tricks: np.ndarray
    seeds: np.ndarray

    def trick_distribution(self) -> dict[int, int]:
        """Map tricks won -> number of seeds."""
        values, counts = np.unique(self.tricks, return_counts=True)
        return {int(v): int(c) for v, c in zip(values, counts)}

    def __str__(self) -> str:
        return (
            f"{self.problem_id} | runs: {self.n_runs:,} | "
            f"success: {self.success_rate * 100:.1f}% "
            f"(95% CI: [{self.ci_95_low * 100:.1f}%, {self.ci_95_high * 100:.1f}%]) | "
            f"mean tricks: {self.mean_tricks:.2f}"
        )


# ─── Simulation ───────────────────────────────────────────────────────────────


def simulate_seeds(
    problem: Problem,
    seeds: Iterable[int],
    user_strategy: UserStrategy = representative_user_play,
    busy_branching: BusyBranching | str | None = None,
) -> SimulationResult:
    """Play `problem` once per seed and summarise the outcomes.

    Args:
        problem:        The puzzle definition.
        seeds:          RNG seeds to play, one run each.
        user_strategy:  Player for the learner's seats.
        busy_branching: Passed through to each run.

    Raises:
        ValueError: If `seeds` is empty.
    """
    seed_list = [int(s) for s in seeds]
    if not seed_list:
        raise ValueError("At least one seed is required")

    side = problem.goal.side
    outcomes = np.zeros(len(seed_list), dtype=np.float64)
    tricks = np.zeros(len(seed_list), dtype=np.int64)

    for i, seed in enumerate(seed_list):
        session = PlaySession(problem, seed=seed, busy_branching=busy_branching)
        outcomes[i] = 1.0 if session.play_out(user_strategy) else 0.0
        tricks[i] = session.state.tricks_won[side]

    n_runs = len(seed_list)
    rate = float(np.mean(outcomes))
    margin = 1.96 * math.sqrt(rate * (1.0 - rate) / n_runs)
    result = SimulationResult(
        problem_id=problem.id,
        n_runs=n_runs,
        n_success=int(outcomes.sum()),
        success_rate=rate,
        ci_95_low=max(0.0, rate - margin),
        ci_95_high=min(1.0, rate + margin),
        mean_tricks=float(np.mean(tricks)),
        tricks=tricks,
        seeds=np.array(seed_list, dtype=np.int64),
    )
    logger.info(str(result))
    return result


def simulate(
    problem: Problem,
    n_runs: int = 100,
    first_seed: int | None = None,
    user_strategy: UserStrategy = representative_user_play,
    busy_branching: BusyBranching | str | None = None,
) -> SimulationResult:
    """Simulate `n_runs` consecutive seeds starting at `first_seed`.

    The problem's own seed is the default starting point.
    """
    start = problem.seed if first_seed is None else first_seed
    return simulate_seeds(problem, range(start, start + n_runs), user_strategy, busy_branching)
