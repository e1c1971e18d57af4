"""Command-line entry point: play, explore or simulate one problem file."""

from __future__ import annotations

import argparse

from loguru import logger

from trickcoach.analysis.coverage import ReplayCoverage
from trickcoach.analysis.session import PlaySession, representative_user_play
from trickcoach.analysis.simulator import simulate
from trickcoach.config import configure_logging
from trickcoach.engine.errors import SetupError
from trickcoach.engine.game_state import AutoplayEvent, IllegalEvent, Problem, TrickCompleteEvent
from trickcoach.problems import load_problem


def run_once(problem: Problem, seed: int | None) -> bool:
    session = PlaySession(problem, seed=seed)
    success = session.play_out(representative_user_play)
    for event in session.events:
        if isinstance(event, TrickCompleteEvent):
            print(f"  {' '.join(str(p) for p in event.trick)}  -> {event.winner}")
        elif isinstance(event, AutoplayEvent) and event.bucket:
            print(f"    {event.play} [{event.bucket}]")
        elif isinstance(event, IllegalEvent):
            print(f"  ! {event.reason}")
    won = session.state.tricks_won
    print(f"{problem.id} seed={session.seed}: NS {won['NS']} EW {won['EW']} "
          f"({'success' if success else 'failure'})")
    return success


def _count(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative count, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="trickcoach", description="Play a trick-taking ending against threat-aware defenders")
    p.add_argument("problem", type=str, help="problem JSON file")
    p.add_argument("--seed", type=int, default=None, help="override the problem's RNG seed")
    p.add_argument("--explore", action="store_true", help="replay the seed until defender coverage is exhausted")
    p.add_argument("--simulate", type=_count, default=0, metavar="N", help="play N consecutive seeds and report success rate")
    p.add_argument("--max-passes", type=_count, default=None, help="upper bound on exploration passes")
    p.add_argument("--busy-branching", choices=["strict", "sameLevel", "all"], default=None,
                   help="alternative scope for busy discards")
    p.add_argument("--log-level", type=str, default=None, help="loguru level (DEBUG, INFO, WARNING, ...)")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        problem = load_problem(args.problem)
        if args.simulate:
            result = simulate(problem, n_runs=args.simulate, first_seed=args.seed,
                              busy_branching=args.busy_branching)
            print(result)
            for tricks, count in result.trick_distribution().items():
                print(f"  {tricks} tricks: {count}")
        elif args.explore:
            coverage = ReplayCoverage(problem, seed=args.seed, busy_branching=args.busy_branching)
            result = coverage.explore(max_passes=args.max_passes)
            for p in result.passes:
                forced = f" forced {p.plan.forced_class} at #{p.plan.divergence_index}" if p.plan else " baseline"
                print(f"  pass {p.number}:{forced} -> {'success' if p.success else 'failure'} NS={p.tricks_won['NS']}")
            print(result)
        else:
            return 0 if run_once(problem, args.seed) else 1
    except (SetupError, OSError) as exc:
        logger.error(str(exc))
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
