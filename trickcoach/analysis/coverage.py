"""
Replay coverage: re-explore alternative defensive lines of a solved deal.

After a successful run the system can replay the same seed while steering
one defender decision onto a class it has not tried yet:

    1. Every successful run marks its decisions in the coverage table: the
       policy classes offered at each decision index, the class actually
       played (tried), and a representative card per class.
    2. A decision is branchable when its record offers at least two distinct
       non-idle classes and the table still holds an untried non-idle class
       for its index. Idle alternatives never make a decision branchable.
    3. The next pass forces every recorded decision up to the latest
       branchable index, plays the representative of the first untried class
       there (classes in string order), and lets later decisions run free.
       The forced class is marked tried when the pass is planned.
    4. Only a successful pass replaces the seed transcript.
    5. Coverage is exhausted when no branchable decision remains.

A learner who leaves the recorded line cuts the search: only decision
indices strictly below the point of divergence stay candidates.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from trickcoach import config
from trickcoach.analysis.session import PlaySession, UserStrategy, representative_user_play
from trickcoach.engine.game_state import Problem
from trickcoach.policy.decisions import BusyBranching, DecisionRecord, PolicyClass, Transcript


# ─── Coverage table ───────────────────────────────────────────────────────────

@dataclass
class CoverageEntry:
    """What is known about one decision index across all successful runs."""
    index: int
    seen: list[PolicyClass] = field(default_factory=list)
    tried: set[PolicyClass] = field(default_factory=set)
    representatives: dict[PolicyClass, str] = field(default_factory=dict)

    def remaining(self) -> list[PolicyClass]:
        """Untried non-idle classes, in string order."""
        untried = [c for c in self.seen if c not in self.tried and not c.is_idle]
        return sorted(untried, key=str)


class CoverageTable:
    """Ordered per-decision-index coverage entries."""

    def __init__(self):
        self.entries: dict[int, CoverageEntry] = {}

    def entry(self, index: int) -> CoverageEntry:
        if index not in self.entries:
            self.entries[index] = CoverageEntry(index)
        return self.entries[index]

    def mark(self, record: DecisionRecord) -> None:
        """Fold one decision of a successful run into the table."""
        entry = self.entry(record.index)
        for cls in record.offered:
            if cls not in entry.seen:
                entry.seen.append(cls)
            if cls in record.representatives:
                entry.representatives.setdefault(cls, record.representatives[cls])
        if record.policy_class not in entry.seen:
            entry.seen.append(record.policy_class)
        entry.tried.add(record.policy_class)
        entry.representatives[record.policy_class] = record.chosen_card

    def mark_transcript(self, transcript: Transcript) -> None:
        for record in transcript.decisions:
            self.mark(record)

    def mark_tried(self, index: int, cls: PolicyClass) -> None:
        self.entry(index).tried.add(cls)

    def is_branchable(self, record: DecisionRecord) -> bool:
        non_idle = set(record.non_idle_offered)
        entry = self.entries.get(record.index)
        return len(non_idle) >= 2 and entry is not None and bool(entry.remaining())

    def candidates(self, transcript: Transcript, cutoff: int | None = None) -> list[DecisionRecord]:
        """Branchable records of `transcript`, in index order.

        Only indices strictly below `cutoff` are considered when it is set.
        """
        out = []
        for record in transcript.decisions:
            if cutoff is not None and record.index >= cutoff:
                continue
            if self.is_branchable(record):
                out.append(record)
        return out

    def exhausted(self, transcript: Transcript, cutoff: int | None = None) -> bool:
        return not self.candidates(transcript, cutoff)


@dataclass(frozen=True)
class ReplayPlan:
    """How the next pass departs from the seed transcript."""
    transcript: Transcript
    divergence_index: int
    forced_class: PolicyClass
    forced_card: str


def plan_next_pass(
    table: CoverageTable,
    transcript: Transcript,
    cutoff: int | None = None,
) -> ReplayPlan | None:
    """Plan the next replay pass, or return None when coverage is exhausted.

    The latest branchable decision is found by a linear scan; its first
    untried class is marked tried before the plan is returned.
    """
    candidates = table.candidates(transcript, cutoff)
    if not candidates:
        return None
    record = candidates[-1]
    entry = table.entries[record.index]
    forced_class = entry.remaining()[0]
    forced_card = entry.representatives.get(forced_class) or record.representatives.get(forced_class)
    table.mark_tried(record.index, forced_class)
    logger.debug(
        f"Planned pass: decision {record.index} ({record.seat}) forced to {forced_class} "
        f"with {forced_card}; candidates {[c.index for c in candidates]}"
    )
    return ReplayPlan(
        transcript=transcript,
        divergence_index=record.index,
        forced_class=forced_class,
        forced_card=forced_card,
    )


# ─── Exploration driver ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class PassResult:
    number: int
    plan: ReplayPlan | None
    success: bool
    tricks_won: dict[str, int]
    transcript: Transcript | None
    user_divergence_index: int | None = None


@dataclass
class ExplorationResult:
    problem_id: str
    seed: int
    passes: list[PassResult] = field(default_factory=list)
    exhausted: bool = False

    @property
    def successful_passes(self) -> int:
        return sum(1 for p in self.passes if p.success)

    def __str__(self) -> str:
        return (
            f"{self.problem_id} seed={self.seed} | passes: {len(self.passes)} | "
            f"successful: {self.successful_passes} | "
            f"{'exhausted' if self.exhausted else 'stopped early'}"
        )


class ReplayCoverage:
    """Drives a baseline run followed by coverage passes on one seed."""

    def __init__(
        self,
        problem: Problem,
        seed: int | None = None,
        busy_branching: BusyBranching | str | None = None,
    ):
        self.problem = problem
        self.seed = problem.seed if seed is None else seed
        self.busy_branching = busy_branching
        self.table = CoverageTable()
        self.transcript: Transcript | None = None
        self.cutoff: int | None = None

    def session(self, plan: ReplayPlan | None = None) -> PlaySession:
        """Start a run, forcing the seed transcript according to `plan`."""
        if plan is None:
            return PlaySession(self.problem, seed=self.seed, busy_branching=self.busy_branching)
        return PlaySession(
            self.problem,
            seed=self.seed,
            busy_branching=self.busy_branching,
            transcript=plan.transcript,
            divergence_index=plan.divergence_index,
            forced_card=plan.forced_card,
            forced_class=plan.forced_class,
        )

    def record(self, session: PlaySession) -> Transcript | None:
        """Fold a finished run into coverage; successful runs become the seed."""
        self.cutoff = session.user_divergence_index
        transcript = session.transcript()
        if transcript is None:
            return None
        self.table.mark_transcript(transcript)
        self.transcript = transcript
        return transcript

    def next_plan(self) -> ReplayPlan | None:
        if self.transcript is None:
            return None
        return plan_next_pass(self.table, self.transcript, self.cutoff)

    def explore(
        self,
        user_strategy: UserStrategy = representative_user_play,
        max_passes: int | None = None,
    ) -> ExplorationResult:
        """Run the baseline and then passes until coverage is exhausted.

        Args:
            user_strategy: Deterministic player for the learner's seats.
            max_passes: Upper bound on runs, baseline included; defaults to
                        the TRICKCOACH_MAX_PASSES setting.
        """
        limit = config.MAX_PASSES if max_passes is None else max_passes
        result = ExplorationResult(problem_id=self.problem.id, seed=self.seed)
        plan: ReplayPlan | None = None

        while len(result.passes) < limit:
            session = self.session(plan)
            success = session.play_out(user_strategy)
            transcript = self.record(session)
            result.passes.append(PassResult(
                number=len(result.passes) + 1,
                plan=plan,
                success=success,
                tricks_won=dict(session.state.tricks_won),
                transcript=transcript,
                user_divergence_index=session.user_divergence_index,
            ))
            logger.info(
                f"{self.problem.id} pass {len(result.passes)}: "
                f"{'success' if success else 'failure'} NS={session.state.tricks_won['NS']}"
            )
            plan = self.next_plan()
            if plan is None:
                result.exhausted = True
                break

        return result
