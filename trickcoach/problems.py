"""
Problem and transcript I/O.

Problems are plain JSON-compatible dicts:

    {
      "id": "p001",
      "strain": "NT",                    # or "contract": {"strain": "NT"}
      "leader": "S",
      "userSeats": ["N", "S"],           # or "userControls"
      "goal": {"side": "NS", "minTricks": 3},
      "hands": {"N": "A8.8..", ...},     # dotted S.H.D.C or {"S": ["A", "8"], ...}
      "policies": {"E": "threatAware"},  # or {"E": {"kind": "threatAware"}}
      "threatCards": ["H8", "S8"],       # optional, or "threatCardIds"
      "preferredDiscards": {"W": "DA"},  # optional, single id or list
      "seed": 101                        # or "rngSeed"
    }

Transcripts round-trip through transcript_to_dict / transcript_from_dict;
policy classes are stored in their string form ('idle', 'busy:S').
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from trickcoach.engine.cards import SEATS
from trickcoach.engine.deal import hand_to_str, make_hands
from trickcoach.engine.errors import SetupError
from trickcoach.engine.game_state import Problem
from trickcoach.engine.rules import Goal
from trickcoach.policy.autoplay import PolicyKind
from trickcoach.policy.decisions import (
    DecisionFingerprint,
    DecisionRecord,
    PolicyClass,
    Transcript,
    UserPlayRecord,
)


def _first(raw: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in raw:
            return raw[key]
    return default


def _policy_kind(seat: str, value: Any) -> PolicyKind:
    kind = value.get('kind') if isinstance(value, Mapping) else value
    try:
        return PolicyKind(kind)
    except ValueError as exc:
        raise SetupError(f"Unknown policy {kind!r} for seat {seat}") from exc


# ─── Problems ─────────────────────────────────────────────────────────────────

def problem_from_dict(raw: Mapping[str, Any]) -> Problem:
    """Build a Problem from its dict form.

    Raises:
        SetupError: On missing required fields, an unknown policy kind, or
            field values of the wrong type (seed, goal, hands, preferred
            discards). Deal-level checks happen later in init().
    """
    try:
        problem_id = str(raw['id'])
        leader = raw['leader']
        goal_raw = raw['goal']
        hands_raw = raw['hands']
    except KeyError as exc:
        raise SetupError(f"Problem is missing field {exc.args[0]!r}") from exc

    strain = _first(raw, 'strain')
    if strain is None and isinstance(raw.get('contract'), Mapping):
        strain = raw['contract'].get('strain')
    if strain is None:
        raise SetupError(f"Problem {problem_id} has no strain")

    if not isinstance(goal_raw, Mapping):
        raise SetupError(f"Problem {problem_id} goal must be an object")
    min_tricks = _first(goal_raw, 'minTricks', 'n')
    if min_tricks is None or 'side' not in goal_raw:
        raise SetupError(f"Problem {problem_id} goal needs side and minTricks")

    preferred: dict[str, tuple[str, ...]] = {}
    try:
        for seat, cards in (raw.get('preferredDiscards') or {}).items():
            preferred[seat] = (cards,) if isinstance(cards, str) else tuple(cards)

        return Problem(
            id=problem_id,
            strain=str(strain).upper(),
            leader=leader,
            user_seats=tuple(_first(raw, 'userSeats', 'userControls', default=())),
            goal=Goal(side=goal_raw['side'], min_tricks=int(min_tricks)),
            hands=make_hands(hands_raw),
            policies={seat: _policy_kind(seat, v) for seat, v in (raw.get('policies') or {}).items()},
            threat_cards=tuple(_first(raw, 'threatCards', 'threatCardIds', default=())),
            preferred_discards=preferred,
            seed=int(_first(raw, 'seed', 'rngSeed', default=0)),
        )
    except SetupError:
        raise
    except (ValueError, TypeError, AttributeError) as exc:
        raise SetupError(f"Problem {problem_id} has a malformed field: {exc}") from exc


def problem_to_dict(problem: Problem) -> dict[str, Any]:
    """Canonical dict form of a Problem (dotted hands, string policies)."""
    out: dict[str, Any] = {
        'id': problem.id,
        'strain': problem.strain,
        'leader': problem.leader,
        'userSeats': list(problem.user_seats),
        'goal': {'side': problem.goal.side, 'minTricks': problem.goal.min_tricks},
        'hands': {seat: hand_to_str(problem.hands[seat]) for seat in SEATS},
        'policies': {seat: kind.value for seat, kind in problem.policies.items()},
        'seed': problem.seed,
    }
    if problem.threat_cards:
        out['threatCards'] = list(problem.threat_cards)
    if problem.preferred_discards:
        out['preferredDiscards'] = {s: list(c) for s, c in problem.preferred_discards.items()}
    return out


def load_problem(path: str | Path) -> Problem:
    """Read a problem from a JSON file.

    Raises:
        SetupError: If the file is not valid JSON or not a valid problem.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as exc:
        raise SetupError(f"{path}: invalid JSON ({exc.msg} at line {exc.lineno})") from exc
    if not isinstance(raw, Mapping):
        raise SetupError(f"{path}: expected a JSON object")
    return problem_from_dict(raw)


# ─── Transcripts ──────────────────────────────────────────────────────────────

def _record_to_dict(record: DecisionRecord) -> dict[str, Any]:
    fp = record.fingerprint
    return {
        'index': record.index,
        'seat': record.seat,
        'fingerprint': {
            'seat': fp.seat,
            'ledSuit': fp.led_suit,
            'strain': fp.strain,
            'legalClasses': list(fp.legal_classes),
            'trick': [list(pair) for pair in fp.trick],
        },
        'chosenCard': record.chosen_card,
        'chosenClassId': record.chosen_class_id,
        'policyClass': str(record.policy_class),
        'bucket': record.bucket,
        'bucketCards': list(record.bucket_cards),
        'offered': [str(c) for c in record.offered],
        'representatives': {str(c): card for c, card in record.representatives.items()},
    }


def _record_from_dict(raw: Mapping[str, Any]) -> DecisionRecord:
    fp = raw['fingerprint']
    return DecisionRecord(
        index=int(raw['index']),
        seat=raw['seat'],
        fingerprint=DecisionFingerprint(
            seat=fp['seat'],
            led_suit=fp['ledSuit'],
            strain=fp['strain'],
            legal_classes=tuple(fp['legalClasses']),
            trick=tuple((seat, class_id) for seat, class_id in fp['trick']),
        ),
        chosen_card=raw['chosenCard'],
        chosen_class_id=raw['chosenClassId'],
        policy_class=PolicyClass.parse(raw['policyClass']),
        bucket=raw['bucket'],
        bucket_cards=tuple(raw['bucketCards']),
        offered=tuple(PolicyClass.parse(c) for c in raw['offered']),
        representatives={PolicyClass.parse(c): card for c, card in raw['representatives'].items()},
    )


def transcript_to_dict(transcript: Transcript) -> dict[str, Any]:
    return {
        'problemId': transcript.problem_id,
        'seed': transcript.seed,
        'decisions': [_record_to_dict(r) for r in transcript.decisions],
        'userPlays': [
            {'index': u.index, 'seat': u.seat, 'classId': u.class_id}
            for u in transcript.user_plays
        ],
    }


def transcript_from_dict(raw: Mapping[str, Any]) -> Transcript:
    """Rebuild a Transcript; raises ValueError on malformed input."""
    try:
        return Transcript(
            problem_id=raw['problemId'],
            seed=int(raw['seed']),
            decisions=tuple(_record_from_dict(r) for r in raw.get('decisions', ())),
            user_plays=tuple(
                UserPlayRecord(int(u['index']), u['seat'], u['classId'])
                for u in raw.get('userPlays', ())
            ),
        )
    except (KeyError, TypeError) as exc:
        raise ValueError(f"Malformed transcript: {exc}") from exc
