"""
Shared pytest fixtures for trickcoach tests.

Provides hand builders and a handful of small endings:

    simple      2-card ending, every defender choice is a singleton bucket
    follow      2-card ending with a busy E below/above the threat rank
    branching   3-card ending where W's first discard offers busy:S / busy:H
    p001, p002  larger threat puzzles in the loose problem-file format
"""

from __future__ import annotations

import pytest

from trickcoach.engine.deal import Hands, make_hands
from trickcoach.engine.game_state import Problem
from trickcoach.engine.rules import Goal
from trickcoach.policy.autoplay import PolicyKind
from trickcoach.problems import problem_from_dict


def hands(**seats: str) -> Hands:
    """Build a position from dotted S.H.D.C strings.

    Examples:
        >>> hands(N='A8.8..')['N']['S']
        ('A', '8')
    """
    return make_hands(seats)


def make_problem(
    deal: Hands,
    leader: str = 'N',
    strain: str = 'NT',
    min_tricks: int = 1,
    user_seats: tuple[str, ...] = ('N', 'S'),
    policy: PolicyKind = PolicyKind.THREAT_AWARE,
    threat_cards: tuple[str, ...] = (),
    preferred: dict[str, tuple[str, ...]] | None = None,
    seed: int = 1,
    problem_id: str = 'test',
) -> Problem:
    """Problem with E/W played by `policy` and N/S controlled by the user."""
    return Problem(
        id=problem_id,
        strain=strain,
        leader=leader,
        user_seats=user_seats,
        goal=Goal('NS', min_tricks),
        hands=deal,
        policies={seat: policy for seat in ('N', 'E', 'S', 'W') if seat not in user_seats},
        threat_cards=threat_cards,
        preferred_discards=preferred or {},
        seed=seed,
    )


SIMPLE_DEAL = dict(N='8.A..', E='K...2', S='.2.2.', W='.3.3.')
FOLLOW_DEAL = dict(N='A8...', E='K7...', S='.A2..', W='..32.')
BRANCH_DEAL = dict(N='A8.8..', E='..AKQ.', S='...A32', W='KQ.K..')

P001 = {
    'id': 'p001',
    'contract': {'strain': 'NT'},
    'leader': 'S',
    'userControls': ['N', 'S'],
    'goal': {'type': 'minTricks', 'side': 'NS', 'n': 3},
    'hands': {
        'N': {'S': ['A', '8'], 'H': ['8'], 'D': [], 'C': []},
        'E': {'S': [], 'H': [], 'D': ['A', 'K', 'Q'], 'C': []},
        'S': {'S': ['5'], 'H': [], 'D': ['2'], 'C': ['A']},
        'W': {'S': ['K', 'J'], 'H': ['A'], 'D': [], 'C': []},
    },
    'policies': {'E': {'kind': 'threatAware'}, 'W': {'kind': 'threatAware'}},
    'rngSeed': 101,
    'threatCardIds': ['H8', 'S8'],
}

P002 = {
    'id': 'p002',
    'strain': 'C',
    'leader': 'S',
    'userSeats': ['N', 'S'],
    'goal': {'side': 'NS', 'minTricks': 7},
    'hands': {
        'N': 'AQ954.AK2..',
        'W': 'JT8.QT8.AQ.',
        'E': 'K76.J97.KJ.',
        'S': '.43.654.T98',
    },
    'policies': {'E': 'threatAware', 'W': 'threatAware'},
    'threatCards': ['S9', 'H2', 'D5'],
    'preferredDiscards': {'W': 'DA', 'E': 'H7'},
    'seed': 202,
}


@pytest.fixture
def simple() -> Problem:
    """N leads HA; E discards C2, W follows H3; then S8 loses to E's SK."""
    return make_problem(hands(**SIMPLE_DEAL), threat_cards=('S8',))


@pytest.fixture
def follow() -> Problem:
    return make_problem(hands(**FOLLOW_DEAL), threat_cards=('S8',))


@pytest.fixture
def branching() -> Problem:
    return make_problem(
        hands(**BRANCH_DEAL), leader='S', threat_cards=('S8', 'H8'), seed=7, problem_id='branching'
    )


@pytest.fixture
def p001() -> Problem:
    return problem_from_dict(P001)


@pytest.fixture
def p002() -> Problem:
    return problem_from_dict(P002)
