"""Tests for trickcoach/policy/decisions.py — policy classes and decision records."""

from __future__ import annotations

import pytest

from trickcoach.policy.decisions import (
    BusyBranching,
    DecisionFingerprint,
    DecisionRecord,
    PolicyClass,
    PolicyClassKind,
    card_matches_class,
    exploration_cards,
    offered_classes,
    policy_class_for,
)
from trickcoach.policy.discard import TIER_ORDER, DiscardTiers
from trickcoach.policy.threats import classify
from tests.conftest import hands

IDLE = PolicyClass.idle()
BUSY_S = PolicyClass.busy('S')
BUSY_H = PolicyClass.busy('H')


def busy_tiers() -> DiscardTiers:
    fields = {name: () for name in ('legal',) + TIER_ORDER}
    fields.update(
        legal=('SK', 'S3', 'HQ', 'H4'),
        tier2a=('S3',),
        tier2b=('SK', 'S3'),
        tier3a=('H4',),
        tier3b=('HQ', 'H4'),
        tier4=('SK', 'S3', 'HQ', 'H4'),
    )
    return DiscardTiers(**fields)


class TestPolicyClass:
    def test_str(self):
        assert str(IDLE) == 'idle'
        assert str(BUSY_S) == 'busy:S'
        assert str(PolicyClass.other('D')) == 'other:D'

    @pytest.mark.parametrize('text', ['idle', 'busy:S', 'other:C'])
    def test_parse_inverts_str(self, text):
        assert str(PolicyClass.parse(text)) == text

    @pytest.mark.parametrize('text', ['', 'busy', 'busy:', 'spare:S'])
    def test_parse_rejects_unknown(self, text):
        with pytest.raises(ValueError, match='Unknown policy class'):
            PolicyClass.parse(text)

    def test_structural_equality(self):
        assert PolicyClass.busy('S') == BUSY_S
        assert PolicyClass.busy('S') != PolicyClass.other('S')
        assert len({IDLE, PolicyClass.idle(), BUSY_S}) == 2

    def test_is_idle(self):
        assert IDLE.is_idle
        assert IDLE.kind is PolicyClassKind.IDLE
        assert not BUSY_S.is_idle


class TestPolicyClassFor:
    @pytest.mark.parametrize('bucket', ['tier1a', 'tier1b', 'tier1c'])
    def test_idle_tiers(self, bucket):
        assert policy_class_for('SK', bucket, 'W', None) == IDLE

    @pytest.mark.parametrize('bucket', ['tier2a', 'tier2b', 'tier3a', 'tier3b'])
    def test_busy_tiers(self, bucket):
        assert policy_class_for('HQ', bucket, 'W', None) == BUSY_H

    def test_tier4(self):
        assert policy_class_for('D4', 'tier4', 'W', None) == PolicyClass.other('D')

    def test_other_buckets_use_labels(self):
        c = classify(hands(N='A8...', E='KQ3.2..'), ['S8'])
        assert policy_class_for('SK', 'follow:above', 'E', c) == BUSY_S
        assert policy_class_for('S3', 'follow:below', 'E', c) == IDLE
        assert policy_class_for('H2', 'legal', 'E', c) == IDLE

    def test_unlabelled_card_is_other(self):
        c = classify(hands(N='A8...', E='KQ...'), ['S8'])
        assert policy_class_for('SA', 'legal', 'N', c) == PolicyClass.other('S')

    def test_card_matches_class(self):
        c = classify(hands(N='A8...', E='KQ3.2..'), ['S8'])
        assert card_matches_class('SQ', BUSY_S, 'E', c)
        assert card_matches_class('H2', IDLE, 'E', c)
        assert card_matches_class('S3', PolicyClass.other('S'), 'E', c)
        assert not card_matches_class('S3', BUSY_S, 'E', c)


class TestExplorationCards:
    def test_strict_keeps_bucket(self):
        cards = exploration_cards('tier2a', ('S3',), busy_tiers(), BusyBranching.STRICT)
        assert cards == ('S3',)

    def test_same_level_widens_within_stop_level(self):
        cards = exploration_cards('tier2a', ('S3',), busy_tiers(), BusyBranching.SAME_LEVEL)
        assert cards == ('S3', 'SK')

    def test_same_level_single_stop(self):
        cards = exploration_cards('tier3a', ('H4',), busy_tiers(), BusyBranching.SAME_LEVEL)
        assert cards == ('H4', 'HQ')

    def test_all_merges_every_busy_bucket(self):
        cards = exploration_cards('tier3a', ('H4',), busy_tiers(), BusyBranching.ALL)
        assert cards == ('S3', 'SK', 'H4', 'HQ')

    def test_non_busy_bucket_untouched(self):
        cards = exploration_cards('tier1a', ('C2',), busy_tiers(), BusyBranching.ALL)
        assert cards == ('C2',)

    def test_without_tiers(self):
        assert exploration_cards('tier2a', ('S3',), None, BusyBranching.ALL) == ('S3',)

    def test_branching_values(self):
        assert BusyBranching('sameLevel') is BusyBranching.SAME_LEVEL


class TestOfferedClasses:
    def test_one_representative_per_class(self):
        order, reps = offered_classes(('SK', 'S3', 'HQ', 'H4'), 'tier3b', 'W', None, 'S3')
        assert order == (BUSY_S, BUSY_H)
        assert reps == {BUSY_S: 'S3', BUSY_H: 'HQ'}

    def test_chosen_class_added_when_missing(self):
        order, reps = offered_classes(('SK',), 'tier2b', 'W', None, 'HQ')
        assert order == (BUSY_S, BUSY_H)
        assert reps[BUSY_H] == 'HQ'


class TestDecisionRecord:
    def test_alternatives_and_non_idle(self):
        fingerprint = DecisionFingerprint('W', 'C', 'NT', ('W:H:Q-Q', 'W:S:K-K'), (('S', 'S:C:2-2'),))
        record = DecisionRecord(
            index=0,
            seat='W',
            fingerprint=fingerprint,
            chosen_card='SK',
            chosen_class_id='W:S:K-K',
            policy_class=BUSY_S,
            bucket='tier3b',
            bucket_cards=('SK', 'HQ', 'D2'),
            offered=(BUSY_S, BUSY_H, IDLE),
            representatives={BUSY_S: 'SK', BUSY_H: 'HQ', IDLE: 'D2'},
        )
        assert record.alternatives == (BUSY_H, IDLE)
        assert record.non_idle_offered == (BUSY_S, BUSY_H)
