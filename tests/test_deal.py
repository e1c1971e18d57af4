"""Tests for trickcoach/engine/deal.py — hand construction and deal integrity."""

from __future__ import annotations

import numpy as np
import pytest

from trickcoach.engine.cards import RANKS, SUITS, card_id
from trickcoach.engine.deal import (
    all_empty,
    deck_mask,
    empty_hand,
    hand_cards,
    hand_size,
    hand_to_str,
    holders_of,
    holds,
    make_hand,
    make_hands,
    remove_card,
    validate_deal,
)
from trickcoach.engine.errors import SetupError
from tests.conftest import hands


class TestMakeHand:
    def test_dotted_string(self):
        hand = make_hand('A8.8..')
        assert hand == {'S': ('A', '8'), 'H': ('8',), 'D': (), 'C': ()}

    def test_mapping_with_lists_is_sorted(self):
        hand = make_hand({'S': ['8', 'A'], 'D': ['10', '2']})
        assert hand['S'] == ('A', '8')
        assert hand['D'] == ('T', '2')
        assert hand['H'] == ()

    def test_dash_marks_void(self):
        assert make_hand('-.AK.-.-')['S'] == ()

    def test_lowercase_accepted(self):
        assert make_hand('kq...')['S'] == ('K', 'Q')

    def test_wrong_suit_count(self):
        with pytest.raises(SetupError, match='four suits'):
            make_hand('A8.8')

    def test_unknown_suit(self):
        with pytest.raises(SetupError, match='Unknown suit'):
            make_hand({'X': 'A'})

    def test_unknown_rank(self):
        with pytest.raises(SetupError, match='Unknown rank'):
            make_hand('A1...')

    def test_repeated_rank(self):
        with pytest.raises(SetupError, match='Repeated rank'):
            make_hand('AA...')


class TestMakeHands:
    def test_missing_seats_are_empty(self):
        deal = make_hands({'N': 'A...'})
        assert set(deal) == {'N', 'E', 'S', 'W'}
        assert deal['E'] == empty_hand()

    def test_unknown_seat(self):
        with pytest.raises(SetupError, match='Unknown seat'):
            make_hands({'X': 'A...'})


class TestQueries:
    def test_hand_cards_order(self):
        assert hand_cards(make_hand('A8.K..2')) == ['SA', 'S8', 'HK', 'C2']

    def test_hand_size(self):
        assert hand_size(make_hand('A8.K..2')) == 4
        assert hand_size(empty_hand()) == 0

    def test_holds(self):
        hand = make_hand('A8...')
        assert holds(hand, 'S8')
        assert not holds(hand, 'H8')

    def test_holders_of(self):
        deal = hands(N='A8...', W='K...')
        assert holders_of(deal, 'S8') == ['N']
        assert holders_of(deal, 'SQ') == []

    def test_all_empty(self):
        assert all_empty(make_hands({}))
        assert not all_empty(hands(S='...2'))

    def test_hand_to_str(self):
        assert hand_to_str(make_hand({'S': 'A8', 'H': '8'})) == 'A8.8..'


class TestRemoveCard:
    def test_returns_new_position(self):
        deal = hands(N='A8.8..')
        after = remove_card(deal, 'N', 'S8')
        assert after['N']['S'] == ('A',)
        assert deal['N']['S'] == ('A', '8')

    def test_untouched_hands_shared(self):
        deal = hands(N='A8...', E='K...')
        after = remove_card(deal, 'N', 'SA')
        assert after['E'] is deal['E']

    def test_card_not_held(self):
        with pytest.raises(ValueError, match='not in N hand'):
            remove_card(hands(N='A...'), 'N', 'SK')


class TestDeckMask:
    def test_mask_counts_held_cards(self):
        mask = deck_mask(hands(N='A8.8..', E='...A'))
        assert mask.dtype == np.int8
        assert int(mask.sum()) == 4

    def test_duplicate_card(self):
        with pytest.raises(SetupError, match='SA dealt more than once'):
            deck_mask(hands(N='A...', W='A...'))

    def test_partial_deal_allowed(self):
        assert int(validate_deal(hands(N='A...', E='K...')).sum()) == 2

    def test_require_full_rejects_gaps(self):
        with pytest.raises(SetupError, match='missing 50 cards'):
            validate_deal(hands(N='A...', E='K...'), require_full=True)

    def test_full_deal_accepted(self):
        cards = [card_id(s, r) for s in SUITS for r in RANKS]
        raw = {}
        for seat, chunk in zip('NESW', (cards[0:13], cards[13:26], cards[26:39], cards[39:52])):
            raw[seat] = {s: [c[1] for c in chunk if c[0] == s] for s in SUITS}
        assert int(validate_deal(make_hands(raw), require_full=True).sum()) == 52
