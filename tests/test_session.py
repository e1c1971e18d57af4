"""Tests for trickcoach/analysis/session.py — history, undo, transcripts, replay."""

from __future__ import annotations

from dataclasses import replace

from trickcoach.analysis.session import PlaySession, representative_user_play
from trickcoach.engine.cards import Play
from trickcoach.engine.game_state import AutoplayEvent, PlayedEvent, init
from trickcoach.engine.rules import Goal
from trickcoach.policy.decisions import PolicyClass, Transcript, UserPlayRecord


class TestRepresentativeUserPlay:
    def test_lowest_class_id(self, simple):
        # 'N:H:A-A' sorts before 'N:S:8-8'
        assert representative_user_play(init(simple)) == Play('N', 'H', 'A')

    def test_plays_lowest_member_of_class(self, branching):
        assert representative_user_play(init(branching)) == Play('S', 'C', '2')


class TestHistory:
    def test_starts_at_user_turn(self, simple):
        session = PlaySession(simple)
        assert session.state.turn == 'N'
        assert session.events == []
        assert not session.is_complete

    def test_seed_override(self, simple):
        assert PlaySession(simple, seed=7).seed == 7
        assert PlaySession(simple).seed == 1

    def test_play_extends_history(self, simple):
        session = PlaySession(simple)
        session.play(Play.of('N', 'HA'))
        assert session.state.turn == 'S'
        assert [e.type for e in session.events] == ['played', 'autoplay']
        assert len(session.decisions) == 1

    def test_undo(self, simple):
        session = PlaySession(simple)
        start = session.state
        session.play(Play.of('N', 'HA'))
        assert session.undo()
        assert session.state is start
        assert session.events == []
        assert session.decisions == ()
        assert session.user_plays == ()

    def test_undo_at_start(self, simple):
        assert not PlaySession(simple).undo()

    def test_illegal_play_not_recorded(self, simple):
        session = PlaySession(simple)
        before = session.state
        result = session.play(Play.of('N', 'SA'))
        assert result.events[0].type == 'illegal'
        assert session.state is before
        assert not session.undo()


class TestPlayOut:
    def test_completes_hand(self, simple):
        session = PlaySession(simple)
        assert session.play_out(representative_user_play)
        assert session.is_complete
        assert session.success
        assert session.state.tricks_won == {'NS': 1, 'EW': 1}

    def test_strategy_may_stop(self, simple):
        session = PlaySession(simple)
        assert not session.play_out(lambda state: None)
        assert not session.is_complete

    def test_illegal_strategy_stops(self, simple):
        session = PlaySession(simple)
        assert not session.play_out(lambda state: Play('N', 'C', 'A'))
        assert session.state.turn == 'N'

    def test_failed_goal(self, simple):
        session = PlaySession(replace(simple, goal=Goal('NS', 2)))
        assert not session.play_out(representative_user_play)
        assert session.is_complete
        assert session.transcript() is None


class TestTranscript:
    def test_none_until_complete(self, simple):
        session = PlaySession(simple)
        session.play(Play.of('N', 'HA'))
        assert session.transcript() is None

    def test_records(self, simple):
        session = PlaySession(simple)
        session.play_out(representative_user_play)
        transcript = session.transcript()
        assert transcript.problem_id == 'test'
        assert transcript.seed == 1
        assert [d.index for d in transcript.decisions] == [0, 1, 2, 3]
        assert [d.seat for d in transcript.decisions] == ['E', 'W', 'E', 'W']
        assert [d.chosen_card for d in transcript.decisions] == ['C2', 'H3', 'SK', 'D3']
        assert transcript.user_plays == (
            UserPlayRecord(0, 'N', 'N:H:A-A'),
            UserPlayRecord(1, 'S', 'S:H:2-2'),
            UserPlayRecord(2, 'N', 'N:S:8-8'),
            UserPlayRecord(3, 'S', 'S:D:2-2'),
        )

    def test_first_decision_record(self, simple):
        session = PlaySession(simple)
        session.play_out(representative_user_play)
        record = session.transcript().decisions[0]
        assert record.bucket == 'tier1a'
        assert record.policy_class == PolicyClass.idle()
        assert record.offered == (PolicyClass.idle(),)
        assert record.fingerprint.legal_classes == ('E:C:2-2', 'E:S:K-K')
        assert record.chosen_class_id == 'E:C:2-2'


class TestReplay:
    def test_replay_reproduces_decisions(self, p002):
        base = PlaySession(p002)
        base.play_out(representative_user_play)
        # forcing does not depend on the run having met its goal
        transcript = Transcript(p002.id, base.seed, base.decisions, base.user_plays)

        replay = PlaySession(p002, transcript=transcript)
        replay.play_out(representative_user_play)
        assert [d.chosen_card for d in replay.decisions] == [d.chosen_card for d in base.decisions]
        notes = [e.replay for e in replay.events if isinstance(e, AutoplayEvent)]
        assert all(note is not None and note.action == 'forced' for note in notes)

    def test_user_divergence_recorded(self, simple):
        base = PlaySession(simple)
        base.play_out(representative_user_play)

        replay = PlaySession(simple, transcript=base.transcript())
        replay.play(Play.of('N', 'S8'))
        assert replay.user_divergence_index == 0
        note = replay.events[0].replay
        assert isinstance(replay.events[0], PlayedEvent)
        assert note.action == 'disabled'
        assert note.reason == 'user-divergence'
        assert not replay.state.replay.active

    def test_following_user_keeps_forcing(self, simple):
        base = PlaySession(simple)
        base.play_out(representative_user_play)

        replay = PlaySession(simple, transcript=base.transcript())
        replay.play(Play.of('N', 'HA'))
        assert replay.user_divergence_index is None
        assert replay.state.replay.active
        assert replay.state.replay.cursor == 1

