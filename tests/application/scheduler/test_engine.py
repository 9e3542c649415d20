"""Tests for the scheduler engine: session lifecycle and weighted selection."""

import random
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from smartcards.application.scheduler.engine import SchedulerEngine
from smartcards.application.scheduler.weights import WeightPolicy
from smartcards.domain.cards.models import SessionPhase
from smartcards.domain.errors import EmptyPoolError, NoActiveCardError, NotActiveError


class TestLifecycle:
    def test_starts_idle(self, engine):
        assert engine.phase is SessionPhase.IDLE
        assert engine.current_card is None
        assert engine.mastery_progress == 0
        assert engine.session_accuracy == 0

    def test_start_session_selects_a_card(self, engine, make_card):
        first = engine.start_session([make_card("a"), make_card("b")])
        assert engine.phase is SessionPhase.ACTIVE
        assert first is not None
        assert first.id in {"a", "b"}
        assert engine.current_card_id == first.id

    def test_start_session_empty_pool(self, engine):
        with pytest.raises(EmptyPoolError):
            engine.start_session([])
        assert engine.phase is SessionPhase.IDLE

    def test_start_session_duplicate_ids(self, engine, make_card):
        with pytest.raises(ValueError):
            engine.start_session([make_card("a"), make_card("a")])

    def test_start_session_resets_counters(self, engine, make_card):
        engine.start_session([make_card("a"), make_card("b")])
        engine.record_answer(True)
        engine.start_session([make_card("a"), make_card("b")])
        assert engine.session_total == 0
        assert engine.session_correct == 0

    def test_engine_owns_its_pool(self, engine, make_card, now):
        cards = [make_card("a"), make_card("b")]
        engine.start_session(cards)

        cards[0].stats.record_outcome(True, now)
        assert all(card.stats.total_attempts == 0 for card in engine.pool)

        snapshot = engine.current_card
        snapshot.stats.record_outcome(False, now)
        assert engine.current_card.stats.total_attempts == 0

    def test_record_answer_while_idle(self, engine):
        with pytest.raises(NoActiveCardError):
            engine.record_answer(True)

    def test_no_active_card_is_a_not_active_error(self, engine):
        with pytest.raises(NotActiveError):
            engine.record_answer(False)

    def test_end_session_then_answer_fails(self, engine, make_card):
        engine.start_session([make_card("a"), make_card("b")])
        engine.end_session()
        assert engine.phase is SessionPhase.FINISHED

        with pytest.raises(NotActiveError):
            engine.record_answer(True)

    def test_end_session_keeps_state_for_reporting(self, engine, make_card):
        engine.start_session([make_card("a"), make_card("b")])
        engine.record_answer(True)
        engine.record_answer(False)
        current = engine.current_card_id

        engine.end_session()

        assert engine.current_card_id == current
        assert engine.session_total == 2
        assert engine.session_accuracy == 0.5

    def test_end_session_requires_active(self, engine, make_card):
        with pytest.raises(NotActiveError):
            engine.end_session()

        engine.start_session([make_card("a")])
        engine.end_session()
        with pytest.raises(NotActiveError):
            engine.end_session()

    def test_new_session_after_finish(self, engine, make_card):
        engine.start_session([make_card("a")])
        engine.end_session()
        engine.start_session([make_card("b")])
        assert engine.phase is SessionPhase.ACTIVE
        assert engine.record_answer(True).previous_card_id == "b"


class TestRecordAnswer:
    def test_updates_stats_and_counters(self, engine, make_card, now):
        engine.start_session([make_card("a"), make_card("b")])
        answered = engine.current_card_id

        outcome = engine.record_answer(True)

        assert outcome.previous_card_id == answered
        assert outcome.was_correct is True
        assert outcome.stats.correct_count == 1
        assert outcome.stats.streak == 1
        assert outcome.stats.last_reviewed == now
        assert engine.session_correct == 1
        assert engine.session_total == 1

    def test_incorrect_answer(self, engine, make_card):
        engine.start_session([make_card("a"), make_card("b")])
        outcome = engine.record_answer(False)
        assert outcome.stats.incorrect_count == 1
        assert outcome.stats.streak == -1
        assert engine.session_correct == 0
        assert engine.session_total == 1

    def test_correct_after_losing_run_starts_fresh_run(self, engine, make_card):
        engine.start_session([make_card("a", incorrect=2, streak=-2)])
        outcome = engine.record_answer(True)
        assert outcome.stats.streak == 1

    def test_explicit_timestamp(self, engine, make_card, now):
        engine.start_session([make_card("a"), make_card("b")])
        later = now + timedelta(minutes=5)
        outcome = engine.record_answer(True, now=later)
        assert outcome.stats.last_reviewed == later

    def test_never_repeats_when_alternatives_exist(self, engine, make_card):
        engine.start_session([make_card(cid) for cid in "abc"])
        for i in range(300):
            outcome = engine.record_answer(i % 3 == 0)
            assert outcome.next_card is not None
            assert outcome.next_card.id != outcome.previous_card_id
            assert outcome.next_card.id == engine.current_card_id

    def test_two_card_pool_alternates(self, engine, make_card):
        engine.start_session([make_card("a"), make_card("b")])
        seen = [engine.current_card_id]
        for _ in range(10):
            seen.append(engine.record_answer(True).next_card.id)
        assert all(x != y for x, y in zip(seen, seen[1:]))

    def test_single_card_pool_repeats(self, engine, make_card):
        engine.start_session([make_card("only")])
        for _ in range(5):
            outcome = engine.record_answer(True)
            assert outcome.next_card.id == "only"
        assert engine.pool[0].stats.correct_count == 5

    def test_pool_never_shrinks(self, engine, make_card):
        engine.start_session([make_card(cid) for cid in "abcd"])
        for _ in range(20):
            engine.record_answer(False)
        assert len(engine.pool) == 4

    def test_submit_answer_grades_text(self, engine, make_card):
        engine.start_session([make_card("a", answer="Paris")])
        assert engine.submit_answer("  paris \n").was_correct is True
        assert engine.submit_answer("Lyon").was_correct is False
        assert engine.session_total == 2

    def test_submit_answer_after_end(self, engine, make_card):
        engine.start_session([make_card("a")])
        engine.end_session()
        with pytest.raises(NotActiveError):
            engine.submit_answer("x")


class TestSelection:
    def test_unseen_card_strongly_favored(self, make_card, now):
        engine = SchedulerEngine(seed=42, clock=lambda: now)
        fresh = make_card("A")
        # B was answered correctly five times in a row, two minutes ago
        known = make_card("B", correct=5, streak=5, minutes_ago=2)
        engine.start_session([fresh, known])

        picks = Counter(engine.select_next().id for _ in range(1000))
        assert picks["A"] >= 900

    def test_unseen_card_share_against_untimed_history(self, make_card, now):
        engine = SchedulerEngine(seed=42, clock=lambda: now)
        engine.start_session([make_card("A"), make_card("B", correct=5)])
        weights = {row.card_id: row.weight for row in engine.weights()}

        # 3.75 against 2.5 / 6: exactly nine in ten draws in expectation
        assert weights["A"] == pytest.approx(3.75)
        assert weights["B"] == pytest.approx(2.5 / 6)
        assert weights["A"] / sum(weights.values()) == pytest.approx(0.9)

    def test_frequencies_match_weights(self, make_card, now):
        engine = SchedulerEngine(seed=99, clock=lambda: now)
        cards = [
            make_card("new"),
            make_card("weak", incorrect=3, streak=-3, minutes_ago=10),
            make_card("ok", correct=3, incorrect=1, streak=2, minutes_ago=1),
        ]
        engine.start_session(cards)
        weights = {row.card_id: row.weight for row in engine.weights()}
        total = sum(weights.values())

        draws = 20000
        picks = Counter(engine.select_next().id for _ in range(draws))
        for card_id, weight in weights.items():
            assert picks[card_id] / draws == pytest.approx(weight / total, abs=0.02)

    def test_select_next_excludes_id(self, engine, make_card):
        engine.start_session([make_card(cid) for cid in "abc"])
        for _ in range(200):
            assert engine.select_next(exclude_id="a").id != "a"

    def test_select_next_falls_back_to_full_pool(self, engine, make_card):
        engine.start_session([make_card("a")])
        assert engine.select_next(exclude_id="a").id == "a"

    def test_select_next_requires_active(self, engine):
        with pytest.raises(NotActiveError):
            engine.select_next()

    def test_seeded_engines_agree(self, make_card, now):
        def run(seed):
            engine = SchedulerEngine(seed=seed, clock=lambda: now)
            engine.start_session([make_card(cid) for cid in "abcde"])
            return [engine.record_answer(i % 2 == 0).next_card.id for i in range(50)]

        assert run(5) == run(5)

    def test_injected_rng(self, make_card, now):
        first = SchedulerEngine(rng=random.Random(3), clock=lambda: now)
        second = SchedulerEngine(rng=random.Random(3), clock=lambda: now)
        pool = [make_card(cid) for cid in "abcdef"]
        assert first.start_session(pool).id == second.start_session(pool).id

    def test_list_order_breaks_ties(self, make_card, now):
        class ZeroDraw(random.Random):
            def random(self):
                return 0.0

        engine = SchedulerEngine(rng=ZeroDraw(), clock=lambda: now)
        engine.start_session([make_card("first"), make_card("second")])
        assert engine.current_card_id == "first"

    def test_degenerate_weights_fall_back_to_uniform(self, make_card, now):
        class ZeroPolicy(WeightPolicy):
            def weight(self, stats, now):
                return 0.0

        engine = SchedulerEngine(policy=ZeroPolicy(), seed=8, clock=lambda: now)
        engine.start_session([make_card(cid) for cid in "abc"])
        picks = Counter(engine.select_next().id for _ in range(600))
        assert set(picks) == {"a", "b", "c"}

    def test_recently_answered_card_is_suppressed(self, make_card, now):
        engine = SchedulerEngine(seed=11, clock=lambda: now)
        engine.start_session([make_card("a"), make_card("b"), make_card("c")])
        answered = engine.current_card_id
        engine.record_answer(True)

        weights = {row.card_id: row.weight for row in engine.weights()}
        others = [w for cid, w in weights.items() if cid != answered]
        assert all(weights[answered] < w for w in others)


class TestSkip:
    def test_skip_moves_without_recording(self, engine, make_card):
        engine.start_session([make_card("a"), make_card("b")])
        before = engine.current_card_id

        after = engine.skip()

        assert after.id != before
        assert engine.session_total == 0
        assert all(card.stats.total_attempts == 0 for card in engine.pool)

    def test_skip_requires_active(self, engine):
        with pytest.raises(NotActiveError):
            engine.skip()


class TestRestart:
    def test_restart_wipes_stats_and_counters(self, engine, make_card):
        engine.start_session([make_card("a", correct=3, streak=3, minutes_ago=30), make_card("b")])
        for i in range(6):
            engine.record_answer(i % 2 == 0)
        engine.end_session()

        first = engine.restart()

        assert engine.phase is SessionPhase.ACTIVE
        assert first is not None
        assert engine.session_total == 0
        assert engine.session_correct == 0
        assert engine.mastery_progress == 0
        assert engine.session_accuracy == 0
        for card in engine.pool:
            assert card.stats.total_attempts == 0
            assert card.stats.streak == 0
            assert card.stats.last_reviewed is None

    def test_restart_without_pool(self, engine):
        with pytest.raises(EmptyPoolError):
            engine.restart()


class TestMetrics:
    def test_mastery_progress_counts_history(self, engine, make_card):
        engine.start_session([make_card("a", correct=3, incorrect=1), make_card("b")])
        assert engine.mastery_progress == pytest.approx(0.75)

        engine.record_answer(False)
        assert engine.mastery_progress == pytest.approx(3 / 5)

    def test_session_accuracy(self, engine, make_card):
        engine.start_session([make_card("a"), make_card("b")])
        engine.record_answer(True)
        engine.record_answer(True)
        engine.record_answer(False)
        assert engine.session_accuracy == pytest.approx(2 / 3)


class TestAddCards:
    def test_add_cards_to_active_session(self, engine, make_card):
        engine.start_session([make_card("a")])
        added = engine.add_cards([make_card("b"), make_card("c")])
        assert [card.id for card in added] == ["b", "c"]
        assert [card.id for card in engine.pool] == ["a", "b", "c"]

    def test_add_cards_rejects_duplicates(self, engine, make_card):
        engine.start_session([make_card("a")])
        with pytest.raises(ValueError):
            engine.add_cards([make_card("a")])
        assert len(engine.pool) == 1

    def test_add_cards_while_idle_does_not_start(self, engine, make_card):
        engine.add_cards([make_card("a")])
        assert engine.phase is SessionPhase.IDLE
        assert engine.current_card is None
        engine.restart()
        assert engine.current_card_id == "a"


class TestTimestamps:
    def test_naive_last_reviewed_from_added_card(self, engine, make_card):
        engine.start_session([make_card("a")])
        naive = make_card("b")
        naive.stats.last_reviewed = datetime(2024, 5, 1, 11, 50)
        engine.add_cards([naive])

        outcome = engine.record_answer(True)

        assert outcome.next_card.id == "b"
        assert outcome.next_card.stats.last_reviewed.tzinfo is timezone.utc
        assert engine.session_total == 1

    def test_naive_now(self, engine, make_card):
        engine.start_session([make_card("a", minutes_ago=5), make_card("b", minutes_ago=3)])

        outcome = engine.record_answer(False, now=datetime(2024, 5, 1, 12, 1))

        assert outcome.stats.last_reviewed == datetime(2024, 5, 1, 12, 1, tzinfo=timezone.utc)
        assert len(engine.weights(now=datetime(2024, 5, 1, 12, 2))) == 2
