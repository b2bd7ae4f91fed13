"""
Unit tests for the practice session driver.

Sessions run against an in-memory store with a frozen clock, so phase
transitions and due dates are controlled by the test.
"""

from datetime import date

import pytest

from quantdrill.config import OperationRange
from quantdrill.core.modes import SessionPhase
from quantdrill.core.operations import Operation
from quantdrill.delivery.memory import MemoryModel
from quantdrill.delivery.pool import ProblemPool, build_pool
from quantdrill.delivery.selector import ProblemSelector
from quantdrill.delivery.session import PracticeSession


@pytest.fixture
def session_factory(store, clock, rng, mul_only_settings):
    mul_only_settings.operation_ranges[Operation.MUL] = OperationRange(min_a=2, max_a=6, min_b=2, max_b=6)
    store.save_settings(mul_only_settings)

    def _make(mode="sprint", drill=False):
        pool = build_pool(store.get_settings(), store.get_all_records(), rng)
        selector = ProblemSelector(store, pool, clock, rng)
        return PracticeSession(selector, MemoryModel(store, clock), store, mode=mode, drill=drill)

    return _make


def answer(session, correct=True, response_ms=2000, timed_out=False):
    problem = session.next_problem()
    given = problem.answer if correct else problem.answer + 1
    return problem, session.submit(problem, given, response_ms, timed_out=timed_out)


class TestPhases:
    def test_warmup_then_core_then_challenge(self, session_factory, clock):
        session = session_factory("sprint")
        assert session.phase == SessionPhase.WARMUP

        for _ in range(3):
            answer(session)
        assert session.update_phase() == SessionPhase.CORE

        clock.advance(seconds=95)
        assert session.update_phase() == SessionPhase.CORE

        clock.advance(seconds=2)
        assert session.update_phase() == SessionPhase.CHALLENGE

    def test_session_ends_after_duration(self, session_factory, clock):
        session = session_factory("sprint")
        clock.advance(seconds=119)
        assert not session.is_over
        assert session.remaining_seconds == pytest.approx(1.0)

        clock.advance(seconds=1)
        assert session.is_over

    def test_unknown_mode_rejected(self, session_factory):
        with pytest.raises(KeyError):
            session_factory("marathon")


class TestSubmit:
    def test_correct_answer_builds_streak_and_xp(self, session_factory, store):
        session = session_factory()

        _, first = answer(session, response_ms=2000)
        _, second = answer(session, response_ms=2000)

        assert first.is_correct and first.quality == 5
        assert first.xp_earned == 10
        assert second.streak == 2
        assert second.xp_earned == 12
        assert first.hint is None
        assert store.get_total_xp() == 22

    def test_wrong_answer_resets_streak_and_gives_hint(self, session_factory):
        session = session_factory()
        answer(session)

        problem, feedback = answer(session, correct=False)

        assert not feedback.is_correct
        assert feedback.streak == 0
        assert feedback.xp_earned == 0
        assert feedback.correct_answer == problem.answer
        assert feedback.hint

    def test_timeout_overrides_correct_answer(self, session_factory, store):
        session = session_factory()

        problem, feedback = answer(session, correct=True, response_ms=12000, timed_out=True)

        assert not feedback.is_correct
        assert feedback.quality == 0
        record = store.get_record(problem.key)
        assert record.total_time_ms == 10000
        assert record.interval == 0

    def test_attempt_logged_and_record_saved(self, session_factory, store, clock):
        session = session_factory()

        problem, _ = answer(session)

        log = store.get_attempt_log()
        assert len(log) == 1
        assert log[0].problem_key == problem.key
        assert log[0].phase == "warmup"
        assert log[0].session_id == session.session_id
        assert store.get_record(problem.key).next_review_date == date(2024, 1, 2)

    def test_level_up_reported(self, session_factory, store):
        store.add_xp(45)
        session = session_factory()

        _, feedback = answer(session)

        assert feedback.leveled_up
        assert feedback.new_level == 2

    def test_fastest_correct_personal_best(self, session_factory):
        session = session_factory()

        _, first = answer(session, response_ms=3000)
        _, slower = answer(session, response_ms=4000)
        _, faster = answer(session, response_ms=1500)

        assert first.personal_best
        assert not slower.personal_best
        assert faster.personal_best


class TestSummary:
    def test_finish_persists_summary(self, session_factory, store, clock):
        session = session_factory()
        answer(session)
        wrong_problem, _ = answer(session, correct=False)
        answer(session)
        clock.advance(seconds=60)

        summary = session.finish()

        assert summary.total_problems == 3
        assert summary.total_correct == 2
        assert summary.accuracy == pytest.approx(2 / 3)
        assert summary.duration_seconds == 60
        assert summary.weakest_problems == [wrong_problem.key]
        assert summary.operation_breakdown["mul"].count == 3

        history = store.get_session_history()
        assert len(history) == 1
        assert history[0].id == session.session_id
        assert store.get_personal_bests().most_problems_in_session == 3


class TestNextProblem:
    def test_empty_pool_still_serves_enabled_operation(self, store, clock, rng, mul_only_settings):
        store.save_settings(mul_only_settings)
        selector = ProblemSelector(store, ProblemPool(), clock, rng)
        session = PracticeSession(selector, MemoryModel(store, clock), store)

        problem = session.next_problem()

        assert problem.operation == Operation.MUL
        assert problem.answer == problem.a * problem.b

    def test_no_enabled_operations_yields_nothing(self, store, clock, rng, mul_only_settings):
        mul_only_settings.range_for(Operation.MUL).enabled = False
        store.save_settings(mul_only_settings)
        selector = ProblemSelector(store, ProblemPool(), clock, rng)
        session = PracticeSession(selector, MemoryModel(store, clock), store)

        assert session.next_problem() is None


class TestDrillSession:
    def test_empty_drill_pool_yields_nothing(self, session_factory):
        session = session_factory(drill=True)

        assert session.phase == SessionPhase.DRILL
        assert session.drill_pool == []
        assert session.next_problem() is None

    def test_drill_serves_weak_problems(self, session_factory, store, make_record):
        weak = make_record("mul", 6, 7, total_attempts=4, total_correct=1)
        store.save_record(weak.key, weak)

        session = session_factory(drill=True)

        assert session.mode.duration_seconds == 300
        assert session.next_problem().key == "mul:6x7"

    def test_drill_pool_chosen_by_caller(self, store, clock, rng, make_record):
        weak = make_record("mul", 6, 7, total_attempts=4, total_correct=1)
        store.save_record(weak.key, weak)
        selector = ProblemSelector(store, ProblemPool(), clock, rng)

        session = PracticeSession(
            selector, MemoryModel(store, clock), store, drill=True, drill_pool=[weak]
        )

        assert session.drill_pool == [weak]
        assert session.next_problem().key == "mul:6x7"
