"""
Unit tests for priority scoring.
"""

from datetime import date, timedelta

import pytest

from quantdrill.delivery.priority import calculate_priority

TODAY = date(2024, 1, 1)


class TestDueness:
    def test_never_seen_outranks_mastered_not_yet_due(self, make_record):
        fresh = make_record("mul", 7, 8)
        mastered = make_record(
            "mul", 6, 7,
            total_attempts=10,
            total_correct=10,
            ease_factor=3.0,
            next_review_date=TODAY + timedelta(days=1),
        )

        fresh_score = calculate_priority(fresh, [], 0, TODAY)
        mastered_score = calculate_priority(mastered, [], 0, TODAY)

        assert fresh_score > mastered_score
        # base + never seen + (3.0 - 2.5) * 10
        assert fresh_score == pytest.approx(75.0)
        assert mastered_score == pytest.approx(50.0)

    def test_due_today_gets_ten(self, make_record):
        record = make_record(ease_factor=3.0, next_review_date=TODAY)
        assert calculate_priority(record, [], 0, TODAY) == pytest.approx(60.0)

    def test_overdue_bonus_is_capped_at_thirty(self, make_record):
        two_days = make_record(ease_factor=3.0, next_review_date=TODAY - timedelta(days=2))
        long_overdue = make_record(ease_factor=3.0, next_review_date=TODAY - timedelta(days=90))

        assert calculate_priority(two_days, [], 0, TODAY) == pytest.approx(70.0)
        assert calculate_priority(long_overdue, [], 0, TODAY) == pytest.approx(80.0)


class TestPerformanceSignals:
    def test_accuracy_deficit(self, make_record):
        record = make_record(
            ease_factor=3.0,
            total_attempts=4,
            total_correct=1,
            next_review_date=TODAY + timedelta(days=3),
        )
        # 50 + 0.75 * 40
        assert calculate_priority(record, [], 0, TODAY) == pytest.approx(80.0)

    def test_low_ease_raises_score(self, make_record):
        easy = make_record(ease_factor=2.8, next_review_date=TODAY + timedelta(days=3))
        hard = make_record(ease_factor=1.4, next_review_date=TODAY + timedelta(days=3))
        assert calculate_priority(hard, [], 0, TODAY) > calculate_priority(easy, [], 0, TODAY)

    def test_slow_average_adds_ten(self, make_record):
        base = dict(ease_factor=3.0, total_attempts=2, total_correct=2, next_review_date=TODAY + timedelta(days=3))
        quick = make_record(total_time_ms=6000, **base)
        slow = make_record(total_time_ms=16000, **base)
        assert calculate_priority(slow, [], 0, TODAY) - calculate_priority(quick, [], 0, TODAY) == pytest.approx(10.0)


class TestSessionSignals:
    def test_session_mistakes_add_fifteen_each(self, make_record, make_attempt):
        record = make_record(ease_factor=3.0, next_review_date=TODAY + timedelta(days=3))
        others = [make_attempt("add", key=f"add:1{i}x20") for i in range(6)]
        misses = [
            make_attempt("mul", key=record.key, is_correct=False),
            make_attempt("mul", key=record.key, is_correct=False),
        ]
        attempts = misses + others

        # Last seen 6 problems ago: no recency penalty
        assert calculate_priority(record, attempts, len(attempts), TODAY) == pytest.approx(80.0)

    def test_recency_penalty_decays(self, make_record, make_attempt):
        record = make_record(ease_factor=3.0, next_review_date=TODAY + timedelta(days=3))
        seen = make_attempt("mul", key=record.key)
        filler = [make_attempt("add", key=f"add:1{i}x20") for i in range(4)]

        just_now = calculate_priority(record, [seen], 1, TODAY)
        three_ago = [seen] + filler[:3]
        four_later = [seen] + filler

        assert just_now == 0.0  # 50 - 5 * 20 floored
        assert calculate_priority(record, three_ago, len(three_ago), TODAY) == pytest.approx(10.0)
        assert calculate_priority(record, four_later, len(four_later), TODAY) == pytest.approx(30.0)


class TestNonNegativity:
    @pytest.mark.parametrize("ease", [1.3, 2.0, 3.0])
    @pytest.mark.parametrize("since", [0, 1, 2, 3, 4, 5, 8])
    def test_never_negative(self, make_record, make_attempt, ease, since):
        record = make_record(
            ease_factor=ease,
            total_attempts=20,
            total_correct=20,
            next_review_date=TODAY + timedelta(days=30),
        )
        attempts = [make_attempt("mul", key=record.key)]
        attempts += [make_attempt("add", key=f"add:{i}x50") for i in range(since)]
        assert calculate_priority(record, attempts, len(attempts), TODAY) >= 0.0
