"""
Unit tests for the SM-2 memory model.

Covers grading, ease bounds, interval graduation, failure reset and the
record_attempt orchestration (counters, streaks, persistence).
"""

from datetime import date, timedelta

import pytest

from quantdrill.delivery.memory import MemoryModel, grade_response, update_sm2

QUALITIES = (0, 1, 3, 4, 5)


class TestGradeResponse:
    @pytest.mark.parametrize(
        "response_ms, expected",
        [
            (500, 5),
            (2500, 5),  # ratio exactly 0.25
            (2501, 4),
            (5000, 4),  # ratio exactly 0.50
            (5001, 3),
            (9999, 3),
            (15000, 3),
        ],
    )
    def test_correct_answer_graded_by_speed(self, response_ms, expected):
        assert grade_response(True, response_ms, 10000, False) == expected

    def test_grade_is_non_increasing_in_ratio(self):
        grades = [grade_response(True, ms, 10000, False) for ms in range(0, 12001, 250)]
        assert all(later <= earlier for earlier, later in zip(grades, grades[1:]))

    @pytest.mark.parametrize("response_ms", [0, 1000, 5000, 20000])
    def test_wrong_answer_is_always_one(self, response_ms):
        assert grade_response(False, response_ms, 10000, False) == 1

    @pytest.mark.parametrize("is_correct", [True, False])
    @pytest.mark.parametrize("response_ms", [100, 10000])
    def test_timeout_is_always_zero(self, is_correct, response_ms):
        assert grade_response(is_correct, response_ms, 10000, True) == 0


class TestUpdateSM2:
    @pytest.mark.parametrize("quality", QUALITIES)
    @pytest.mark.parametrize("start_ease", [1.3, 1.5, 2.0, 2.5, 2.9, 3.0])
    def test_ease_stays_within_bounds(self, make_record, quality, start_ease):
        record = make_record(ease_factor=start_ease, repetitions=2, interval=5)
        update_sm2(record, quality, date(2024, 1, 1))
        assert 1.3 <= record.ease_factor <= 3.0

    def test_first_pass_graduates_to_one_day(self, make_record):
        record = make_record(repetitions=0)
        update_sm2(record, 4, date(2024, 1, 1))
        assert record.interval == 1
        assert record.repetitions == 1
        assert record.next_review_date == date(2024, 1, 2)

    def test_second_pass_graduates_to_three_days(self, make_record):
        record = make_record(repetitions=1, interval=1)
        update_sm2(record, 3, date(2024, 1, 1))
        assert record.interval == 3
        assert record.repetitions == 2

    def test_later_pass_multiplies_by_ease(self, make_record):
        record = make_record(repetitions=2, interval=3, ease_factor=2.5)
        update_sm2(record, 4, date(2024, 1, 1))
        # 3 * 2.5 = 7.5 rounds half up
        assert record.interval == 8
        assert record.repetitions == 3

    @pytest.mark.parametrize("quality", [0, 1])
    def test_failure_resets_repetitions_and_interval(self, make_record, quality):
        record = make_record(repetitions=5, interval=40, ease_factor=2.8)
        update_sm2(record, quality, date(2024, 3, 1))
        assert record.repetitions == 0
        assert record.interval == 0
        assert record.next_review_date == date(2024, 3, 1)

    def test_quality_four_leaves_ease_unchanged(self, make_record):
        record = make_record(ease_factor=2.2)
        update_sm2(record, 4, date(2024, 1, 1))
        assert record.ease_factor == pytest.approx(2.2)

    def test_timeout_drops_ease_by_point_eight(self, make_record):
        record = make_record(ease_factor=2.5)
        update_sm2(record, 0, date(2024, 1, 1))
        assert record.ease_factor == pytest.approx(1.7)

    def test_returns_same_record(self, make_record):
        record = make_record()
        assert update_sm2(record, 5, date(2024, 1, 1)) is record


class RecordingStore:
    """Collects save_record calls."""

    def __init__(self):
        self.saved = []

    def save_record(self, key, record):
        self.saved.append((key, record))


class TestRecordAttempt:
    def test_fast_correct_answer_on_graduated_record(self, make_record, clock):
        store = RecordingStore()
        model = MemoryModel(store, clock)
        record = make_record(repetitions=2, interval=10, ease_factor=2.5)

        result = model.record_attempt(record, True, 1000, 10000)

        assert result.quality == 5
        assert record.repetitions == 3
        assert record.interval == 25
        assert record.ease_factor > 2.5
        assert record.next_review_date == clock.today() + timedelta(days=25)

    def test_counters_and_streaks(self, make_record, clock):
        model = MemoryModel(RecordingStore(), clock)
        record = make_record()

        model.record_attempt(record, True, 2000, 10000)
        model.record_attempt(record, True, 3000, 10000)
        model.record_attempt(record, False, 4000, 10000)

        assert record.total_attempts == 3
        assert record.total_correct == 2
        assert record.total_time_ms == 9000
        assert record.streak == 0
        assert record.best_streak == 2
        assert record.last_response_time_ms == 4000
        assert record.last_attempt_date == clock.now()

    def test_persists_record_once_per_attempt(self, make_record, clock):
        store = RecordingStore()
        model = MemoryModel(store, clock)
        record = make_record()

        model.record_attempt(record, True, 2000, 10000)

        assert store.saved == [(record.key, record)]

    def test_timeout_counts_as_failure(self, make_record, clock):
        model = MemoryModel(RecordingStore(), clock)
        record = make_record(repetitions=3, interval=12)

        result = model.record_attempt(record, False, 10000, 10000, timed_out=True)

        assert result.quality == 0
        assert record.interval == 0
        assert record.total_correct == 0
