"""
SM-2 Memory Model.

Grades a response and updates one problem's spaced-repetition state.

Quality scale (restricted SM-2):
0 - Timed out
1 - Incorrect
3 - Correct, slower than half the timer
4 - Correct within half the timer
5 - Correct within a quarter of the timer

Passing grades (>= 3) graduate the interval 1 -> 3 -> interval * ease days.
Any failing grade resets the problem to due-now.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING

from loguru import logger

from quantdrill.core.operations import SM2_DEFAULTS

from .clock import Clock, SystemClock
from .records import ProblemRecord

if TYPE_CHECKING:
    from .state_store import StateStore

PASSING_QUALITY = 3


def grade_response(
    is_correct: bool,
    response_time_ms: float,
    timer_limit_ms: float,
    timed_out: bool,
) -> int:
    """
    Convert a response outcome to an SM-2 quality grade.

    Args:
        is_correct: Whether the answer was correct
        response_time_ms: Time taken to respond
        timer_limit_ms: Per-problem time limit
        timed_out: Whether the timer expired (overrides correctness)

    Returns:
        Quality in {0, 1, 3, 4, 5}
    """
    if timed_out:
        return 0
    if not is_correct:
        return 1

    ratio = response_time_ms / timer_limit_ms
    if ratio <= 0.25:
        return 5
    if ratio <= 0.50:
        return 4
    return 3


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def update_sm2(record: ProblemRecord, quality: int, today: date | None = None) -> ProblemRecord:
    """
    Apply one SM-2 step to a record in place.

    Args:
        record: Record to update
        quality: Grade from grade_response
        today: Current local date (defaults to date.today())

    Returns:
        The same record
    """
    if quality >= PASSING_QUALITY:
        if record.repetitions == 0:
            record.interval = SM2_DEFAULTS.initial_interval
        elif record.repetitions == 1:
            record.interval = SM2_DEFAULTS.second_interval
        else:
            record.interval = _round_half_up(record.interval * record.ease_factor)
        record.repetitions += 1
    else:
        record.repetitions = 0
        record.interval = 0

    # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
    ef_delta = 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)
    record.ease_factor = max(
        SM2_DEFAULTS.min_ease,
        min(SM2_DEFAULTS.max_ease, record.ease_factor + ef_delta),
    )

    today = today or date.today()
    record.next_review_date = today + timedelta(days=record.interval)

    return record


@dataclass
class AttemptResult:
    """Outcome of recording an attempt."""

    quality: int
    record: ProblemRecord


class MemoryModel:
    """
    Applies graded attempts to problem records and persists them.

    The record is mutated in place; the store is asked to save it once
    per attempt.
    """

    def __init__(self, store: StateStore, clock: Clock | None = None):
        """
        Initialize the memory model.

        Args:
            store: Persistence collaborator receiving saved records
            clock: Clock for attempt timestamps and due dates
        """
        self.store = store
        self.clock = clock or SystemClock()

    def record_attempt(
        self,
        record: ProblemRecord,
        is_correct: bool,
        response_time_ms: int,
        timer_limit_ms: int,
        timed_out: bool = False,
    ) -> AttemptResult:
        """
        Record one answered turn for a problem.

        Args:
            record: The problem's record (mutated in place)
            is_correct: Whether the answer was correct
            response_time_ms: Time taken to answer
            timer_limit_ms: Per-problem time limit
            timed_out: Whether the timer expired

        Returns:
            AttemptResult with the quality grade and updated record
        """
        quality = grade_response(is_correct, response_time_ms, timer_limit_ms, timed_out)

        record.total_attempts += 1
        record.total_time_ms += response_time_ms
        record.last_attempt_date = self.clock.now()
        record.last_response_time_ms = response_time_ms

        if is_correct:
            record.total_correct += 1
            record.streak += 1
            record.best_streak = max(record.best_streak, record.streak)
        else:
            record.streak = 0

        update_sm2(record, quality, self.clock.today())
        self.store.save_record(record.key, record)

        logger.debug(
            f"Recorded attempt for {record.key}: quality={quality}, "
            f"next_review={record.next_review_date}, interval={record.interval}d, "
            f"ease={record.ease_factor:.2f}"
        )

        return AttemptResult(quality=quality, record=record)
