"""
Learning statistics built from stored records and the attempt log.

- operation_stats: lifetime totals per operation plus a 7-day trend
- weakest_problems: problems ranked by a weakness score
- focus_recommendation: which enabled operation needs the most work
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

from quantdrill.core.operations import Operation

from .records import ProblemRecord
from .state_store import StateStore

Trend = Literal["improving", "declining", "stable"]

TREND_WINDOW = timedelta(days=7)
TREND_THRESHOLD = 0.05
UNDEREXPLORED_ATTEMPTS = 10


@dataclass
class OperationStats:
    operation: str
    total_attempts: int
    total_correct: int
    accuracy: float
    avg_time_ms: float
    trend: Trend


@dataclass
class FocusRecommendation:
    operation: str
    reason: str
    score: float


def operation_stats(
    store: StateStore,
    operation: str | Operation,
    now: datetime | None = None,
) -> OperationStats | None:
    """
    Aggregate stats for one operation.

    Trend compares accuracy over the last 7 days with the 7 days before;
    a change of more than 5 percentage points counts as improving/declining.

    Returns:
        OperationStats, or None if no records exist for the operation
    """
    op = Operation(operation).value
    now = now or datetime.now()
    records = [r for r in store.get_all_records().values() if r.operation == op]
    if not records:
        return None

    total_attempts = sum(r.total_attempts for r in records)
    total_correct = sum(r.total_correct for r in records)
    total_time = sum(r.total_time_ms for r in records)

    recent_correct = recent_total = prev_correct = prev_total = 0
    for attempt in store.get_attempt_log():
        if attempt.operation != op:
            continue
        age = now - attempt.timestamp
        if age < TREND_WINDOW:
            recent_total += 1
            recent_correct += int(attempt.is_correct)
        elif age < 2 * TREND_WINDOW:
            prev_total += 1
            prev_correct += int(attempt.is_correct)

    trend: Trend = "stable"
    if recent_total and prev_total:
        recent_acc = recent_correct / recent_total
        prev_acc = prev_correct / prev_total
        if recent_acc > prev_acc + TREND_THRESHOLD:
            trend = "improving"
        elif recent_acc < prev_acc - TREND_THRESHOLD:
            trend = "declining"

    return OperationStats(
        operation=op,
        total_attempts=total_attempts,
        total_correct=total_correct,
        accuracy=total_correct / total_attempts if total_attempts else 0.0,
        avg_time_ms=total_time / total_attempts if total_attempts else 0.0,
        trend=trend,
    )


def weakness_score(record: ProblemRecord) -> float:
    """(1 - accuracy) * 50 + average seconds * 10 + 20 if ease < 2."""
    accuracy = record.accuracy or 0.0
    avg_seconds = (record.avg_response_ms or 0.0) / 1000
    return (1 - accuracy) * 50 + avg_seconds * 10 + (20 if record.ease_factor < 2 else 0)


def weakest_problems(store: StateStore, limit: int = 5) -> list[ProblemRecord]:
    """Problems with at least two attempts, weakest first."""
    records = [r for r in store.get_all_records().values() if r.total_attempts >= 2]
    records.sort(key=weakness_score, reverse=True)
    return records[:limit]


def focus_recommendation(
    store: StateStore,
    now: datetime | None = None,
) -> FocusRecommendation | None:
    """
    Pick the enabled operation that most needs practice.

    Returns:
        FocusRecommendation, or None if no enabled operation has data
    """
    worst: OperationStats | None = None
    worst_score = -1.0

    for op in store.get_settings().enabled_operations():
        stats = operation_stats(store, op, now)
        if stats is None:
            continue

        if stats.total_attempts < UNDEREXPLORED_ATTEMPTS:
            score = 30.0
        else:
            score = (1 - stats.accuracy) * 50 + min(20.0, stats.avg_time_ms / 500)
        if stats.trend == "declining":
            score += 15

        if score > worst_score:
            worst, worst_score = stats, score

    if worst is None:
        return None

    if worst.total_attempts < UNDEREXPLORED_ATTEMPTS:
        reason = "Not enough practice yet"
    elif worst.accuracy < 0.7:
        reason = f"Only {round(worst.accuracy * 100)}% accuracy"
    elif worst.avg_time_ms > 5000:
        reason = f"Slow average: {worst.avg_time_ms / 1000:.1f}s"
    elif worst.trend == "declining":
        reason = "Declining performance"
    else:
        reason = "Needs more practice"

    return FocusRecommendation(operation=worst.operation, reason=reason, score=worst_score)
