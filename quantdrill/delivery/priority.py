"""
Priority scoring for candidate problems.

Score = 50 + six independent, additive urgency signals:

1. Due-ness        never seen +20; due/overdue +min(30, 10 + 5 * days)
2. Accuracy        (1 - accuracy) * 40
3. Difficulty      (MAX_EASE - ease) * 10
4. Session misses  15 per wrong answer this session
5. Recency         -(5 - problems_since) * 20 within the last 5 problems
6. Slowness        +10 if average response > 7 s

The result is floored at zero. It is an ordinal heuristic, not a probability.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from quantdrill.core.operations import SM2_DEFAULTS

from .records import Attempt, ProblemRecord

BASE_SCORE = 50.0
NEVER_SEEN_BONUS = 20.0
DUE_BASE_BONUS = 10.0
OVERDUE_DAY_BONUS = 5.0
MAX_DUE_BONUS = 30.0
ACCURACY_WEIGHT = 40.0
EASE_WEIGHT = 10.0
SESSION_MISS_BONUS = 15.0
RECENCY_WINDOW = 5
RECENCY_PENALTY = 20.0
SLOW_RESPONSE_MS = 7000
SLOW_RESPONSE_BONUS = 10.0


def calculate_priority(
    record: ProblemRecord,
    session_attempts: Sequence[Attempt],
    total_session_problems: int,
    today: date | None = None,
) -> float:
    """
    Compute the urgency score of one problem.

    Args:
        record: The problem's memory state
        session_attempts: Attempts so far this session, oldest first
        total_session_problems: Number of problems presented this session
        today: Current local date (defaults to date.today())

    Returns:
        Non-negative score; higher means more urgent
    """
    score = BASE_SCORE
    today = today or date.today()

    # Factor 1: Due for review
    if record.next_review_date is None:
        score += NEVER_SEEN_BONUS
    elif today >= record.next_review_date:
        overdue_days = (today - record.next_review_date).days
        score += min(MAX_DUE_BONUS, DUE_BASE_BONUS + overdue_days * OVERDUE_DAY_BONUS)

    # Factor 2: Low accuracy
    accuracy = record.accuracy
    if accuracy is not None:
        score += (1 - accuracy) * ACCURACY_WEIGHT

    # Factor 3: Low ease (hard for this learner)
    score += (SM2_DEFAULTS.max_ease - record.ease_factor) * EASE_WEIGHT

    # Factor 4: Missed earlier this session
    session_wrong = sum(
        1 for a in session_attempts if a.problem_key == record.key and not a.is_correct
    )
    score += session_wrong * SESSION_MISS_BONUS

    # Factor 5: Seen too recently
    last_index = _last_index_of(record.key, session_attempts)
    if last_index is not None:
        problems_since = total_session_problems - last_index - 1
        if problems_since < RECENCY_WINDOW:
            score -= (RECENCY_WINDOW - problems_since) * RECENCY_PENALTY

    # Factor 6: Slow on average
    avg_ms = record.avg_response_ms
    if avg_ms is not None and avg_ms > SLOW_RESPONSE_MS:
        score += SLOW_RESPONSE_BONUS

    return max(0.0, score)


def _last_index_of(key: str, session_attempts: Sequence[Attempt]) -> int | None:
    for i in range(len(session_attempts) - 1, -1, -1):
        if session_attempts[i].problem_key == key:
            return i
    return None
