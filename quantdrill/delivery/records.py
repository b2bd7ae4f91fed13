"""
Data classes shared by the scheduling engine.

- ProblemRecord: persistent SM-2 memory state for one canonical problem
- Attempt: one answered turn within a session
- Problem: immutable snapshot handed to the presentation layer
- ScoredCandidate: (record, score) pair used during a single selection
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime

from quantdrill.core.operations import SM2_DEFAULTS, Operation, canonicalize_problem_key


@dataclass(frozen=True)
class Problem:
    """A problem ready to be shown to the learner."""

    operation: str
    a: int
    b: int
    answer: int
    key: str


@dataclass
class ProblemRecord:
    """SM-2 memory state and lifetime counters for one problem."""

    key: str
    operation: str
    operand_a: int
    operand_b: int
    correct_answer: int

    ease_factor: float = SM2_DEFAULTS.ease_factor
    interval: int = 0  # Days until next review (0 = due now)
    repetitions: int = 0  # Consecutive passing grades
    next_review_date: date | None = None  # None = never scheduled

    total_attempts: int = 0
    total_correct: int = 0
    total_time_ms: int = 0
    last_attempt_date: datetime | None = None
    last_response_time_ms: int | None = None
    streak: int = 0
    best_streak: int = 0

    @classmethod
    def create(cls, operation: str, a: int, b: int, answer: int) -> ProblemRecord:
        """Fresh record with default ease and zero counters."""
        return cls(
            key=canonicalize_problem_key(operation, a, b),
            operation=Operation(operation).value,
            operand_a=a,
            operand_b=b,
            correct_answer=answer,
        )

    @property
    def accuracy(self) -> float | None:
        """Lifetime accuracy, or None if never attempted."""
        if self.total_attempts == 0:
            return None
        return self.total_correct / self.total_attempts

    @property
    def avg_response_ms(self) -> float | None:
        if self.total_attempts == 0:
            return None
        return self.total_time_ms / self.total_attempts

    def to_problem(self) -> Problem:
        return Problem(
            operation=self.operation,
            a=self.operand_a,
            b=self.operand_b,
            answer=self.correct_answer,
            key=self.key,
        )


@dataclass
class Attempt:
    """A single answered turn in a session."""

    problem_key: str
    operation: str
    is_correct: bool
    response_time_ms: int

    operand_a: int | None = None
    operand_b: int | None = None
    correct_answer: int | None = None
    user_answer: int | None = None
    timed_out: bool = False
    phase: str | None = None
    session_id: int | None = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ScoredCandidate:
    """A candidate record with its selection score."""

    record: ProblemRecord
    score: float

    def scaled(self, factor: float) -> ScoredCandidate:
        """Copy with the score multiplied by ``factor``."""
        return replace(self, score=self.score * factor)


@dataclass
class OperationBreakdown:
    """Per-operation totals within one session."""

    count: int = 0
    correct: int = 0
    total_time_ms: int = 0

    @property
    def avg_time_ms(self) -> float:
        return self.total_time_ms / self.count if self.count else 0.0


@dataclass
class SessionSummary:
    """End-of-session summary persisted to session history."""

    mode: str
    started_at: datetime
    ended_at: datetime
    total_problems: int = 0
    total_correct: int = 0
    accuracy: float = 0.0
    avg_response_time_ms: float = 0.0
    xp_earned: int = 0
    streak_peak: int = 0
    operation_breakdown: dict[str, OperationBreakdown] = field(default_factory=dict)
    weakest_problems: list[str] = field(default_factory=list)
    id: int | None = None

    @property
    def duration_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()


@dataclass
class FastestCorrect:
    key: str
    time_ms: int


@dataclass
class PersonalBests:
    """Lifetime records across sessions."""

    longest_streak: int = 0
    fastest_correct: FastestCorrect | None = None
    highest_session_accuracy: float = 0.0
    most_problems_in_session: int = 0
