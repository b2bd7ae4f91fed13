"""
quantdrill delivery layer: the adaptive practice engine and its CLI.

Components:
- ProblemPool: Candidate problems built from practice settings
- MemoryModel: SM-2 grading and record updates
- ProblemSelector: Priority scoring, interleaving and balancing
- PracticeSession: Turn loop, phases, streaks and XP
- StateStore: SQLite persistence
- stats: Per-operation statistics and focus recommendation
"""

from .clock import Clock, FixedClock, SystemClock
from .memory import AttemptResult, MemoryModel, grade_response, update_sm2
from .pool import ProblemPool, build_pool, generate_random_problem
from .priority import calculate_priority
from .records import Attempt, Problem, ProblemRecord, ScoredCandidate, SessionSummary
from .selector import ProblemSelector
from .session import AnswerFeedback, PracticeSession
from .state_store import InvalidDataError, StateStore

__all__ = [
    # Time
    "Clock",
    "SystemClock",
    "FixedClock",
    # Records
    "Problem",
    "ProblemRecord",
    "Attempt",
    "ScoredCandidate",
    "SessionSummary",
    # Persistence
    "StateStore",
    "InvalidDataError",
    # Scheduling
    "MemoryModel",
    "AttemptResult",
    "grade_response",
    "update_sm2",
    "calculate_priority",
    "ProblemPool",
    "build_pool",
    "generate_random_problem",
    "ProblemSelector",
    # Sessions
    "PracticeSession",
    "AnswerFeedback",
]
