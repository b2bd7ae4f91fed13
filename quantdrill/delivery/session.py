"""
Practice Session Driver.

Owns one session's turn loop state:
- Current phase (warmup -> core -> challenge, or drill)
- Attempt history passed to the selector
- Streak, XP and per-session counters
- End-of-session summary

Phase transitions:
- warmup -> core once the mode's warmup count of problems is answered
- core -> challenge once 80% of the session duration has elapsed
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from quantdrill.core.hints import generate_hint
from quantdrill.core.modes import DRILL_MODE, SESSION_MODES, SessionMode, SessionPhase
from quantdrill.core.rewards import calculate_xp, get_level

from .memory import MemoryModel
from .records import Attempt, OperationBreakdown, Problem, ProblemRecord, SessionSummary
from .selector import ProblemSelector
from .state_store import StateStore

WEAKEST_PROBLEMS_IN_SUMMARY = 5


@dataclass
class AnswerFeedback:
    """What the presentation layer shows after an answer."""

    is_correct: bool
    quality: int
    correct_answer: int
    xp_earned: int
    streak: int
    hint: str | None = None
    leveled_up: bool = False
    new_level: int | None = None
    personal_best: bool = False


@dataclass
class SessionState:
    """Mutable counters for one session."""

    attempts: list[Attempt] = field(default_factory=list)
    streak: int = 0
    streak_peak: int = 0
    total_correct: int = 0
    xp_earned: int = 0


class PracticeSession:
    """
    Drives a single practice or drill session.

    Usage:
        session = PracticeSession(selector, memory, store, mode="sprint")
        while not session.is_over:
            problem = session.next_problem()
            if problem is None:
                break
            feedback = session.submit(problem, answer, response_ms)
        summary = session.finish()
    """

    def __init__(
        self,
        selector: ProblemSelector,
        memory: MemoryModel,
        store: StateStore,
        mode: str | SessionMode = "sprint",
        drill: bool = False,
        drill_pool: list[ProblemRecord] | None = None,
    ):
        """
        Initialize a session.

        Args:
            selector: Problem selector (shares the store, pool, clock and rng)
            memory: Memory model used to record attempts
            store: Persistence collaborator
            mode: Mode name from SESSION_MODES or a SessionMode
            drill: Run a mistake drill instead of normal practice
            drill_pool: Drill problems already chosen by the caller; queried
                from the selector when omitted
        """
        self.selector = selector
        self.memory = memory
        self.store = store
        self.clock = selector.clock
        self.is_drill = drill

        if drill:
            self.mode = DRILL_MODE
        elif isinstance(mode, SessionMode):
            self.mode = mode
        else:
            self.mode = SESSION_MODES[mode]

        self.phase = SessionPhase.DRILL if drill else SessionPhase.WARMUP
        self.state = SessionState()
        self.started_at = self.clock.now()
        self.session_id = store.start_session(self.mode.name, self.started_at)
        if not drill:
            drill_pool = []
        elif drill_pool is None:
            drill_pool = selector.get_drill_problems()
        self.drill_pool: list[ProblemRecord] = drill_pool

        logger.info(f"Session {self.session_id} started: mode={self.mode.name}")

    @property
    def attempts(self) -> list[Attempt]:
        return self.state.attempts

    @property
    def elapsed_seconds(self) -> float:
        return (self.clock.now() - self.started_at).total_seconds()

    @property
    def remaining_seconds(self) -> float:
        return max(0.0, self.mode.duration_seconds - self.elapsed_seconds)

    @property
    def is_over(self) -> bool:
        return self.elapsed_seconds >= self.mode.duration_seconds

    def update_phase(self) -> SessionPhase:
        """Advance the phase based on attempts and elapsed time."""
        if self.phase == SessionPhase.WARMUP:
            if len(self.state.attempts) >= self.mode.warmup_count:
                self.phase = SessionPhase.CORE
                logger.debug("Phase: warmup -> core")
        if self.phase == SessionPhase.CORE:
            if self.elapsed_seconds >= self.mode.duration_seconds * self.mode.challenge_after:
                self.phase = SessionPhase.CHALLENGE
                logger.debug("Phase: core -> challenge")
        return self.phase

    def next_problem(self) -> Problem | None:
        """
        Choose the problem for the next turn.

        Returns:
            Problem, or None when nothing can be presented (empty drill
            pool or no enabled operations)
        """
        if self.is_drill:
            return self.selector.select_drill_problem(self.drill_pool, self.state.attempts)

        phase = self.update_phase()
        return self.selector.select_next_problem(self.state.attempts, phase)

    def _load_record(self, problem: Problem) -> ProblemRecord:
        return (
            self.store.get_record(problem.key)
            or self.selector.pool.get(problem.key)
            or ProblemRecord.create(problem.operation, problem.a, problem.b, problem.answer)
        )

    def submit(
        self,
        problem: Problem,
        user_answer: int | None,
        response_time_ms: int,
        timed_out: bool = False,
    ) -> AnswerFeedback:
        """
        Grade an answer and update all state for the turn.

        Args:
            problem: The problem that was shown
            user_answer: Learner's answer (None on timeout)
            response_time_ms: Time taken to answer
            timed_out: Whether the per-problem timer expired

        Returns:
            AnswerFeedback for display
        """
        settings = self.store.get_settings()
        timer_limit_ms = settings.timer_limit_ms
        if timed_out:
            response_time_ms = timer_limit_ms
        is_correct = not timed_out and user_answer == problem.answer

        prev_level = get_level(self.store.get_total_xp())

        record = self._load_record(problem)
        result = self.memory.record_attempt(
            record, is_correct, response_time_ms, timer_limit_ms, timed_out
        )

        state = self.state
        xp = calculate_xp(is_correct, response_time_ms, timer_limit_ms, state.streak)
        total_xp = self.store.add_xp(xp) if xp > 0 else self.store.get_total_xp()
        state.xp_earned += xp

        personal_best = False
        if is_correct:
            state.streak += 1
            state.total_correct += 1
            state.streak_peak = max(state.streak_peak, state.streak)
            personal_best = self.store.update_fastest_correct(problem.key, response_time_ms)
        else:
            state.streak = 0

        attempt = Attempt(
            problem_key=problem.key,
            operation=problem.operation,
            is_correct=is_correct,
            response_time_ms=response_time_ms,
            operand_a=problem.a,
            operand_b=problem.b,
            correct_answer=problem.answer,
            user_answer=user_answer,
            timed_out=timed_out,
            phase=self.phase.value,
            session_id=self.session_id,
            timestamp=self.clock.now(),
        )
        state.attempts.append(attempt)
        self.store.log_attempt(attempt)

        new_level = get_level(total_xp)
        return AnswerFeedback(
            is_correct=is_correct,
            quality=result.quality,
            correct_answer=problem.answer,
            xp_earned=xp,
            streak=state.streak,
            hint=None if is_correct else generate_hint(problem.operation, problem.a, problem.b, problem.answer),
            leveled_up=new_level > prev_level,
            new_level=new_level if new_level > prev_level else None,
            personal_best=personal_best,
        )

    def build_summary(self, ended_at: datetime | None = None) -> SessionSummary:
        """Summarize the session so far."""
        attempts = self.state.attempts
        total = len(attempts)
        total_time = sum(a.response_time_ms for a in attempts)

        breakdown: dict[str, OperationBreakdown] = {}
        for a in attempts:
            entry = breakdown.setdefault(a.operation, OperationBreakdown())
            entry.count += 1
            entry.correct += int(a.is_correct)
            entry.total_time_ms += a.response_time_ms

        wrong_counts = Counter(a.problem_key for a in attempts if not a.is_correct)
        weakest = [key for key, _ in wrong_counts.most_common(WEAKEST_PROBLEMS_IN_SUMMARY)]

        return SessionSummary(
            id=self.session_id,
            mode=self.mode.name,
            started_at=self.started_at,
            ended_at=ended_at or self.clock.now(),
            total_problems=total,
            total_correct=self.state.total_correct,
            accuracy=self.state.total_correct / total if total else 0.0,
            avg_response_time_ms=total_time / total if total else 0.0,
            xp_earned=self.state.xp_earned,
            streak_peak=self.state.streak_peak,
            operation_breakdown=breakdown,
            weakest_problems=weakest,
        )

    def finish(self) -> SessionSummary:
        """Close the session and persist its summary."""
        summary = self.build_summary()
        self.store.end_session(summary)
        return summary
