"""
Problem Selection Pipeline.

Picks the next problem for a session turn:

1. Enabled operations from the practice settings (none -> None)
2. Candidates: pool records with persisted state substituted
   (empty -> random problem for a random enabled operation)
3. Phase filter (warmup: easy/unseen, challenge: struggling)
4. Priority scoring
5. Interleaving: forbid a third consecutive operation, halve the last one
6. Operation balancing toward an even mix
7. Top 10 by score
8. Weighted random pick (weight = max(1, score))

Mistake drills reuse steps 4, 5, 7 and 8 over the weakest problems.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import TYPE_CHECKING

from loguru import logger

from quantdrill.core.modes import SessionPhase
from quantdrill.core.operations import Operation

from .clock import Clock, SystemClock
from .pool import ProblemPool, generate_random_problem
from .priority import calculate_priority
from .records import Attempt, Problem, ProblemRecord, ScoredCandidate

if TYPE_CHECKING:
    from .state_store import StateStore

# Phase filters
WARMUP_MIN_EASE = 2.3
WARMUP_MIN_CANDIDATES = 5
CHALLENGE_MAX_EASE = 2.0
CHALLENGE_MAX_ACCURACY = 0.7
CHALLENGE_MIN_CANDIDATES = 3

# Interleaving / balancing
SAME_OPERATION_PENALTY = 0.5
BALANCE_MIN_ATTEMPTS = 4
UNDERREPRESENTED_RATIO = 0.7
OVERREPRESENTED_RATIO = 1.3
UNDERREPRESENTED_BOOST = 1.5
OVERREPRESENTED_PENALTY = 0.6

# Top-K
SELECTION_TOP_K = 10
DRILL_TOP_K = 8

# Drill pool
DRILL_MIN_ATTEMPTS = 2
DRILL_MAX_ACCURACY = 0.7
DRILL_MAX_EASE = 1.8


def apply_interleaving(
    scored: list[ScoredCandidate],
    session_attempts: Sequence[Attempt],
) -> list[ScoredCandidate]:
    """
    Discourage runs of the same operation.

    Two consecutive attempts of one operation exclude that operation
    entirely (unless nothing else is left); otherwise candidates sharing the
    last attempt's operation have their score halved.

    Args:
        scored: Scored candidates (not modified)
        session_attempts: Attempts so far this session, oldest first

    Returns:
        New list of scored candidates
    """
    if not session_attempts:
        return list(scored)

    last_two = session_attempts[-2:]
    if len(last_two) == 2 and last_two[0].operation == last_two[1].operation:
        blocked = last_two[0].operation
        filtered = [s for s in scored if s.record.operation != blocked]
        return filtered if filtered else list(scored)

    last_op = session_attempts[-1].operation
    return [
        s.scaled(SAME_OPERATION_PENALTY) if s.record.operation == last_op else s
        for s in scored
    ]


def balance_operations(
    scored: list[ScoredCandidate],
    session_attempts: Sequence[Attempt],
    enabled_ops: Sequence[str | Operation],
) -> list[ScoredCandidate]:
    """
    Nudge the session's operation mix toward uniform.

    Only applied once the session has BALANCE_MIN_ATTEMPTS attempts.
    Operations below 0.7x their even share get a 1.5x boost, operations
    above 1.3x get a 0.6x penalty. Nothing is excluded.
    """
    if len(session_attempts) < BALANCE_MIN_ATTEMPTS or not enabled_ops:
        return list(scored)

    counts = {Operation(op).value: 0 for op in enabled_ops}
    for attempt in session_attempts:
        if attempt.operation in counts:
            counts[attempt.operation] += 1

    total = len(session_attempts)
    expected = 1 / len(counts)

    balanced = []
    for s in scored:
        actual = counts.get(s.record.operation, 0) / total
        if actual < expected * UNDERREPRESENTED_RATIO:
            balanced.append(s.scaled(UNDERREPRESENTED_BOOST))
        elif actual > expected * OVERREPRESENTED_RATIO:
            balanced.append(s.scaled(OVERREPRESENTED_PENALTY))
        else:
            balanced.append(s)
    return balanced


def weighted_random(items: Sequence[ScoredCandidate], rng: random.Random) -> ScoredCandidate:
    """
    Pick one item with probability proportional to max(1, score).

    The draw is a linear scan in list order, so the caller's sort order
    is preserved.
    """
    total_weight = sum(max(1.0, item.score) for item in items)
    r = rng.random() * total_weight
    for item in items:
        r -= max(1.0, item.score)
        if r <= 0:
            return item
    return items[-1]


def filter_by_phase(
    candidates: list[ProblemRecord],
    phase: SessionPhase | str | None,
) -> list[ProblemRecord]:
    """
    Restrict candidates according to the session phase.

    Falls back to the full list when the filtered subset would be too small.
    """
    if phase == SessionPhase.WARMUP:
        easy = [r for r in candidates if r.ease_factor >= WARMUP_MIN_EASE or r.total_attempts == 0]
        if len(easy) >= WARMUP_MIN_CANDIDATES:
            return easy
    elif phase == SessionPhase.CHALLENGE:
        hard = [
            r
            for r in candidates
            if r.total_attempts > 0
            and (r.ease_factor < CHALLENGE_MAX_EASE or r.accuracy < CHALLENGE_MAX_ACCURACY)
        ]
        if len(hard) >= CHALLENGE_MIN_CANDIDATES:
            return hard
    return candidates


class ProblemSelector:
    """
    Chooses the next problem for practice and drill sessions.

    Reads from the injected pool and store; never mutates records.
    """

    def __init__(
        self,
        store: StateStore,
        pool: ProblemPool,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ):
        """
        Initialize the selector.

        Args:
            store: Persistence collaborator (records and settings)
            pool: Candidate pool for normal practice
            clock: Clock for due-date comparisons
            rng: Random source for weighted picks and fallback generation
        """
        self.store = store
        self.pool = pool
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()

    def _score(
        self,
        records: Sequence[ProblemRecord],
        session_attempts: Sequence[Attempt],
    ) -> list[ScoredCandidate]:
        today = self.clock.today()
        total = len(session_attempts)
        return [
            ScoredCandidate(record=r, score=calculate_priority(r, session_attempts, total, today))
            for r in records
        ]

    def select_next_problem(
        self,
        session_attempts: Sequence[Attempt],
        phase: SessionPhase | str = SessionPhase.CORE,
    ) -> Problem | None:
        """
        Select the next practice problem.

        Args:
            session_attempts: Attempts so far this session, oldest first
            phase: Current session phase

        Returns:
            Problem snapshot, or None if no operation is enabled
        """
        settings = self.store.get_settings()
        enabled_ops = [op.value for op in settings.enabled_operations()]
        if not enabled_ops:
            logger.warning("No operations enabled - nothing to select")
            return None

        persisted = self.store.get_all_records()
        candidates = [
            persisted.get(r.key, r) for r in self.pool if r.operation in enabled_ops
        ]

        if not candidates:
            op = self.rng.choice(enabled_ops)
            logger.debug(f"Candidate pool empty, generating random {op} problem")
            return generate_random_problem(op, settings, self.rng)

        candidates = filter_by_phase(candidates, phase)

        scored = self._score(candidates, session_attempts)
        scored = apply_interleaving(scored, session_attempts)
        scored = balance_operations(scored, session_attempts, enabled_ops)

        scored.sort(key=lambda s: s.score, reverse=True)
        top = scored[:SELECTION_TOP_K]
        selected = weighted_random(top, self.rng)

        logger.debug(
            f"Selected {selected.record.key} (score {selected.score:.1f}) "
            f"from {len(scored)} candidates, phase={getattr(phase, 'value', phase)}"
        )
        return selected.record.to_problem()

    def get_drill_problems(self) -> list[ProblemRecord]:
        """
        Weak problems for a mistake drill, worst accuracy first.

        A problem qualifies with at least two attempts and either accuracy
        below 70% or ease below 1.8.
        """
        enabled_ops = [op.value for op in self.store.get_settings().enabled_operations()]

        drill = [
            r
            for r in self.store.get_all_records().values()
            if r.operation in enabled_ops
            and r.total_attempts >= DRILL_MIN_ATTEMPTS
            and (r.accuracy < DRILL_MAX_ACCURACY or r.ease_factor < DRILL_MAX_EASE)
        ]
        drill.sort(key=lambda r: r.accuracy)
        return drill

    def select_drill_problem(
        self,
        drill_pool: Sequence[ProblemRecord],
        session_attempts: Sequence[Attempt],
    ) -> Problem | None:
        """
        Select the next drill problem.

        Skips phase filtering and operation balancing.

        Returns:
            Problem snapshot, or None if the drill pool is empty
        """
        if not drill_pool:
            return None

        scored = self._score(drill_pool, session_attempts)
        scored = apply_interleaving(scored, session_attempts)
        scored.sort(key=lambda s: s.score, reverse=True)
        top = scored[:DRILL_TOP_K]
        return weighted_random(top, self.rng).record.to_problem()
