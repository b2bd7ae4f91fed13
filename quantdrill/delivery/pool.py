"""
Problem Pool assembly and on-the-fly generation.

The pool is the candidate set for normal practice. It is rebuilt from the
practice settings whenever they change:

- mul: every a in [min_a, max_a] with b in [a, max_b] (one per fact)
- div: every divisor x quotient combination (exact results only)
- add/sub: three random representatives per tens-bucket pair, since the
  full cross product of two-digit ranges is too large to schedule

Records that already exist in storage replace the fresh ones so the pool
carries real SM-2 state. Fresh records are not persisted until attempted.
"""

from __future__ import annotations

import random
from collections import Counter
from collections.abc import Iterator, Mapping

from loguru import logger

from quantdrill.config import OperationRange, PracticeSettings
from quantdrill.core.operations import Operation, canonicalize_problem_key

from .records import Problem, ProblemRecord

BUCKET_SIZE = 10
SAMPLES_PER_BUCKET = 3


class ProblemPool:
    """Ordered, explicitly-owned set of candidate problem records."""

    def __init__(self, records: list[ProblemRecord] | None = None):
        self._records: list[ProblemRecord] = []
        self._by_key: dict[str, ProblemRecord] = {}
        for record in records or []:
            self.add(record)

    def add(self, record: ProblemRecord) -> None:
        """Add a record; later duplicates of a key are ignored."""
        if record.key in self._by_key:
            return
        self._records.append(record)
        self._by_key[record.key] = record

    def get(self, key: str) -> ProblemRecord | None:
        return self._by_key.get(key)

    def keys(self) -> list[str]:
        return [r.key for r in self._records]

    def by_operation(self) -> dict[str, int]:
        """Count of pool problems per operation."""
        return dict(Counter(r.operation for r in self._records))

    def __iter__(self) -> Iterator[ProblemRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._by_key


def generate_range_problems(
    operation: Operation,
    op_range: OperationRange,
    rng: random.Random,
) -> list[tuple[int, int]]:
    """
    Sample representative operand pairs per tens bucket.

    Args:
        operation: add or sub
        op_range: Operand range for the operation
        rng: Random source

    Returns:
        List of (a, b) pairs; subtraction pairs always have a > b
    """
    problems: list[tuple[int, int]] = []

    for tens_a in range(op_range.min_a // BUCKET_SIZE, op_range.max_a // BUCKET_SIZE + 1):
        for tens_b in range(op_range.min_b // BUCKET_SIZE, op_range.max_b // BUCKET_SIZE + 1):
            for _ in range(SAMPLES_PER_BUCKET):
                a = min(op_range.max_a, tens_a * BUCKET_SIZE + rng.randrange(BUCKET_SIZE))
                b = min(op_range.max_b, tens_b * BUCKET_SIZE + rng.randrange(BUCKET_SIZE))
                if a < op_range.min_a or b < op_range.min_b:
                    continue
                if operation is Operation.SUB and a <= b:
                    continue
                problems.append((a, b))

    return problems


def build_pool(
    settings: PracticeSettings,
    persisted: Mapping[str, ProblemRecord] | None = None,
    rng: random.Random | None = None,
) -> ProblemPool:
    """
    Build the candidate pool for the enabled operations.

    Args:
        settings: Practice settings with operand ranges
        persisted: Stored records by key (replace fresh records)
        rng: Random source for add/sub sampling

    Returns:
        ProblemPool in operation order
    """
    persisted = persisted or {}
    rng = rng or random.Random()
    pool = ProblemPool()

    def ensure(operation: Operation, a: int, b: int, answer: int) -> None:
        key = canonicalize_problem_key(operation, a, b)
        pool.add(persisted.get(key) or ProblemRecord.create(operation, a, b, answer))

    for op in Operation:
        op_range = settings.operation_ranges.get(op)
        if op_range is None or not op_range.enabled:
            continue

        if op is Operation.MUL:
            for a in range(op_range.min_a, op_range.max_a + 1):
                for b in range(a, op_range.max_b + 1):
                    ensure(op, a, b, a * b)
        elif op is Operation.DIV:
            for divisor in range(op_range.min_b, op_range.max_b + 1):
                for quotient in range(op_range.min_a, op_range.max_a + 1):
                    ensure(op, divisor * quotient, divisor, quotient)
        elif op is Operation.ADD:
            for a, b in generate_range_problems(op, op_range, rng):
                ensure(op, a, b, a + b)
        else:
            for a, b in generate_range_problems(op, op_range, rng):
                ensure(op, a, b, a - b)

    logger.info(f"Built problem pool: {len(pool)} problems {pool.by_operation()}")
    return pool


def generate_random_problem(
    operation: str | Operation,
    settings: PracticeSettings,
    rng: random.Random | None = None,
) -> Problem:
    """
    Generate one problem uniformly from the operation's configured range.

    Subtraction never yields zero (operands are resampled until they
    differ and ordered larger-first). Division derives the dividend from a
    divisor and quotient so the answer is always an exact integer.
    """
    op = Operation(operation)
    op_range = settings.range_for(op)
    rng = rng or random.Random()

    if op is Operation.DIV:
        divisor = rng.randint(op_range.min_b, op_range.max_b)
        quotient = rng.randint(op_range.min_a, op_range.max_a)
        dividend = divisor * quotient
        return Problem(
            operation=op.value,
            a=dividend,
            b=divisor,
            answer=quotient,
            key=canonicalize_problem_key(op, dividend, divisor),
        )

    a = rng.randint(op_range.min_a, op_range.max_a)
    b = rng.randint(op_range.min_b, op_range.max_b)

    if op is Operation.SUB:
        while a == b:
            a = rng.randint(op_range.min_a, op_range.max_a)
            b = rng.randint(op_range.min_b, op_range.max_b)
        big, small = max(a, b), min(a, b)
        return Problem(
            operation=op.value,
            a=big,
            b=small,
            answer=big - small,
            key=canonicalize_problem_key(op, big, small),
        )

    answer = a + b if op is Operation.ADD else a * b
    return Problem(
        operation=op.value,
        a=a,
        b=b,
        answer=answer,
        key=canonicalize_problem_key(op, a, b),
    )
