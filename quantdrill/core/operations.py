"""
Arithmetic operations and canonical problem identity.

A problem is identified by its operation and operand pair. For commutative
operations (add, mul) the operand order is irrelevant, so 3 + 7 and 7 + 3
share one memory record.

Key format:
    add:3x7    (commutative -> operands sorted)
    sub:7x3    (non-commutative -> operand order preserved)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Operation(str, Enum):
    """Arithmetic operation of a drill problem."""

    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"


@dataclass(frozen=True)
class OperationInfo:
    """Display metadata for an operation."""

    symbol: str
    name: str
    commutative: bool


OPERATIONS: dict[Operation, OperationInfo] = {
    Operation.ADD: OperationInfo(symbol="+", name="Addition", commutative=True),
    Operation.SUB: OperationInfo(symbol="−", name="Subtraction", commutative=False),
    Operation.MUL: OperationInfo(symbol="×", name="Multiplication", commutative=True),
    Operation.DIV: OperationInfo(symbol="÷", name="Division", commutative=False),
}


@dataclass(frozen=True)
class SM2Defaults:
    """Constants of the SM-2 variant used by the memory model."""

    ease_factor: float = 2.5
    min_ease: float = 1.3
    max_ease: float = 3.0
    initial_interval: int = 1  # Days after first success
    second_interval: int = 3  # Days after second success


SM2_DEFAULTS = SM2Defaults()


def canonicalize_problem_key(operation: str | Operation, a: int, b: int) -> str:
    """
    Build the canonical record key for a problem.

    Args:
        operation: Operation name or enum member
        a: First operand
        b: Second operand

    Returns:
        Key such as "mul:7x8"
    """
    op = Operation(operation)
    if OPERATIONS[op].commutative:
        lo, hi = min(a, b), max(a, b)
        return f"{op.value}:{lo}x{hi}"
    return f"{op.value}:{a}x{b}"


def operator_symbol(operation: str | Operation) -> str:
    """Get the display symbol for an operation ("?" if unknown)."""
    try:
        return OPERATIONS[Operation(operation)].symbol
    except ValueError:
        return "?"
