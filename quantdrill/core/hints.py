"""
Mental-math hints shown after a missed problem.

Hand-written hints for notoriously sticky multiplication facts take
precedence; everything else gets a rule-based decomposition.
"""

from __future__ import annotations

import math

from quantdrill.core.operations import Operation, canonicalize_problem_key

MANUAL_HINTS: dict[str, str] = {
    "mul:7x8": "5, 6, 7, 8 → 56 = 7 × 8",
    "mul:6x7": "6 × 7 = 42: the answer to everything",
    "mul:6x8": "6 × 8 = 48: think 6, 8 → 4, 8 → 48",
    "mul:7x9": "7 × 9 = 63: digits sum to 9: 6+3",
    "mul:8x9": "8 × 9 = 72: digits sum to 9: 7+2",
    "mul:4x7": "4 × 7 = 28: days in February",
    "mul:3x7": "3 × 7 = 21: blackjack!",
    "mul:6x9": "6 × 9 = 54: think: 54 = 6 × 9",
    "mul:7x7": "7 × 7 = 49: a perfect square",
    "mul:8x8": "8 × 8 = 64: a chessboard",
    "mul:9x9": "9 × 9 = 81: 8+1=9, it's a 9-pattern",
    "mul:11x11": "11 × 11 = 121: palindrome!",
    "mul:12x12": "12 × 12 = 144: a gross",
}


def _round_to_ten(value: int) -> int:
    """Round half up to the nearest multiple of ten."""
    return int(math.floor(value / 10 + 0.5)) * 10


def _multiplication_hint(a: int, b: int, answer: int) -> str:
    if 9 in (a, b):
        other = b if a == 9 else a
        if 1 <= other <= 10:
            return f"9 × {other}: tens digit = {other - 1}, ones = {10 - other} → {answer}"

    if 11 in (a, b):
        other = b if a == 11 else a
        if other <= 9:
            return f"11 × {other} = {other}{other} → {answer}"
        return f"11 × {other} = (10 × {other}) + {other} = {10 * other} + {other} = {answer}"

    larger, smaller = max(a, b), min(a, b)
    if larger > 10:
        tens = (larger // 10) * 10
        ones = larger - tens
        return (
            f"{larger} × {smaller} = ({tens}×{smaller}) + ({ones}×{smaller}) = "
            f"{tens * smaller} + {ones * smaller} = {answer}"
        )

    if 5 in (a, b):
        other = b if a == 5 else a
        return f"5 × {other} = {other * 10} ÷ 2 = {answer}"

    return f"{a} × {b} = {answer}"


def _addition_hint(a: int, b: int, answer: int) -> str:
    rounded = _round_to_ten(b)
    diff = b - rounded
    if diff == 0:
        return f"{a} + {b} = {answer}"
    sign = "+" if diff > 0 else "−"
    return f"{a} + {b} = {a} + {rounded} {sign} {abs(diff)} = {a + rounded} {sign} {abs(diff)} = {answer}"


def _subtraction_hint(a: int, b: int, answer: int) -> str:
    rounded = _round_to_ten(b)
    diff = b - rounded
    if diff == 0:
        return f"{a} − {b} = {answer}"
    # Rounded b up: subtracted too much, add the excess back
    sign = "+" if diff < 0 else "−"
    return f"{a} − {b} = {a} − {rounded} {sign} {abs(diff)} = {a - rounded} {sign} {abs(diff)} = {answer}"


def generate_hint(operation: str | Operation, a: int, b: int, correct_answer: int) -> str:
    """
    Build a short mental-math hint for a problem.

    Args:
        operation: Problem operation
        a: First operand (dividend for division)
        b: Second operand (divisor for division)
        correct_answer: The expected answer

    Returns:
        Single-line hint text
    """
    key = canonicalize_problem_key(operation, a, b)
    if key in MANUAL_HINTS:
        return MANUAL_HINTS[key]

    op = Operation(operation)
    if op is Operation.MUL:
        return _multiplication_hint(a, b, correct_answer)
    if op is Operation.ADD:
        return _addition_hint(a, b, correct_answer)
    if op is Operation.SUB:
        return _subtraction_hint(a, b, correct_answer)
    return f"{a} ÷ {b} → think: {b} × ? = {a} → {b} × {correct_answer} = {a}"
