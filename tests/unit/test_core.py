"""
Unit tests for core domain helpers: problem keys, hints, XP and levels.
"""

from dataclasses import fields

import pytest

from quantdrill.core.hints import MANUAL_HINTS, generate_hint
from quantdrill.core.modes import DRILL_MODE, SESSION_MODES
from quantdrill.core.operations import Operation, canonicalize_problem_key, operator_symbol
from quantdrill.core.rewards import (
    STREAK_LEVELS,
    StreakLevel,
    calculate_xp,
    get_level,
    streak_label,
    xp_for_level,
    xp_progress,
)


class TestProblemKeys:
    def test_commutative_key_is_symmetric(self):
        assert canonicalize_problem_key("add", 3, 7) == canonicalize_problem_key("add", 7, 3)
        assert canonicalize_problem_key(Operation.MUL, 8, 7) == "mul:7x8"

    def test_non_commutative_key_preserves_order(self):
        assert canonicalize_problem_key("sub", 7, 3) != canonicalize_problem_key("sub", 3, 7)
        assert canonicalize_problem_key("div", 56, 8) == "div:56x8"

    def test_unknown_operation_rejected(self):
        with pytest.raises(ValueError):
            canonicalize_problem_key("pow", 2, 3)

    def test_operator_symbol(self):
        assert operator_symbol("mul") == "×"
        assert operator_symbol("pow") == "?"


class TestHints:
    def test_manual_hint_takes_precedence_regardless_of_order(self):
        assert generate_hint("mul", 8, 7, 56) == MANUAL_HINTS["mul:7x8"]

    def test_nines_pattern(self):
        assert generate_hint("mul", 9, 4, 36) == "9 × 4: tens digit = 3, ones = 6 → 36"

    def test_elevens_pattern(self):
        assert generate_hint("mul", 11, 4, 44) == "11 × 4 = 44 → 44"

    def test_split_tens(self):
        assert generate_hint("mul", 13, 4, 52) == "13 × 4 = (10×4) + (3×4) = 40 + 12 = 52"

    def test_addition_rounds_up_then_subtracts(self):
        assert generate_hint("add", 34, 19, 53) == "34 + 19 = 34 + 20 − 1 = 54 − 1 = 53"

    def test_subtraction_rounds_up_then_adds_back(self):
        assert generate_hint("sub", 50, 19, 31) == "50 − 19 = 50 − 20 + 1 = 30 + 1 = 31"

    def test_subtraction_rounds_down_then_subtracts(self):
        assert generate_hint("sub", 50, 12, 38) == "50 − 12 = 50 − 10 − 2 = 40 − 2 = 38"

    def test_division_inverts_to_multiplication(self):
        assert generate_hint("div", 42, 6, 7) == "42 ÷ 6 → think: 6 × ? = 42 → 6 × 7 = 42"


class TestXP:
    def test_wrong_answer_earns_nothing(self):
        assert calculate_xp(False, 1000, 10000, 5) == 0

    @pytest.mark.parametrize(
        "response_ms, expected",
        [(2000, 10), (4000, 8), (7000, 6), (9000, 5)],
    )
    def test_speed_bonus(self, response_ms, expected):
        assert calculate_xp(True, response_ms, 10000, 0) == expected

    def test_streak_bonus_is_capped(self):
        assert calculate_xp(True, 9000, 10000, 3) == 11
        assert calculate_xp(True, 9000, 10000, 50) == 25


class TestLevels:
    @pytest.mark.parametrize("xp, level", [(0, 1), (49, 1), (50, 2), (199, 2), (200, 3), (450, 4)])
    def test_get_level(self, xp, level):
        assert get_level(xp) == level

    def test_xp_for_level(self):
        assert xp_for_level(2) == 200

    def test_progress_within_level(self):
        assert xp_progress(0) == 0.0
        assert xp_progress(125) == pytest.approx(0.5)

    def test_streak_labels(self):
        assert streak_label(0) == ""
        assert streak_label(3) == "🔥"
        assert streak_label(9) == "🔥🔥🔥"
        assert streak_label(12) == "🔥💥⭐"

    def test_streak_levels_carry_only_threshold_and_label(self):
        assert [f.name for f in fields(StreakLevel)] == ["minimum", "label"]
        assert [level.minimum for level in STREAK_LEVELS] == [0, 3, 5, 8, 10]


class TestModes:
    def test_durations(self):
        assert SESSION_MODES["sprint"].duration_seconds == 120
        assert SESSION_MODES["flow"].warmup_count == 6
        assert DRILL_MODE.duration_seconds == 300
