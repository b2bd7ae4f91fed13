"""
XP, levels and streak labels.

XP per correct answer = base + speed bonus + streak bonus.
Level n starts at 50 * (n - 1)^2 XP.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

XP_BASE = 5
XP_STREAK_MULTIPLIER = 2
XP_STREAK_CAP = 20

# (max response/timer ratio, bonus), checked in order
XP_SPEED_THRESHOLDS: tuple[tuple[float, int], ...] = (
    (0.25, 5),
    (0.50, 3),
    (0.75, 1),
)

XP_PER_LEVEL_UNIT = 50


@dataclass(frozen=True)
class StreakLevel:
    minimum: int
    label: str


STREAK_LEVELS: tuple[StreakLevel, ...] = (
    StreakLevel(0, ""),
    StreakLevel(3, "🔥"),
    StreakLevel(5, "🔥🔥"),
    StreakLevel(8, "🔥🔥🔥"),
    StreakLevel(10, "🔥💥⭐"),
)


def calculate_xp(
    is_correct: bool,
    response_time_ms: float,
    timer_limit_ms: float,
    current_streak: int,
) -> int:
    """
    XP earned for a single answer.

    Args:
        is_correct: Whether the answer was correct
        response_time_ms: Time taken to answer
        timer_limit_ms: Per-problem time limit
        current_streak: Correct answers in a row before this one

    Returns:
        XP amount (0 for a wrong answer)
    """
    if not is_correct:
        return 0

    xp = XP_BASE
    speed_ratio = response_time_ms / timer_limit_ms
    for max_ratio, bonus in XP_SPEED_THRESHOLDS:
        if speed_ratio <= max_ratio:
            xp += bonus
            break

    xp += min(XP_STREAK_CAP, current_streak * XP_STREAK_MULTIPLIER)
    return xp


def get_level(total_xp: int) -> int:
    return int(math.floor(math.sqrt(total_xp / XP_PER_LEVEL_UNIT))) + 1


def xp_for_level(level: int) -> int:
    """XP needed to reach the level after ``level``."""
    return level * level * XP_PER_LEVEL_UNIT


def xp_progress(total_xp: int) -> float:
    """Fraction (0-1) of the way from the current level to the next."""
    level = get_level(total_xp)
    current_level_xp = (level - 1) * (level - 1) * XP_PER_LEVEL_UNIT
    next_level_xp = level * level * XP_PER_LEVEL_UNIT
    span = next_level_xp - current_level_xp
    if span == 0:
        return 0.0
    return (total_xp - current_level_xp) / span


def streak_label(streak: int) -> str:
    label = ""
    for level in STREAK_LEVELS:
        if streak >= level.minimum:
            label = level.label
    return label
