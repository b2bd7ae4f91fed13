"""
Core Module - Shared problem vocabulary.

Components:
- operations: Arithmetic operations, canonical problem keys, SM-2 defaults
- modes: Session modes (sprint/flow/deep) and session phases
- hints: Mental-math hints shown after a miss
- rewards: XP, levels and streak labels

The scheduling engine in quantdrill.delivery imports from here rather
than redefining these constants.
"""

from quantdrill.core.hints import generate_hint
from quantdrill.core.modes import (
    DRILL_DURATION_SECONDS,
    DRILL_MODE,
    SESSION_MODES,
    SessionMode,
    SessionPhase,
)
from quantdrill.core.operations import (
    OPERATIONS,
    SM2_DEFAULTS,
    Operation,
    canonicalize_problem_key,
    operator_symbol,
)
from quantdrill.core.rewards import (
    calculate_xp,
    get_level,
    streak_label,
    xp_for_level,
    xp_progress,
)

__all__ = [
    # Operations
    "Operation",
    "OPERATIONS",
    "SM2_DEFAULTS",
    "canonicalize_problem_key",
    "operator_symbol",
    # Modes
    "SessionMode",
    "SessionPhase",
    "SESSION_MODES",
    "DRILL_DURATION_SECONDS",
    "DRILL_MODE",
    # Hints
    "generate_hint",
    # Rewards
    "calculate_xp",
    "get_level",
    "xp_for_level",
    "xp_progress",
    "streak_label",
]
