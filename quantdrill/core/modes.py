"""
Session Modes and Phases.

A practice session runs in one of three timed modes. Within a session the
driver moves through phases that bias which problems are eligible:

    warmup -> core -> challenge

Drill sessions stay in the drill phase for their whole length.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class SessionPhase(str, Enum):
    """Stage of a session used by the selection pipeline."""

    WARMUP = "warmup"  # Easy or unseen problems
    CORE = "core"  # No phase filtering
    CHALLENGE = "challenge"  # Problems the learner struggles with
    DRILL = "drill"  # Remediation of weak problems


class SessionMode(BaseModel):
    """Configuration for a timed practice mode."""

    name: str
    label: str
    duration_seconds: int
    warmup_count: int
    description: str = ""

    # Fraction of the session after which the challenge phase starts
    challenge_after: float = 0.80


SESSION_MODES: dict[str, SessionMode] = {
    "sprint": SessionMode(
        name="sprint",
        label="Sprint",
        duration_seconds=120,
        warmup_count=3,
        description="2 min - quick burst",
    ),
    "flow": SessionMode(
        name="flow",
        label="Flow",
        duration_seconds=900,
        warmup_count=6,
        description="15 min - build focus",
    ),
    "deep": SessionMode(
        name="deep",
        label="Deep",
        duration_seconds=1800,
        warmup_count=8,
        description="30 min - deep practice",
    ),
}

DRILL_DURATION_SECONDS = 300

DRILL_MODE = SessionMode(
    name="drill",
    label="Mistake Drill",
    duration_seconds=DRILL_DURATION_SECONDS,
    warmup_count=0,
    description="5 min - weakest problems only",
)
