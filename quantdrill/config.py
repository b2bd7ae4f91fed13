"""
Configuration settings for quantdrill.

Two layers:
- Settings: process configuration from environment variables / .env
  (database location, logging, RNG seed).
- PracticeSettings: the learner's practice preferences (enabled operations,
  operand ranges, per-problem timer). Stored in the state database and
  edited from the CLI.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from quantdrill.core.operations import Operation


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="QUANTDRILL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    db_path: Path = Field(
        default=Path.home() / ".quantdrill" / "state.db",
        description="SQLite database holding problem records and sessions",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Selection
    # ========================================
    seed: int | None = Field(
        default=None,
        description="Seed for the problem selection RNG (None = nondeterministic)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# =============================================================================
# Practice Settings
# =============================================================================


class OperationRange(BaseModel):
    """Operand range for one operation.

    For division, ``min_a``/``max_a`` bound the quotient and ``min_b``/``max_b``
    bound the divisor.
    """

    min_a: int
    max_a: int
    min_b: int
    max_b: int
    enabled: bool = True


def _default_ranges() -> dict[Operation, OperationRange]:
    return {
        Operation.ADD: OperationRange(min_a=10, max_a=99, min_b=10, max_b=99),
        Operation.SUB: OperationRange(min_a=20, max_a=99, min_b=10, max_b=99),
        Operation.MUL: OperationRange(min_a=2, max_a=12, min_b=2, max_b=12),
        Operation.DIV: OperationRange(min_a=2, max_a=12, min_b=2, max_b=12),
    }


class PracticeSettings(BaseModel):
    """Learner practice preferences consumed by the scheduling engine."""

    timer_seconds: int = Field(default=10, description="Per-problem time limit")
    operation_ranges: dict[Operation, OperationRange] = Field(default_factory=_default_ranges)

    @property
    def timer_limit_ms(self) -> int:
        return self.timer_seconds * 1000

    def enabled_operations(self) -> list[Operation]:
        """Enabled operations, in declaration order."""
        return [op for op, rng in self.operation_ranges.items() if rng.enabled]

    def range_for(self, operation: str | Operation) -> OperationRange:
        return self.operation_ranges[Operation(operation)]
