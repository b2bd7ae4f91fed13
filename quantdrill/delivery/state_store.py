"""
SQLite State Store for quantdrill.

Provides portable persistence for:
- SM-2 problem records (one row per canonical problem key)
- Attempt log for analytics (capped)
- Session history and personal bests (capped)
- Profile data: practice settings and total XP

Database location: ~/.quantdrill/state.db (see Settings.db_path)

The scheduling engine only depends on get_record / save_record /
get_all_records / get_settings; everything else serves the session driver,
statistics and the CLI.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from quantdrill.config import PracticeSettings

from .records import (
    Attempt,
    FastestCorrect,
    OperationBreakdown,
    PersonalBests,
    ProblemRecord,
    SessionSummary,
)

DATA_VERSION = 1
MAX_SESSIONS = 100
MAX_ATTEMPTS = 5000

_RECORD_COLUMNS = (
    "key",
    "operation",
    "operand_a",
    "operand_b",
    "correct_answer",
    "ease_factor",
    "interval",
    "repetitions",
    "next_review_date",
    "total_attempts",
    "total_correct",
    "total_time_ms",
    "last_attempt_date",
    "last_response_time_ms",
    "streak",
    "best_streak",
)

_SESSION_COLUMNS = (
    "id",
    "mode",
    "started_at",
    "ended_at",
    "total_problems",
    "total_correct",
    "accuracy",
    "avg_response_time_ms",
    "xp_earned",
    "streak_peak",
    "operation_breakdown",
    "weakest_problems",
)

_ATTEMPT_COLUMNS = (
    "id",
    "session_id",
    "problem_key",
    "operation",
    "operand_a",
    "operand_b",
    "correct_answer",
    "user_answer",
    "is_correct",
    "response_time_ms",
    "timed_out",
    "phase",
    "timestamp",
)


class InvalidDataError(ValueError):
    """Raised when an import payload is not a quantdrill export."""


# =============================================================================
# Row conversion
# =============================================================================


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value[:10]) if value else None


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _record_to_row(record: ProblemRecord) -> dict[str, Any]:
    row = {name: getattr(record, name) for name in _RECORD_COLUMNS}
    row["next_review_date"] = _iso(record.next_review_date)
    row["last_attempt_date"] = _iso(record.last_attempt_date)
    return row


def _row_to_record(row: sqlite3.Row | dict[str, Any]) -> ProblemRecord:
    return ProblemRecord(
        key=row["key"],
        operation=row["operation"],
        operand_a=row["operand_a"],
        operand_b=row["operand_b"],
        correct_answer=row["correct_answer"],
        ease_factor=row["ease_factor"],
        interval=row["interval"],
        repetitions=row["repetitions"],
        next_review_date=_parse_date(row["next_review_date"]),
        total_attempts=row["total_attempts"],
        total_correct=row["total_correct"],
        total_time_ms=row["total_time_ms"],
        last_attempt_date=_parse_datetime(row["last_attempt_date"]),
        last_response_time_ms=row["last_response_time_ms"],
        streak=row["streak"],
        best_streak=row["best_streak"],
    )


def _import_rows(rows: Any, columns: tuple[str, ...], section: str) -> list[dict[str, Any]]:
    """Check an exported table section; row ids are dropped."""
    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        raise InvalidDataError(f"Invalid {section} section")
    for row in rows:
        unknown = set(row) - set(columns)
        if unknown:
            raise InvalidDataError(f"Unknown {section} columns: {', '.join(sorted(unknown))}")
    return [{k: v for k, v in row.items() if k != "id"} for row in rows]


def _row_to_summary(row: sqlite3.Row) -> SessionSummary:
    breakdown = {
        op: OperationBreakdown(**values)
        for op, values in json.loads(row["operation_breakdown"] or "{}").items()
    }
    return SessionSummary(
        id=row["id"],
        mode=row["mode"],
        started_at=datetime.fromisoformat(row["started_at"]),
        ended_at=datetime.fromisoformat(row["ended_at"]),
        total_problems=row["total_problems"],
        total_correct=row["total_correct"],
        accuracy=row["accuracy"],
        avg_response_time_ms=row["avg_response_time_ms"],
        xp_earned=row["xp_earned"],
        streak_peak=row["streak_peak"],
        operation_breakdown=breakdown,
        weakest_problems=json.loads(row["weakest_problems"] or "[]"),
    )


def _row_to_attempt(row: sqlite3.Row) -> Attempt:
    return Attempt(
        problem_key=row["problem_key"],
        operation=row["operation"],
        is_correct=bool(row["is_correct"]),
        response_time_ms=row["response_time_ms"],
        operand_a=row["operand_a"],
        operand_b=row["operand_b"],
        correct_answer=row["correct_answer"],
        user_answer=row["user_answer"],
        timed_out=bool(row["timed_out"]),
        phase=row["phase"],
        session_id=row["session_id"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
    )


# =============================================================================
# State Store
# =============================================================================


class StateStore:
    """
    SQLite-backed persistence for quantdrill.

    Handles:
    - Problem records (SM-2 state and lifetime counters)
    - Attempt log with timing
    - Session history and personal bests
    - Practice settings and XP
    """

    DEFAULT_DB_PATH = Path.home() / ".quantdrill" / "state.db"

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize the state store.

        Args:
            db_path: Custom database path (defaults to ~/.quantdrill/state.db);
                ":memory:" keeps everything in memory
        """
        self.db_path = Path(db_path) if db_path is not None else self.DEFAULT_DB_PATH
        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._init_schema()

        logger.info(f"StateStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_schema(self) -> None:
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS problem_records (
                key TEXT PRIMARY KEY,
                operation TEXT NOT NULL,
                operand_a INTEGER NOT NULL,
                operand_b INTEGER NOT NULL,
                correct_answer INTEGER NOT NULL,
                ease_factor REAL DEFAULT 2.5,
                interval INTEGER DEFAULT 0,
                repetitions INTEGER DEFAULT 0,
                next_review_date TEXT,
                total_attempts INTEGER DEFAULT 0,
                total_correct INTEGER DEFAULT 0,
                total_time_ms INTEGER DEFAULT 0,
                last_attempt_date TEXT,
                last_response_time_ms INTEGER,
                streak INTEGER DEFAULT 0,
                best_streak INTEGER DEFAULT 0
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS attempt_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id INTEGER,
                problem_key TEXT NOT NULL,
                operation TEXT NOT NULL,
                operand_a INTEGER,
                operand_b INTEGER,
                correct_answer INTEGER,
                user_answer INTEGER,
                is_correct BOOLEAN NOT NULL,
                response_time_ms INTEGER NOT NULL,
                timed_out BOOLEAN DEFAULT 0,
                phase TEXT,
                timestamp TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS session_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                mode TEXT NOT NULL,
                started_at TEXT NOT NULL,
                ended_at TEXT,
                total_problems INTEGER DEFAULT 0,
                total_correct INTEGER DEFAULT 0,
                accuracy REAL DEFAULT 0.0,
                avg_response_time_ms REAL DEFAULT 0.0,
                xp_earned INTEGER DEFAULT 0,
                streak_peak INTEGER DEFAULT 0,
                operation_breakdown TEXT,
                weakest_problems TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS profile (
                name TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_records_next_review
            ON problem_records(next_review_date)
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_attempt_log_key
            ON attempt_log(problem_key)
        """)

        self.conn.commit()

    # =========================================================================
    # Problem Records
    # =========================================================================

    def get_record(self, key: str) -> ProblemRecord | None:
        """
        Get the stored record for a problem.

        Args:
            key: Canonical problem key

        Returns:
            ProblemRecord or None if never attempted
        """
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM problem_records WHERE key = ?", (key,))
        row = cursor.fetchone()
        return _row_to_record(row) if row else None

    def save_record(self, key: str, record: ProblemRecord) -> None:
        """
        Save or update a problem record.

        Args:
            key: Canonical problem key
            record: Record to persist
        """
        self._upsert_record(key, record)
        self.conn.commit()

    def _upsert_record(self, key: str, record: ProblemRecord) -> None:
        row = _record_to_row(record)
        row["key"] = key
        columns = ", ".join(_RECORD_COLUMNS)
        placeholders = ", ".join(f":{name}" for name in _RECORD_COLUMNS)
        updates = ", ".join(f"{name} = excluded.{name}" for name in _RECORD_COLUMNS[1:])

        self.conn.execute(
            f"""
            INSERT INTO problem_records ({columns}) VALUES ({placeholders})
            ON CONFLICT(key) DO UPDATE SET {updates}
            """,
            row,
        )

    def get_all_records(self) -> dict[str, ProblemRecord]:
        """All stored records keyed by problem key."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM problem_records ORDER BY key")
        return {row["key"]: _row_to_record(row) for row in cursor.fetchall()}

    def count_due(self, today: date | None = None) -> int:
        """Count stored records due on or before today."""
        today = today or date.today()
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT COUNT(*) AS cnt FROM problem_records WHERE next_review_date <= ?",
            (today.isoformat(),),
        )
        return cursor.fetchone()["cnt"]

    # =========================================================================
    # Profile: settings, XP, personal bests
    # =========================================================================

    def _get_profile_value(self, name: str) -> str | None:
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM profile WHERE name = ?", (name,))
        row = cursor.fetchone()
        return row["value"] if row else None

    def _set_profile_value(self, name: str, value: str) -> None:
        self._upsert_profile_value(name, value)
        self.conn.commit()

    def _upsert_profile_value(self, name: str, value: str) -> None:
        self.conn.execute(
            """
            INSERT INTO profile (name, value) VALUES (?, ?)
            ON CONFLICT(name) DO UPDATE SET value = excluded.value
            """,
            (name, value),
        )

    def get_settings(self) -> PracticeSettings:
        """
        Get the learner's practice settings.

        Returns:
            Stored PracticeSettings, or defaults if none / unreadable
        """
        raw = self._get_profile_value("settings")
        if raw is None:
            return PracticeSettings()
        try:
            return PracticeSettings.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Stored practice settings are invalid, using defaults: {e}")
            return PracticeSettings()

    def save_settings(self, settings: PracticeSettings) -> None:
        self._set_profile_value("settings", settings.model_dump_json())
        logger.debug("Practice settings saved")

    def get_total_xp(self) -> int:
        raw = self._get_profile_value("total_xp")
        return int(raw) if raw is not None else 0

    def add_xp(self, amount: int) -> int:
        """Add XP to the profile and return the new total."""
        total = self.get_total_xp() + amount
        self._set_profile_value("total_xp", str(total))
        return total

    def get_personal_bests(self) -> PersonalBests:
        raw = self._get_profile_value("personal_bests")
        if raw is None:
            return PersonalBests()
        data = json.loads(raw)
        fastest = data.pop("fastest_correct", None)
        return PersonalBests(
            fastest_correct=FastestCorrect(**fastest) if fastest else None,
            **data,
        )

    def _save_personal_bests(self, bests: PersonalBests) -> None:
        self._set_profile_value("personal_bests", json.dumps(asdict(bests)))

    def update_fastest_correct(self, key: str, time_ms: int) -> bool:
        """
        Record a correct answer time if it beats the current best.

        Returns:
            True if a new personal best was set
        """
        bests = self.get_personal_bests()
        if bests.fastest_correct is not None and time_ms >= bests.fastest_correct.time_ms:
            return False
        bests.fastest_correct = FastestCorrect(key=key, time_ms=time_ms)
        self._save_personal_bests(bests)
        return True

    # =========================================================================
    # Attempt Log
    # =========================================================================

    def log_attempt(self, attempt: Attempt) -> int:
        """
        Append an attempt to the log, trimming to the newest MAX_ATTEMPTS.

        Returns:
            Attempt row ID
        """
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO attempt_log (
                session_id, problem_key, operation, operand_a, operand_b,
                correct_answer, user_answer, is_correct, response_time_ms,
                timed_out, phase, timestamp
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                attempt.session_id,
                attempt.problem_key,
                attempt.operation,
                attempt.operand_a,
                attempt.operand_b,
                attempt.correct_answer,
                attempt.user_answer,
                attempt.is_correct,
                attempt.response_time_ms,
                attempt.timed_out,
                attempt.phase,
                attempt.timestamp.isoformat(),
            ),
        )
        row_id = cursor.lastrowid
        cursor.execute(
            """
            DELETE FROM attempt_log WHERE id NOT IN (
                SELECT id FROM attempt_log ORDER BY id DESC LIMIT ?
            )
            """,
            (MAX_ATTEMPTS,),
        )
        self.conn.commit()
        return row_id

    def get_attempt_log(self, limit: int | None = None) -> list[Attempt]:
        """Logged attempts, oldest first (the newest ``limit`` if given)."""
        cursor = self.conn.cursor()
        if limit is None:
            cursor.execute("SELECT * FROM attempt_log ORDER BY id ASC")
            rows = cursor.fetchall()
        else:
            cursor.execute("SELECT * FROM attempt_log ORDER BY id DESC LIMIT ?", (limit,))
            rows = list(reversed(cursor.fetchall()))
        return [_row_to_attempt(row) for row in rows]

    # =========================================================================
    # Session Operations
    # =========================================================================

    def start_session(self, mode: str, started_at: datetime | None = None) -> int:
        """
        Open a session row.

        Returns:
            Session ID
        """
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT INTO session_history (mode, started_at) VALUES (?, ?)",
            (mode, (started_at or datetime.now()).isoformat()),
        )
        self.conn.commit()
        return cursor.lastrowid

    def end_session(self, summary: SessionSummary) -> int:
        """
        Close a session with its summary and update personal bests.

        Args:
            summary: Summary to store; a new row is created if summary.id is None

        Returns:
            Session ID
        """
        if summary.id is None:
            summary.id = self.start_session(summary.mode, summary.started_at)

        breakdown = {op: asdict(values) for op, values in summary.operation_breakdown.items()}
        self.conn.execute(
            """
            UPDATE session_history SET
                ended_at = ?,
                total_problems = ?,
                total_correct = ?,
                accuracy = ?,
                avg_response_time_ms = ?,
                xp_earned = ?,
                streak_peak = ?,
                operation_breakdown = ?,
                weakest_problems = ?
            WHERE id = ?
            """,
            (
                summary.ended_at.isoformat(),
                summary.total_problems,
                summary.total_correct,
                summary.accuracy,
                summary.avg_response_time_ms,
                summary.xp_earned,
                summary.streak_peak,
                json.dumps(breakdown),
                json.dumps(summary.weakest_problems),
                summary.id,
            ),
        )
        self.conn.execute(
            """
            DELETE FROM session_history WHERE id NOT IN (
                SELECT id FROM session_history ORDER BY id DESC LIMIT ?
            )
            """,
            (MAX_SESSIONS,),
        )
        self.conn.commit()

        bests = self.get_personal_bests()
        bests.longest_streak = max(bests.longest_streak, summary.streak_peak)
        bests.highest_session_accuracy = max(bests.highest_session_accuracy, summary.accuracy)
        bests.most_problems_in_session = max(bests.most_problems_in_session, summary.total_problems)
        self._save_personal_bests(bests)

        logger.info(
            f"Session {summary.id} ended: {summary.total_problems} problems, "
            f"{summary.accuracy:.0%} accuracy"
        )
        return summary.id

    def get_session_history(self, limit: int = 20) -> list[SessionSummary]:
        """Completed sessions, most recent first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT * FROM session_history
            WHERE ended_at IS NOT NULL
            ORDER BY id DESC
            LIMIT ?
            """,
            (limit,),
        )
        return [_row_to_summary(row) for row in cursor.fetchall()]

    # =========================================================================
    # Stats
    # =========================================================================

    def get_stats(self, today: date | None = None) -> dict:
        """
        Get overall learning statistics.

        Returns:
            Dictionary with aggregate stats
        """
        cursor = self.conn.cursor()

        cursor.execute("""
            SELECT
                COUNT(*) AS problems,
                COALESCE(SUM(total_attempts), 0) AS attempts,
                COALESCE(SUM(total_correct), 0) AS correct
            FROM problem_records
        """)
        totals = cursor.fetchone()

        cursor.execute("SELECT COUNT(*) AS cnt FROM session_history WHERE ended_at IS NOT NULL")
        sessions = cursor.fetchone()["cnt"]

        attempts = totals["attempts"]
        return {
            "problems_tracked": totals["problems"],
            "problems_due": self.count_due(today),
            "total_attempts": attempts,
            "accuracy_percent": round(totals["correct"] * 100.0 / attempts, 1) if attempts else 0.0,
            "sessions_completed": sessions,
            "total_xp": self.get_total_xp(),
        }

    # =========================================================================
    # Export / Import / Reset
    # =========================================================================

    def export_data(self) -> str:
        """Serialize all learner data to a JSON string."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM session_history ORDER BY id ASC")
        sessions = [dict(row) for row in cursor.fetchall()]
        cursor.execute("SELECT * FROM attempt_log ORDER BY id ASC")
        attempts = [dict(row) for row in cursor.fetchall()]
        cursor.execute("SELECT name, value FROM profile")
        profile = {row["name"]: row["value"] for row in cursor.fetchall()}

        data = {
            "version": DATA_VERSION,
            "exported_at": datetime.now().isoformat(),
            "profile": profile,
            "problem_records": {
                key: _record_to_row(record) for key, record in self.get_all_records().items()
            },
            "sessions": sessions,
            "attempt_log": attempts,
        }
        return json.dumps(data, indent=2)

    def import_data(self, payload: str) -> int:
        """
        Replace all learner data with an export payload.

        Args:
            payload: JSON produced by export_data

        Returns:
            Number of problem records imported

        Raises:
            InvalidDataError: If the payload is not a quantdrill export.
                Existing data is left untouched.
        """
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise InvalidDataError(f"Not valid JSON: {e}") from e

        if not isinstance(data, dict) or not all(
            data.get(name) is not None for name in ("version", "profile", "problem_records")
        ):
            raise InvalidDataError("Invalid quantdrill data format")

        try:
            records = [_row_to_record(row) for row in data["problem_records"].values()]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise InvalidDataError(f"Invalid problem record: {e}") from e

        profile = data["profile"]
        if not isinstance(profile, dict) or not all(
            isinstance(value, str) for value in profile.values()
        ):
            raise InvalidDataError("Invalid profile section")
        sessions = _import_rows(data.get("sessions", []), _SESSION_COLUMNS, "sessions")
        attempts = _import_rows(data.get("attempt_log", []), _ATTEMPT_COLUMNS, "attempt_log")

        try:
            with self.conn:
                self._delete_all()
                for record in records:
                    self._upsert_record(record.key, record)
                for name, value in profile.items():
                    self._upsert_profile_value(name, value)
                for row in sessions:
                    self._insert_row("session_history", row)
                for row in attempts:
                    self._insert_row("attempt_log", row)
        except sqlite3.Error as e:
            raise InvalidDataError(f"Import rejected by the database: {e}") from e

        logger.info(f"Imported {len(records)} problem records")
        return len(records)

    def _insert_row(self, table: str, row: dict[str, Any]) -> None:
        columns = ", ".join(row)
        placeholders = ", ".join(f":{k}" for k in row)
        self.conn.execute(f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", row)

    def _delete_all(self) -> None:
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM attempt_log")
        cursor.execute("DELETE FROM problem_records")
        cursor.execute("DELETE FROM session_history")
        cursor.execute("DELETE FROM profile")

    def reset(self, backup: bool = True) -> int:
        """
        Delete all learner data.

        DANGER: This deletes learning progress! A JSON backup is written
        next to the database first unless ``backup`` is False or the store
        is in memory.

        Returns:
            Number of problem records deleted
        """
        count = len(self.get_all_records())

        if backup and str(self.db_path) != ":memory:":
            backup_dir = self.db_path.parent / "backups"
            backup_dir.mkdir(exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            backup_file = backup_dir / f"progress_backup_{timestamp}.json"
            backup_file.write_text(self.export_data(), encoding="utf-8")
            logger.info(f"Backup saved: {backup_file}")

        with self.conn:
            self._delete_all()
        logger.warning(f"Reset complete: {count} problem records deleted")
        return count

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
