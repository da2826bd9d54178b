# src/task_agent/tasks/settings_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path

from ..errors import ConcurrentModificationError
from .tuning import TuningSettings

logger = logging.getLogger(__name__)

_SLOT = 1


def _iso(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat()


class SettingsStore:
    """
    SQLite single-slot store for TuningSettings.

    There is exactly one physical row (slot = 1). save() replaces it inside
    one IMMEDIATE transaction, so two writers can never leave two rows or
    interleave a delete and an insert. updated_at is kept as ISO text so the
    compare-and-swap check is exact.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def close(self) -> None:
        return

    def _get_conn(self) -> sqlite3.Connection:
        # isolation_level=None: we issue BEGIN/COMMIT ourselves.
        conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tuning_settings (
                    slot INTEGER PRIMARY KEY CHECK (slot = 1),
                    max_active_tasks INTEGER NOT NULL,
                    escalation_threshold_hours INTEGER NOT NULL,
                    minimum_confidence_threshold REAL NOT NULL,
                    default_snooze_s REAL NOT NULL,
                    recommendation_validity_s REAL NOT NULL,
                    auto_apply_recommendations INTEGER NOT NULL,
                    auto_escalate_overdue_tasks INTEGER NOT NULL,
                    auto_awaken_snoozed_tasks INTEGER NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
        finally:
            conn.close()

    @staticmethod
    def _params(settings: TuningSettings) -> dict[str, object]:
        return {
            "slot": _SLOT,
            "max_active_tasks": settings.max_active_tasks,
            "escalation_threshold_hours": settings.escalation_threshold_hours,
            "minimum_confidence_threshold": settings.minimum_confidence_threshold,
            "default_snooze_s": settings.default_snooze_duration.total_seconds(),
            "recommendation_validity_s": settings.recommendation_validity_duration.total_seconds(),
            "auto_apply_recommendations": int(settings.auto_apply_recommendations),
            "auto_escalate_overdue_tasks": int(settings.auto_escalate_overdue_tasks),
            "auto_awaken_snoozed_tasks": int(settings.auto_awaken_snoozed_tasks),
            "updated_at": _iso(settings.updated_at),
        }

    @staticmethod
    def _row_to_settings(row: sqlite3.Row) -> TuningSettings:
        return TuningSettings(
            max_active_tasks=int(row["max_active_tasks"]),
            escalation_threshold_hours=int(row["escalation_threshold_hours"]),
            minimum_confidence_threshold=float(row["minimum_confidence_threshold"]),
            default_snooze_duration=timedelta(seconds=float(row["default_snooze_s"])),
            recommendation_validity_duration=timedelta(seconds=float(row["recommendation_validity_s"])),
            auto_apply_recommendations=bool(row["auto_apply_recommendations"]),
            auto_escalate_overdue_tasks=bool(row["auto_escalate_overdue_tasks"]),
            auto_awaken_snoozed_tasks=bool(row["auto_awaken_snoozed_tasks"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def count_rows(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tuning_settings").fetchone()
            return int(n)
        finally:
            conn.close()

    def get(self) -> TuningSettings | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tuning_settings WHERE slot = ?", (_SLOT,)).fetchone()
            return self._row_to_settings(row) if row else None
        finally:
            conn.close()

    def save(self, settings: TuningSettings, *, expected_updated_at: datetime | None = None) -> None:
        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                if expected_updated_at is not None:
                    row = conn.execute(
                        "SELECT updated_at FROM tuning_settings WHERE slot = ?", (_SLOT,)
                    ).fetchone()
                    current = row["updated_at"] if row else None
                    if current != _iso(expected_updated_at):
                        raise ConcurrentModificationError(
                            "Settings were changed by another writer; refusing to overwrite."
                        )
                conn.execute(
                    """
                    INSERT INTO tuning_settings(
                        slot, max_active_tasks, escalation_threshold_hours,
                        minimum_confidence_threshold, default_snooze_s, recommendation_validity_s,
                        auto_apply_recommendations, auto_escalate_overdue_tasks,
                        auto_awaken_snoozed_tasks, updated_at
                    )
                    VALUES (
                        :slot, :max_active_tasks, :escalation_threshold_hours,
                        :minimum_confidence_threshold, :default_snooze_s, :recommendation_validity_s,
                        :auto_apply_recommendations, :auto_escalate_overdue_tasks,
                        :auto_awaken_snoozed_tasks, :updated_at
                    )
                    ON CONFLICT(slot) DO UPDATE SET
                        max_active_tasks = excluded.max_active_tasks,
                        escalation_threshold_hours = excluded.escalation_threshold_hours,
                        minimum_confidence_threshold = excluded.minimum_confidence_threshold,
                        default_snooze_s = excluded.default_snooze_s,
                        recommendation_validity_s = excluded.recommendation_validity_s,
                        auto_apply_recommendations = excluded.auto_apply_recommendations,
                        auto_escalate_overdue_tasks = excluded.auto_escalate_overdue_tasks,
                        auto_awaken_snoozed_tasks = excluded.auto_awaken_snoozed_tasks,
                        updated_at = excluded.updated_at
                    """,
                    self._params(settings),
                )
            except Exception:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()
        logger.info(
            "Settings saved max_active=%s escalation_h=%s min_conf=%.2f auto_apply=%s",
            settings.max_active_tasks,
            settings.escalation_threshold_hours,
            settings.minimum_confidence_threshold,
            settings.auto_apply_recommendations,
        )

    def ensure_exists(self) -> TuningSettings:
        """Return stored settings, persisting defaults first if the slot is empty."""
        defaults = TuningSettings()
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO tuning_settings(
                    slot, max_active_tasks, escalation_threshold_hours,
                    minimum_confidence_threshold, default_snooze_s, recommendation_validity_s,
                    auto_apply_recommendations, auto_escalate_overdue_tasks,
                    auto_awaken_snoozed_tasks, updated_at
                )
                VALUES (
                    :slot, :max_active_tasks, :escalation_threshold_hours,
                    :minimum_confidence_threshold, :default_snooze_s, :recommendation_validity_s,
                    :auto_apply_recommendations, :auto_escalate_overdue_tasks,
                    :auto_awaken_snoozed_tasks, :updated_at
                )
                """,
                self._params(defaults),
            )
            if cur.rowcount == 1:
                logger.info("Default settings created")
            row = conn.execute("SELECT * FROM tuning_settings WHERE slot = ?", (_SLOT,)).fetchone()
            return self._row_to_settings(row)
        finally:
            conn.close()
