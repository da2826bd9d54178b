# src/task_agent/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path

from ..core.clock import from_ts, to_ts
from ..errors import TaskNotFoundError, ValidationError
from .recommendation_models import Recommendation, RecommendedAction
from .task_models import Actor, Task, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)

# Highest priority first, then oldest task first.
_ORDER_BY_PRIORITY = """
    ORDER BY CASE priority
        WHEN 'critical' THEN 3
        WHEN 'high' THEN 2
        WHEN 'medium' THEN 1
        ELSE 0
    END DESC, created_at ASC
"""


class TaskStore:
    """
    SQLite task store (tasks + recommendations).

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    due_at REAL,
                    completed_at REAL,
                    snoozed_until REAL,
                    escalation_count INTEGER NOT NULL DEFAULT 0,
                    last_actor TEXT NOT NULL DEFAULT 'agent'
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("completed_at", "REAL")
            add_col("snoozed_until", "REAL")
            add_col("escalation_count", "INTEGER NOT NULL DEFAULT 0")
            add_col("last_actor", "TEXT NOT NULL DEFAULT 'agent'")

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS recommendations (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    reasoning TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    suggested_priority TEXT,
                    suggested_snooze_s REAL,
                    generated_at REAL NOT NULL,
                    expires_at REAL NOT NULL,
                    is_applied INTEGER NOT NULL DEFAULT 0,
                    applied_at REAL
                )
                """
            )

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status_due ON tasks(status, due_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_snoozed ON tasks(status, snoozed_until)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_recs_task ON recommendations(task_id, generated_at)"
            )

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"]),
            description=row["description"],
            status=TaskStatus.from_db(row["status"]),
            priority=TaskPriority(row["priority"]),
            created_at=from_ts(row["created_at"]),
            updated_at=from_ts(row["updated_at"]),
            due_date=from_ts(row["due_at"]),
            completed_at=from_ts(row["completed_at"]),
            snoozed_until=from_ts(row["snoozed_until"]),
            escalation_count=int(row["escalation_count"] or 0),
            last_actor=Actor(row["last_actor"] or Actor.AGENT.value),
        )

    @staticmethod
    def _task_params(task: Task) -> dict[str, object]:
        return {
            "id": task.id,
            "title": task.title,
            "description": task.description,
            "status": task.status.value,
            "priority": task.priority.value,
            "created_at": to_ts(task.created_at),
            "updated_at": to_ts(task.updated_at),
            "due_at": to_ts(task.due_date),
            "completed_at": to_ts(task.completed_at),
            "snoozed_until": to_ts(task.snoozed_until),
            "escalation_count": int(task.escalation_count),
            "last_actor": task.last_actor.value,
        }

    @staticmethod
    def _row_to_recommendation(row: sqlite3.Row) -> Recommendation:
        snooze_s = row["suggested_snooze_s"]
        prio = row["suggested_priority"]
        return Recommendation(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            action=RecommendedAction(row["action"]),
            reasoning=str(row["reasoning"]),
            confidence=float(row["confidence"]),
            generated_at=from_ts(row["generated_at"]),
            expires_at=from_ts(row["expires_at"]),
            suggested_priority=TaskPriority(prio) if prio else None,
            suggested_snooze=timedelta(seconds=float(snooze_s)) if snooze_s is not None else None,
            is_applied=bool(row["is_applied"]),
            applied_at=from_ts(row["applied_at"]),
        )

    @staticmethod
    def _recommendation_params(rec: Recommendation) -> dict[str, object]:
        return {
            "id": rec.id,
            "task_id": rec.task_id,
            "action": rec.action.value,
            "reasoning": rec.reasoning,
            "confidence": float(rec.confidence),
            "suggested_priority": rec.suggested_priority.value if rec.suggested_priority else None,
            "suggested_snooze_s": rec.suggested_snooze.total_seconds() if rec.suggested_snooze else None,
            "generated_at": to_ts(rec.generated_at),
            "expires_at": to_ts(rec.expires_at),
            "is_applied": 1 if rec.is_applied else 0,
            "applied_at": to_ts(rec.applied_at),
        }

    def _select_tasks(self, where: str = "", params: tuple[object, ...] = (), order: str = _ORDER_BY_PRIORITY) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(f"SELECT * FROM tasks {where} {order}", params)
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    # ---- public API: tasks ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def get(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (str(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def list_by_status(self, status: TaskStatus) -> list[Task]:
        return self._select_tasks("WHERE status = ?", (status.value,))

    def list_all(self, status: TaskStatus | None = None) -> list[Task]:
        if status is None:
            return self._select_tasks()
        return self.list_by_status(status)

    def list_overdue(self, now: datetime) -> list[Task]:
        """Tasks past their due date that are still open."""
        return self._select_tasks(
            "WHERE due_at IS NOT NULL AND due_at < ? AND status NOT IN ('completed', 'rejected')",
            (to_ts(now),),
            order="ORDER BY due_at ASC",
        )

    def list_to_awaken(self, now: datetime) -> list[Task]:
        """Snoozed tasks whose snooze has run out."""
        return self._select_tasks(
            "WHERE status = 'snoozed' AND snoozed_until IS NOT NULL AND snoozed_until <= ?",
            (to_ts(now),),
            order="ORDER BY snoozed_until ASC",
        )

    def count_by_status(self, status: TaskStatus) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks WHERE status = ?", (status.value,))
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def add(self, task: Task) -> None:
        params = self._task_params(task)
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, title, description, status, priority,
                    created_at, updated_at, due_at, completed_at, snoozed_until,
                    escalation_count, last_actor
                )
                VALUES (
                    :id, :title, :description, :status, :priority,
                    :created_at, :updated_at, :due_at, :completed_at, :snoozed_until,
                    :escalation_count, :last_actor
                )
                """,
                params,
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise ValidationError(f"Task {task.id} already exists.") from e
        finally:
            conn.close()
        logger.debug("Task added id=%s priority=%s due=%s", task.id, task.priority.value, task.due_date)

    def update(self, task: Task) -> None:
        params = self._task_params(task)
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE tasks
                SET title = :title,
                    description = :description,
                    status = :status,
                    priority = :priority,
                    created_at = :created_at,
                    updated_at = :updated_at,
                    due_at = :due_at,
                    completed_at = :completed_at,
                    snoozed_until = :snoozed_until,
                    escalation_count = :escalation_count,
                    last_actor = :last_actor
                WHERE id = :id
                """,
                params,
            )
            conn.commit()
            if cur.rowcount != 1:
                raise TaskNotFoundError(task.id)
        finally:
            conn.close()

    def delete(self, task_id: str) -> bool:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM recommendations WHERE task_id = ?", (str(task_id),))
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (str(task_id),))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    # ---- public API: recommendations ----

    def add_recommendation(self, recommendation: Recommendation) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO recommendations(
                    id, task_id, action, reasoning, confidence,
                    suggested_priority, suggested_snooze_s,
                    generated_at, expires_at, is_applied, applied_at
                )
                VALUES (
                    :id, :task_id, :action, :reasoning, :confidence,
                    :suggested_priority, :suggested_snooze_s,
                    :generated_at, :expires_at, :is_applied, :applied_at
                )
                """,
                self._recommendation_params(recommendation),
            )
            conn.commit()
        finally:
            conn.close()

    def update_recommendation(self, recommendation: Recommendation) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                UPDATE recommendations
                SET is_applied = :is_applied,
                    applied_at = :applied_at,
                    expires_at = :expires_at
                WHERE id = :id
                """,
                self._recommendation_params(recommendation),
            )
            conn.commit()
        finally:
            conn.close()

    def latest_recommendation(self, task_id: str) -> Recommendation | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM recommendations
                WHERE task_id = ?
                ORDER BY generated_at DESC
                    LIMIT 1
                """,
                (str(task_id),),
            )
            row = cur.fetchone()
            return self._row_to_recommendation(row) if row else None
        finally:
            conn.close()
