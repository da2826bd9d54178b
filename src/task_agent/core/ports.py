# src/task_agent/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The engines depend on Protocols instead of concrete stores.
This keeps persistence swappable and makes testing easier.
"""

from typing import TYPE_CHECKING, Protocol

from .clock import Clock

if TYPE_CHECKING:
    from datetime import datetime

    from ..tasks.recommendation_models import Recommendation
    from ..tasks.task_models import Task, TaskStatus
    from ..tasks.tuning import TuningSettings

__all__ = ["Clock", "SettingsRepo", "TaskRepo"]


class TaskRepo(Protocol):
    """
    Task persistence.

    Reads return point-in-time snapshots (fresh Task objects);
    update() is a whole-entity replace keyed by id.
    """

    # Reads
    def get(self, task_id: str) -> Task | None: ...
    def list_by_status(self, status: TaskStatus) -> list[Task]: ...
    def list_overdue(self, now: datetime) -> list[Task]: ...
    def list_to_awaken(self, now: datetime) -> list[Task]: ...
    def list_all(self, status: TaskStatus | None = None) -> list[Task]: ...
    def count_by_status(self, status: TaskStatus) -> int: ...

    # Writes
    def add(self, task: Task) -> None: ...
    def update(self, task: Task) -> None: ...
    def delete(self, task_id: str) -> bool: ...

    # Recommendations
    def add_recommendation(self, recommendation: Recommendation) -> None: ...
    def update_recommendation(self, recommendation: Recommendation) -> None: ...
    def latest_recommendation(self, task_id: str) -> Recommendation | None: ...


class SettingsRepo(Protocol):
    """Single-slot tuning settings storage."""

    def get(self) -> TuningSettings | None: ...

    def save(self, settings: TuningSettings, *, expected_updated_at: datetime | None = None) -> None:
        """
        Insert or replace the singleton.

        When expected_updated_at is given, the replace only happens if the
        stored row still carries that timestamp (compare-and-swap).
        """
        ...

    def ensure_exists(self) -> TuningSettings: ...
