# src/task_agent/tasks/user_actions.py

"""
User-initiated commands.

These go through the *_by_user entry points of the state machine so the
audit trail (Task.last_actor) can tell them apart from agent moves. Errors
are not caught here: callers show the violated rule to the user.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from ..core.clock import Clock, SystemClock
from ..core.ports import SettingsRepo, TaskRepo
from ..errors import TaskNotFoundError, ValidationError
from .task_models import Task
from .tuning import TuningSettings

logger = logging.getLogger(__name__)

# Settings fields a user may change directly, with their parsers.
_SETTING_PARSERS: dict[str, Any] = {
    "max_active_tasks": int,
    "escalation_threshold_hours": int,
    "minimum_confidence_threshold": float,
    "default_snooze_duration": lambda v: timedelta(minutes=float(v)),
    "recommendation_validity_duration": lambda v: timedelta(minutes=float(v)),
    "auto_apply_recommendations": lambda v: str(v).strip().lower() in {"1", "true", "yes", "on"},
    "auto_escalate_overdue_tasks": lambda v: str(v).strip().lower() in {"1", "true", "yes", "on"},
    "auto_awaken_snoozed_tasks": lambda v: str(v).strip().lower() in {"1", "true", "yes", "on"},
}

SETTING_NAMES = tuple(_SETTING_PARSERS)


class UserActions:
    def __init__(self, task_repo: TaskRepo, settings_repo: SettingsRepo, clock: Clock | None = None) -> None:
        self._tasks = task_repo
        self._settings = settings_repo
        self._clock = clock or SystemClock()

    def _load(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def complete(self, task_id: str) -> Task:
        task = self._load(task_id)
        task.complete_by_user(now=self._clock.now())
        self._tasks.update(task)
        logger.info("User completed task %s", task_id)
        return task

    def snooze(self, task_id: str, duration: timedelta | None = None) -> Task:
        task = self._load(task_id)
        if duration is None:
            duration = self._settings.ensure_exists().default_snooze_duration
        now = self._clock.now()
        task.snooze_by_user(now + duration, now=now)
        self._tasks.update(task)
        logger.info("User snoozed task %s until %s", task_id, task.snoozed_until)
        return task

    def reject(self, task_id: str) -> Task:
        task = self._load(task_id)
        task.reject_by_user(now=self._clock.now())
        self._tasks.update(task)
        logger.info("User rejected task %s", task_id)
        return task

    def activate(self, task_id: str) -> Task:
        task = self._load(task_id)
        task.activate_by_user(now=self._clock.now())
        self._tasks.update(task)
        logger.info("User activated task %s", task_id)
        return task

    def update_setting(self, name: str, raw_value: str) -> TuningSettings:
        """
        Change one tuning field.

        Bounds are checked when the new object is built, cross-field rules
        right before saving; on any violation nothing is written.
        """
        parser = _SETTING_PARSERS.get(name)
        if parser is None:
            raise ValidationError(f"Unknown setting {name!r} (expected one of: {', '.join(SETTING_NAMES)}).")
        try:
            value = parser(raw_value)
        except (ValueError, OverflowError) as e:
            raise ValidationError(f"Invalid value for {name}: {raw_value!r}") from e

        current = self._settings.ensure_exists()
        updated = _apply_field(current, name, value, self._clock)
        updated.validate_consistency()
        self._settings.save(updated, expected_updated_at=current.updated_at)
        logger.info("User changed setting %s=%s", name, value)
        return updated


def _apply_field(current: TuningSettings, name: str, value: Any, clock: Clock) -> TuningSettings:
    now = clock.now()
    if name == "max_active_tasks":
        return current.with_max_active_tasks(value, now=now)
    if name == "escalation_threshold_hours":
        return current.with_escalation_threshold_hours(value, now=now)
    if name == "minimum_confidence_threshold":
        return current.with_minimum_confidence_threshold(value, now=now)
    if name == "default_snooze_duration":
        return current.with_default_snooze_duration(value, now=now)
    if name == "recommendation_validity_duration":
        return current.with_recommendation_validity_duration(value, now=now)
    return current.with_flags(now=now, **{name: value})
