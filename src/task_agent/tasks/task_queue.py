# src/task_agent/tasks/task_queue.py

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..core.clock import Clock, SystemClock
from ..core.ports import SettingsRepo, TaskRepo
from .task_models import Task, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)


class TaskQueue:
    """
    Agent-side task operations by id.

    Each operation loads a fresh snapshot, runs the state-machine method and
    writes the whole task back. Methods return False when the task does not
    exist (or, for activate, when there is no capacity). State and validation
    errors from the task itself propagate to the caller.
    """

    def __init__(self, task_repo: TaskRepo, settings_repo: SettingsRepo, clock: Clock | None = None) -> None:
        self._tasks = task_repo
        self._settings = settings_repo
        self._clock = clock or SystemClock()

    def enqueue(
        self,
        title: str,
        *,
        description: str | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        due_date: datetime | None = None,
    ) -> Task:
        task = Task.create(
            title,
            description=description,
            priority=priority,
            due_date=due_date,
            now=self._clock.now(),
        )
        self._tasks.add(task)
        logger.info("Task enqueued id=%s priority=%s", task.id, task.priority.value)
        return task

    def activate(self, task_id: str) -> bool:
        task = self._tasks.get(task_id)
        if task is None:
            return False

        settings = self._settings.ensure_exists()
        if self._tasks.count_by_status(TaskStatus.ACTIVE) >= settings.max_active_tasks:
            logger.info("Activation refused task=%s: at capacity (%s)", task_id, settings.max_active_tasks)
            return False

        task.activate(now=self._clock.now())
        self._tasks.update(task)
        return True

    def snooze(self, task_id: str, duration: timedelta | None = None) -> bool:
        task = self._tasks.get(task_id)
        if task is None:
            return False

        if duration is None:
            duration = self._settings.ensure_exists().default_snooze_duration
        now = self._clock.now()
        task.snooze(now + duration, now=now)
        self._tasks.update(task)
        return True

    def escalate(self, task_id: str) -> bool:
        task = self._tasks.get(task_id)
        if task is None:
            return False
        task.escalate(now=self._clock.now())
        self._tasks.update(task)
        return True

    def complete(self, task_id: str) -> bool:
        task = self._tasks.get(task_id)
        if task is None:
            return False
        task.complete(now=self._clock.now())
        self._tasks.update(task)
        return True

    def return_to_pending(self, task_id: str) -> bool:
        task = self._tasks.get(task_id)
        if task is None:
            return False
        task.return_to_pending(now=self._clock.now())
        self._tasks.update(task)
        return True

    def awaken_due(self) -> int:
        """Return every snoozed task whose snooze ran out to pending."""
        settings = self._settings.ensure_exists()
        if not settings.auto_awaken_snoozed_tasks:
            return 0

        now = self._clock.now()
        count = 0
        for task in self._tasks.list_to_awaken(now):
            if not task.should_awaken(now):
                continue
            task.return_to_pending(now=now)
            self._tasks.update(task)
            count += 1
        if count:
            logger.info("Awakened %d snoozed task(s)", count)
        return count

    def escalate_overdue(self) -> int:
        """Escalate every open task overdue by at least the escalation threshold."""
        settings = self._settings.ensure_exists()
        if not settings.auto_escalate_overdue_tasks:
            return 0

        now = self._clock.now()
        count = 0
        for task in self._tasks.list_overdue(now):
            if task.status == TaskStatus.ESCALATED:
                continue
            if task.overdue_by_hours(now) < settings.escalation_threshold_hours:
                continue
            task.escalate(now=now)
            self._tasks.update(task)
            count += 1
        if count:
            logger.info("Escalated %d overdue task(s)", count)
        return count

    def next_task(self) -> Task | None:
        """Escalated work first, then pending; within a group by priority then age."""
        for status in (TaskStatus.ESCALATED, TaskStatus.PENDING):
            tasks = self._tasks.list_by_status(status)
            if tasks:
                return min(tasks, key=lambda t: (-t.priority.rank, t.created_at))
        return None
