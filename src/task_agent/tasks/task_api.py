# src/task_agent/tasks/task_api.py

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..core.state import AppState
from ..errors import ValidationError
from ..learning.adaptation import collect_statistics
from ..learning.models import SystemStatistics
from .task_models import Task, TaskPriority

logger = logging.getLogger(__name__)


def create_task(
    state: AppState,
    title: str,
    *,
    description: str | None = None,
    priority: TaskPriority | str = TaskPriority.MEDIUM,
    due_in_hours: float | None = None,
    due_date: datetime | None = None,
) -> Task:
    """
    Convenience helper for hosts: create a pending task.

    `due_in_hours` is relative to the state clock; `due_date` wins if both are given.
    """
    if isinstance(priority, str):
        priority = TaskPriority.parse(priority)
    if due_date is None and due_in_hours is not None:
        try:
            due_date = state.clock.now() + timedelta(hours=float(due_in_hours))
        except (ValueError, OverflowError) as e:
            raise ValidationError(f"Invalid due hours: {due_in_hours!r}") from e

    return state.task_queue().enqueue(
        title,
        description=description,
        priority=priority,
        due_date=due_date,
    )


def stats(state: AppState) -> SystemStatistics:
    return collect_statistics(state.task_store, state.clock.now())


# (title, description, priority, due offset in hours or None)
_SAMPLE_TASKS: tuple[tuple[str, str, TaskPriority, float | None], ...] = (
    (
        "Fix production database connection issue",
        "Users are unable to access the application due to connection timeouts. "
        "Investigate and resolve immediately.",
        TaskPriority.CRITICAL,
        -2.0,
    ),
    (
        "Deploy security patch for authentication service",
        "Critical security vulnerability identified in authentication module. "
        "Patch must be deployed before end of day.",
        TaskPriority.HIGH,
        6.0,
    ),
    (
        "Complete Q4 performance review documentation",
        "Prepare performance review documents for team members. "
        "Include metrics and improvement recommendations.",
        TaskPriority.HIGH,
        72.0,
    ),
    (
        "Refactor legacy payment processing module",
        "Technical debt cleanup: modernize payment processing code to improve maintainability and performance.",
        TaskPriority.MEDIUM,
        168.0,
    ),
    (
        "Update API documentation with new endpoints",
        "Document the newly added REST API endpoints and update the developer portal with examples.",
        TaskPriority.MEDIUM,
        None,
    ),
    (
        "Research machine learning frameworks for recommendation engine",
        "Evaluate TensorFlow, PyTorch, and scikit-learn for potential use in product recommendation system.",
        TaskPriority.LOW,
        336.0,
    ),
    (
        "Optimize image compression in media pipeline",
        "Investigate better compression algorithms to reduce storage costs while maintaining quality.",
        TaskPriority.LOW,
        None,
    ),
)

_SAMPLE_ACTIVE_INDEX = 2
_SAMPLE_SNOOZED_INDEX = 4
_SAMPLE_SNOOZE_HOURS = 8.0


def seed_sample_tasks(state: AppState) -> int:
    """
    Persist default tuning settings and, on an empty store, a fixed demo task set.

    Returns the number of tasks created (0 when the store already has tasks).
    """
    state.settings_store.ensure_exists()
    if state.task_store.list_all():
        logger.info("Task store is not empty; skipping sample tasks.")
        return 0

    now = state.clock.now()
    created = 0
    for i, (title, description, priority, offset) in enumerate(_SAMPLE_TASKS):
        due = now + timedelta(hours=offset) if offset is not None else None
        task = Task.create(title, description=description, priority=priority, due_date=due, now=now)
        if i == _SAMPLE_ACTIVE_INDEX:
            task.activate(now=now)
        elif i == _SAMPLE_SNOOZED_INDEX:
            task.snooze(now + timedelta(hours=_SAMPLE_SNOOZE_HOURS), now=now)
        state.task_store.add(task)
        created += 1

    logger.info("Seeded %d sample tasks.", created)
    return created
