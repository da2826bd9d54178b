# src/task_agent/tasks/scoring.py

"""
Urgency scoring.

urgency = 0.40 * priority_weight + 0.35 * time_weight + 0.25 * status_weight

Every weight lies in [0, 1], so the score does too. Terminal tasks are
dropped before scoring; the output is ordered most urgent first.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from ..core.clock import Clock, SystemClock
from ..core.ports import SettingsRepo, TaskRepo
from .task_models import Task, TaskPriority, TaskStatus
from .tuning import TuningSettings

logger = logging.getLogger(__name__)

PRIORITY_FACTOR = 0.40
TIME_FACTOR = 0.35
STATUS_FACTOR = 0.25

PRIORITY_WEIGHTS: dict[TaskPriority, float] = {
    TaskPriority.CRITICAL: 1.00,
    TaskPriority.HIGH: 0.75,
    TaskPriority.MEDIUM: 0.50,
    TaskPriority.LOW: 0.25,
}

STATUS_WEIGHTS: dict[TaskStatus, float] = {
    TaskStatus.ESCALATED: 1.00,
    TaskStatus.ACTIVE: 0.80,
    TaskStatus.PENDING: 0.60,
    TaskStatus.SNOOZED: 0.20,
    TaskStatus.COMPLETED: 0.00,
    TaskStatus.REJECTED: 0.00,
}

NO_DUE_DATE_WEIGHT = 0.30
OVERDUE_BASE_WEIGHT = 0.80
OVERDUE_PER_DAY = 0.05

# (hours remaining upper bound, weight); first match wins.
DUE_SOON_STEPS: tuple[tuple[float, float], ...] = (
    (1.0, 0.95),
    (4.0, 0.85),
    (12.0, 0.70),
    (24.0, 0.55),
    (72.0, 0.40),
)
DISTANT_DUE_WEIGHT = 0.25


@dataclass(frozen=True, slots=True)
class ScoredTask:
    task: Task
    urgency: float
    priority_weight: float
    time_weight: float
    status_weight: float
    should_escalate: bool = False
    should_awaken: bool = False
    is_overdue: bool = False
    reasoning: str = ""

    def sort_key(self) -> tuple[float, int, float]:
        return (-self.urgency, -self.task.priority.rank, self.task.created_at.timestamp())


@dataclass(frozen=True, slots=True)
class TaskPercept:
    """Snapshot consumed by one scoring tick: open tasks, settings, and their scores."""

    tasks: tuple[Task, ...]
    settings: TuningSettings
    timestamp: datetime
    scored: tuple[ScoredTask, ...] = field(default_factory=tuple)
    active_count: int = 0


def time_weight(task: Task, now: datetime) -> float:
    if task.due_date is None:
        return NO_DUE_DATE_WEIGHT

    remaining = task.due_date - now
    if remaining.total_seconds() <= 0:
        overdue_days = -remaining.total_seconds() / 86400.0
        return min(1.0, OVERDUE_BASE_WEIGHT + overdue_days * OVERDUE_PER_DAY)

    hours = remaining.total_seconds() / 3600.0
    for upper, weight in DUE_SOON_STEPS:
        if hours <= upper:
            return weight
    return DISTANT_DUE_WEIGHT


def should_escalate(task: Task, settings: TuningSettings, now: datetime) -> bool:
    if task.status == TaskStatus.ESCALATED:
        return False
    if not settings.auto_escalate_overdue_tasks:
        return False
    if not task.is_overdue(now):
        return False
    return task.overdue_by_hours(now) >= settings.escalation_threshold_hours


class ScoringEngine:
    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()

    def score(self, task: Task, settings: TuningSettings, *, now: datetime | None = None) -> ScoredTask:
        now = now or self._clock.now()

        pw = PRIORITY_WEIGHTS[task.priority]
        tw = time_weight(task, now)
        sw = STATUS_WEIGHTS[task.status]
        urgency = PRIORITY_FACTOR * pw + TIME_FACTOR * tw + STATUS_FACTOR * sw

        escalate = should_escalate(task, settings, now)
        awaken = task.should_awaken(now)
        overdue = task.is_overdue(now)

        parts = [
            f"Priority: {task.priority.value} (weight: {pw:.2f})",
            f"Time factor: {tw:.2f}",
            f"Status: {task.status.value} (weight: {sw:.2f})",
        ]
        if overdue:
            parts.append("OVERDUE")
        if escalate:
            parts.append("Needs escalation")
        if awaken:
            parts.append("Ready to awaken")

        return ScoredTask(
            task=task,
            urgency=urgency,
            priority_weight=pw,
            time_weight=tw,
            status_weight=sw,
            should_escalate=escalate,
            should_awaken=awaken,
            is_overdue=overdue,
            reasoning=", ".join(parts),
        )

    def score_all(
        self,
        tasks: Iterable[Task],
        settings: TuningSettings,
        *,
        now: datetime | None = None,
    ) -> list[ScoredTask]:
        now = now or self._clock.now()
        scored = [self.score(t, settings, now=now) for t in tasks if not t.is_terminal]
        scored.sort(key=ScoredTask.sort_key)
        return scored

    def gather(self, task_repo: TaskRepo, settings_repo: SettingsRepo) -> TaskPercept | None:
        """
        Read tasks + settings and score them.

        Returns None when there is no open task (nothing to think about).
        """
        settings = settings_repo.ensure_exists()
        open_tasks = [t for t in task_repo.list_all() if not t.is_terminal]
        if not open_tasks:
            return None

        now = self._clock.now()
        scored = self.score_all(open_tasks, settings, now=now)
        active = sum(1 for t in open_tasks if t.status == TaskStatus.ACTIVE)
        return TaskPercept(
            tasks=tuple(open_tasks),
            settings=settings,
            timestamp=now,
            scored=tuple(scored),
            active_count=active,
        )


def most_urgent(scored: Iterable[ScoredTask]) -> ScoredTask | None:
    candidates = [s for s in scored if not s.task.is_terminal]
    if not candidates:
        return None
    return min(candidates, key=ScoredTask.sort_key)


def filter_by_urgency(scored: Iterable[ScoredTask], minimum: float) -> list[ScoredTask]:
    out = [s for s in scored if s.urgency >= minimum]
    out.sort(key=ScoredTask.sort_key)
    return out
