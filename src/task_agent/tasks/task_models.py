# src/task_agent/tasks/task_models.py

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from ..core.clock import utc_now
from ..errors import AlreadyTerminalError, InvalidStateTransitionError, ValidationError

logger = logging.getLogger(__name__)


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    completed and rejected are terminal: once reached, the task is frozen.
    """

    PENDING = "pending"
    ACTIVE = "active"
    SNOOZED = "snoozed"
    ESCALATED = "escalated"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        return cls(raw)


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.REJECTED})


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def parse(cls, raw: str) -> TaskPriority:
        try:
            return cls(raw.strip().lower())
        except ValueError:
            allowed = ", ".join(p.value for p in cls)
            raise ValidationError(f"Unknown priority {raw!r} (expected one of: {allowed}).") from None


_PRIORITY_RANK = {
    TaskPriority.LOW: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.CRITICAL: 3,
}


class Actor(StrEnum):
    """Who drove a transition: the autonomous loop or a user command."""

    AGENT = "agent"
    USER = "user"


# from -> allowed targets. Terminal statuses have no outgoing edges.
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset(
        {TaskStatus.ACTIVE, TaskStatus.SNOOZED, TaskStatus.ESCALATED, TaskStatus.COMPLETED, TaskStatus.REJECTED}
    ),
    TaskStatus.ACTIVE: frozenset(
        {TaskStatus.PENDING, TaskStatus.SNOOZED, TaskStatus.ESCALATED, TaskStatus.COMPLETED, TaskStatus.REJECTED}
    ),
    TaskStatus.SNOOZED: frozenset(
        {TaskStatus.PENDING, TaskStatus.ACTIVE, TaskStatus.ESCALATED, TaskStatus.COMPLETED, TaskStatus.REJECTED}
    ),
    TaskStatus.ESCALATED: frozenset(
        {TaskStatus.PENDING, TaskStatus.ACTIVE, TaskStatus.COMPLETED, TaskStatus.REJECTED}
    ),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.REJECTED: frozenset(),
}


def is_valid_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS[from_status]


def _clean_title(title: str | None) -> str:
    if not title or not title.strip():
        raise ValidationError("Task title cannot be empty.")
    return title.strip()


def _clean_description(description: str | None) -> str | None:
    if description is None:
        return None
    return description.strip() or None


@dataclass(slots=True)
class Task:
    """
    A tracked task.

    Fields are public for reading and for store hydration, but every change
    goes through the named operations below: they enforce the transition
    table, refuse to touch terminal tasks, and stamp updated_at.
    """

    id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    created_at: datetime
    updated_at: datetime

    description: str | None = None
    due_date: datetime | None = None
    completed_at: datetime | None = None
    snoozed_until: datetime | None = None
    escalation_count: int = 0
    last_actor: Actor = Actor.AGENT

    def __post_init__(self) -> None:
        self.title = _clean_title(self.title)
        if self.escalation_count < 0:
            raise ValidationError("escalation_count cannot be negative.")

    @classmethod
    def create(
        cls,
        title: str,
        *,
        description: str | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        due_date: datetime | None = None,
        now: datetime | None = None,
    ) -> Task:
        now = now or utc_now()
        return cls(
            id=uuid.uuid4().hex,
            title=title,
            description=_clean_description(description),
            status=TaskStatus.PENDING,
            priority=priority,
            created_at=now,
            updated_at=now,
            due_date=due_date,
        )

    # ---- queries ----

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def is_overdue(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        return (
            self.due_date is not None
            and self.due_date < now
            and self.status != TaskStatus.COMPLETED
        )

    def overdue_by_hours(self, now: datetime | None = None) -> float:
        now = now or utc_now()
        due = self.due_date
        if due is None or not self.is_overdue(now):
            return 0.0
        return (now - due).total_seconds() / 3600.0

    def should_awaken(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        return (
            self.status == TaskStatus.SNOOZED
            and self.snoozed_until is not None
            and self.snoozed_until <= now
        )

    # ---- field edits ----

    def update_title(self, title: str, *, now: datetime | None = None) -> None:
        self._ensure_not_terminal()
        self.title = _clean_title(title)
        self._touch(now)

    def update_description(self, description: str | None, *, now: datetime | None = None) -> None:
        self._ensure_not_terminal()
        self.description = _clean_description(description)
        self._touch(now)

    def update_priority(self, priority: TaskPriority, *, now: datetime | None = None) -> None:
        self._ensure_not_terminal()
        self.priority = priority
        self._touch(now)

    def update_due_date(self, due_date: datetime | None, *, now: datetime | None = None) -> None:
        self._ensure_not_terminal()
        self.due_date = due_date
        self._touch(now)

    # ---- transitions (agent-driven) ----

    def activate(self, *, now: datetime | None = None, actor: Actor = Actor.AGENT) -> None:
        self._transition(TaskStatus.ACTIVE, actor)
        self.snoozed_until = None
        self._touch(now)

    def snooze(self, until: datetime, *, now: datetime | None = None, actor: Actor = Actor.AGENT) -> None:
        now = now or utc_now()
        self._check_transition(TaskStatus.SNOOZED)
        if until <= now:
            raise ValidationError("Snooze time must be in the future.")
        self._transition(TaskStatus.SNOOZED, actor)
        self.snoozed_until = until
        self._touch(now)

    def escalate(self, *, now: datetime | None = None, actor: Actor = Actor.AGENT) -> None:
        self._transition(TaskStatus.ESCALATED, actor)
        self.priority = TaskPriority.CRITICAL
        self.escalation_count += 1
        self._touch(now)

    def complete(self, *, now: datetime | None = None, actor: Actor = Actor.AGENT) -> None:
        now = now or utc_now()
        self._transition(TaskStatus.COMPLETED, actor)
        self.completed_at = now
        self.snoozed_until = None
        self._touch(now)

    def return_to_pending(self, *, now: datetime | None = None, actor: Actor = Actor.AGENT) -> None:
        self._transition(TaskStatus.PENDING, actor)
        self.snoozed_until = None
        self._touch(now)

    def reject(self, *, now: datetime | None = None, actor: Actor = Actor.AGENT) -> None:
        self._transition(TaskStatus.REJECTED, actor)
        self.snoozed_until = None
        self._touch(now)

    # ---- transitions (user-driven entry points) ----

    def activate_by_user(self, *, now: datetime | None = None) -> None:
        self.activate(now=now, actor=Actor.USER)

    def snooze_by_user(self, until: datetime, *, now: datetime | None = None) -> None:
        self.snooze(until, now=now, actor=Actor.USER)

    def complete_by_user(self, *, now: datetime | None = None) -> None:
        self.complete(now=now, actor=Actor.USER)

    def return_to_pending_by_user(self, *, now: datetime | None = None) -> None:
        self.return_to_pending(now=now, actor=Actor.USER)

    def reject_by_user(self, *, now: datetime | None = None) -> None:
        self.reject(now=now, actor=Actor.USER)

    # ---- internals ----

    def _ensure_not_terminal(self) -> None:
        if self.status.is_terminal:
            raise AlreadyTerminalError(self.id, self.status.value)

    def _check_transition(self, target: TaskStatus) -> None:
        self._ensure_not_terminal()
        if not is_valid_transition(self.status, target):
            raise InvalidStateTransitionError(self.status.value, target.value)

    def _transition(self, target: TaskStatus, actor: Actor) -> None:
        self._check_transition(target)
        logger.debug("Task %s %s -> %s by %s", self.id, self.status.value, target.value, actor.value)
        self.status = target
        self.last_actor = actor

    def _touch(self, now: datetime | None) -> None:
        self.updated_at = now or utc_now()
