# tests/test_task_models.py

from __future__ import annotations

from dataclasses import astuple
from datetime import timedelta

import pytest

from task_agent.errors import AlreadyTerminalError, InvalidStateTransitionError, StateError, ValidationError
from task_agent.tasks.task_models import (
    ALLOWED_TRANSITIONS,
    Actor,
    Task,
    TaskPriority,
    TaskStatus,
    is_valid_transition,
)

from .conftest import START


def _task(status: TaskStatus = TaskStatus.PENDING, **kw) -> Task:
    t = Task.create("Write report", now=START, **kw)
    t.status = status
    return t


def _move(task: Task, target: TaskStatus, now) -> None:
    """Drive the named operation that leads to `target`."""
    if target == TaskStatus.ACTIVE:
        task.activate(now=now)
    elif target == TaskStatus.SNOOZED:
        task.snooze(now + timedelta(hours=1), now=now)
    elif target == TaskStatus.ESCALATED:
        task.escalate(now=now)
    elif target == TaskStatus.COMPLETED:
        task.complete(now=now)
    elif target == TaskStatus.PENDING:
        task.return_to_pending(now=now)
    elif target == TaskStatus.REJECTED:
        task.reject(now=now)


def test_create_defaults_and_trims() -> None:
    t = Task.create("  Pay invoices  ", description="  ", now=START)
    assert t.title == "Pay invoices"
    assert t.description is None
    assert t.status == TaskStatus.PENDING
    assert t.priority == TaskPriority.MEDIUM
    assert t.created_at == t.updated_at == START
    assert t.escalation_count == 0
    assert len(t.id) == 32


@pytest.mark.parametrize("title", ["", "   ", None])
def test_empty_title_rejected(title) -> None:
    with pytest.raises(ValidationError):
        Task.create(title, now=START)


def test_negative_escalation_count_rejected() -> None:
    with pytest.raises(ValidationError):
        Task(
            id="x",
            title="t",
            status=TaskStatus.PENDING,
            priority=TaskPriority.LOW,
            created_at=START,
            updated_at=START,
            escalation_count=-1,
        )


@pytest.mark.parametrize(
    ("src", "dst"),
    [(s, d) for s in TaskStatus for d in TaskStatus if not s.is_terminal and d in ALLOWED_TRANSITIONS[s]],
)
def test_allowed_transitions_succeed_and_touch_updated_at(src: TaskStatus, dst: TaskStatus) -> None:
    t = _task(src)
    later = START + timedelta(minutes=5)
    _move(t, dst, later)
    assert t.status == dst
    assert t.updated_at == later


@pytest.mark.parametrize(
    ("src", "dst"),
    [
        (s, d)
        for s in TaskStatus
        for d in TaskStatus
        if not s.is_terminal and d != s and d not in ALLOWED_TRANSITIONS[s]
    ]
    + [(s, s) for s in TaskStatus if not s.is_terminal],
)
def test_disallowed_transitions_fail_with_state_error(src: TaskStatus, dst: TaskStatus) -> None:
    t = _task(src)
    before = astuple(t)
    with pytest.raises(InvalidStateTransitionError) as exc:
        _move(t, dst, START + timedelta(minutes=5))
    assert exc.value.from_status == src.value
    assert exc.value.to_status == dst.value
    assert astuple(t) == before


@pytest.mark.parametrize("terminal", [TaskStatus.COMPLETED, TaskStatus.REJECTED])
@pytest.mark.parametrize("target", list(TaskStatus))
def test_terminal_tasks_refuse_everything(terminal: TaskStatus, target: TaskStatus) -> None:
    t = _task(terminal)
    before = astuple(t)
    with pytest.raises(AlreadyTerminalError):
        _move(t, target, START + timedelta(minutes=5))
    with pytest.raises(StateError):
        t.update_title("new", now=START + timedelta(minutes=5))
    assert astuple(t) == before


def test_snooze_requires_future_time() -> None:
    t = _task()
    with pytest.raises(ValidationError):
        t.snooze(START, now=START)
    with pytest.raises(ValidationError):
        t.snooze(START - timedelta(seconds=1), now=START)
    assert t.status == TaskStatus.PENDING

    until = START + timedelta(seconds=1)
    t.snooze(until, now=START)
    assert t.status == TaskStatus.SNOOZED
    assert t.snoozed_until == until


def test_escalate_bumps_priority_and_count() -> None:
    t = _task(priority=TaskPriority.LOW)
    t.escalate(now=START)
    assert t.status == TaskStatus.ESCALATED
    assert t.priority == TaskPriority.CRITICAL
    assert t.escalation_count == 1


def test_complete_stamps_completed_at_and_clears_snooze() -> None:
    t = _task()
    t.snooze(START + timedelta(hours=2), now=START)
    done_at = START + timedelta(hours=1)
    t.complete(now=done_at)
    assert t.completed_at == done_at
    assert t.snoozed_until is None


def test_user_entry_points_record_actor() -> None:
    t = _task()
    t.activate(now=START)
    assert t.last_actor == Actor.AGENT
    t.snooze_by_user(START + timedelta(hours=1), now=START)
    assert t.last_actor == Actor.USER
    assert t.status == TaskStatus.SNOOZED


def test_overdue_and_awaken_queries() -> None:
    t = _task(due_date=START - timedelta(hours=3))
    assert t.is_overdue(START)
    assert t.overdue_by_hours(START) == pytest.approx(3.0)

    t.complete(now=START)
    assert not t.is_overdue(START)
    assert t.overdue_by_hours(START) == 0.0

    undated = _task()
    assert not undated.is_overdue(START)
    assert undated.overdue_by_hours(START) == 0.0

    s = _task()
    s.snooze(START + timedelta(hours=1), now=START)
    assert not s.should_awaken(START)
    assert s.should_awaken(START + timedelta(hours=1))


def test_is_valid_transition_table() -> None:
    assert is_valid_transition(TaskStatus.PENDING, TaskStatus.ACTIVE)
    assert not is_valid_transition(TaskStatus.ESCALATED, TaskStatus.SNOOZED)
    assert not is_valid_transition(TaskStatus.COMPLETED, TaskStatus.PENDING)
