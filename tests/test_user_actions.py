# tests/test_user_actions.py

from __future__ import annotations

from datetime import timedelta

import pytest

from task_agent.errors import AlreadyTerminalError, InvariantViolationError, TaskNotFoundError, ValidationError
from task_agent.tasks.task_api import create_task
from task_agent.tasks.task_models import Actor, TaskStatus

from .conftest import START


def test_complete_snooze_reject_record_user_actor(state) -> None:
    actions = state.user_actions()
    a = create_task(state, "a")
    b = create_task(state, "b")
    c = create_task(state, "c")

    done = actions.complete(a.id)
    assert done.status == TaskStatus.COMPLETED
    assert done.completed_at == START

    snoozed = actions.snooze(b.id)
    assert snoozed.snoozed_until == START + timedelta(hours=4)

    actions.reject(c.id)

    for t, status in ((a, TaskStatus.COMPLETED), (b, TaskStatus.SNOOZED), (c, TaskStatus.REJECTED)):
        stored = state.task_store.get(t.id)
        assert stored.status == status
        assert stored.last_actor == Actor.USER


def test_user_activate_ignores_capacity(state) -> None:
    state.user_actions().update_setting("max_active_tasks", "1")
    a = create_task(state, "a")
    b = create_task(state, "b")
    state.user_actions().activate(a.id)
    state.user_actions().activate(b.id)
    assert state.task_store.count_by_status(TaskStatus.ACTIVE) == 2


def test_unknown_task_raises_not_found(state) -> None:
    with pytest.raises(TaskNotFoundError):
        state.user_actions().complete("missing")


def test_terminal_task_cannot_be_touched(state) -> None:
    t = create_task(state, "a")
    state.user_actions().complete(t.id)
    with pytest.raises(AlreadyTerminalError):
        state.user_actions().snooze(t.id)
    assert state.task_store.get(t.id).status == TaskStatus.COMPLETED


def test_update_setting_parses_and_saves(state) -> None:
    actions = state.user_actions()
    updated = actions.update_setting("max_active_tasks", "15")
    assert updated.max_active_tasks == 15
    assert state.settings_store.get().max_active_tasks == 15

    actions.update_setting("default_snooze_duration", "90")
    assert state.settings_store.get().default_snooze_duration == timedelta(minutes=90)

    actions.update_setting("auto_escalate_overdue_tasks", "off")
    assert state.settings_store.get().auto_escalate_overdue_tasks is False


@pytest.mark.parametrize(
    ("name", "value", "error"),
    [
        ("max_active_tasks", "0", ValidationError),
        ("max_active_tasks", "101", ValidationError),
        ("max_active_tasks", "many", ValidationError),
        ("escalation_threshold_hours", "200", ValidationError),
        ("no_such_setting", "1", ValidationError),
        # Validity may not exceed the 4h default snooze.
        ("recommendation_validity_duration", "300", InvariantViolationError),
        ("default_snooze_duration", "inf", ValidationError),
        ("recommendation_validity_duration", "1e300", ValidationError),
    ],
)
def test_bad_setting_update_leaves_stored_value(state, name, value, error) -> None:
    before = state.settings_store.ensure_exists()
    with pytest.raises(error):
        state.user_actions().update_setting(name, value)
    assert state.settings_store.get() == before


def test_auto_apply_requires_confidence_floor(state) -> None:
    actions = state.user_actions()
    actions.update_setting("minimum_confidence_threshold", "0.4")
    with pytest.raises(InvariantViolationError):
        actions.update_setting("auto_apply_recommendations", "true")
    assert state.settings_store.get().auto_apply_recommendations is False
