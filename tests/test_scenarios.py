# tests/test_scenarios.py

"""End-to-end ticks over the SQLite stores with a frozen clock."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import timedelta

import pytest

from task_agent.agents.adaptation_agent import build_adaptation_agent, describe_adaptation_tick
from task_agent.agents.scoring_agent import build_scoring_agent, describe_scoring_tick
from task_agent.learning.adaptation import AdaptationEngine
from task_agent.learning.models import AdaptationType, ScoringExperience
from task_agent.tasks.recommendation_models import RecommendedAction
from task_agent.tasks.task_api import create_task, seed_sample_tasks, stats
from task_agent.tasks.task_models import TaskPriority, TaskStatus

from .conftest import START
from .fakes import FlakyTaskStore


def _learning(state) -> AdaptationEngine:
    return AdaptationEngine(state.task_store, state.settings_store, state.history, state.clock)


def _scoring_agent(state, batch_size: int = 1):
    return build_scoring_agent(
        state.task_store,
        state.settings_store,
        _learning(state),
        clock=state.clock,
        batch_size=batch_size,
    )


@pytest.mark.asyncio
async def test_overdue_critical_task_is_escalated(state) -> None:
    state.user_actions().update_setting("escalation_threshold_hours", "1")
    task = create_task(state, "Fix prod", priority=TaskPriority.CRITICAL, due_in_hours=-2)

    tick = await _scoring_agent(state).step(asyncio.Event())

    assert tick is not None
    (result,) = tick.result
    assert result.success
    assert result.action == RecommendedAction.ESCALATE
    assert result.new_status == TaskStatus.ESCALATED

    stored = state.task_store.get(task.id)
    assert stored.status == TaskStatus.ESCALATED
    assert stored.escalation_count == 1

    rec = state.task_store.latest_recommendation(task.id)
    assert rec.confidence == 0.95
    assert rec.is_applied
    assert rec.applied_at == START

    assert tick.extras["tasks_evaluated"] == 1
    assert len(state.history) == 1
    assert "actions=escalate ok=1/1" in describe_scoring_tick(tick)


@pytest.mark.asyncio
async def test_snoozed_task_is_awakened(state, clock) -> None:
    task = create_task(state, "Later")
    state.user_actions().snooze(task.id, timedelta(minutes=30))

    clock.advance(minutes=31)
    tick = await _scoring_agent(state).step()

    assert tick.action[0].action == RecommendedAction.AWAKEN
    assert state.task_store.get(task.id).status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_no_activation_when_at_capacity(state) -> None:
    state.user_actions().update_setting("max_active_tasks", "1")
    busy = create_task(state, "busy")
    state.user_actions().activate(busy.id)
    urgent = create_task(state, "urgent", priority=TaskPriority.CRITICAL, due_in_hours=0.5)

    # The recommender sees capacity full and proposes nothing for the pending task.
    tick = await _scoring_agent(state).step()
    assert tick.action is None
    assert state.task_store.get(urgent.id).status == TaskStatus.PENDING
    assert tick.experience.actions_executed == 0


@pytest.mark.asyncio
async def test_empty_store_is_a_no_work_tick(state) -> None:
    tick = await _scoring_agent(state).step()
    assert tick is None
    assert describe_scoring_tick(tick) == "scoring tick: no work"
    assert len(state.history) == 0


def _busy_with_high_urgency_history(state) -> None:
    for i in range(9):
        t = create_task(state, f"t{i}")
        state.user_actions().activate(t.id)
    for _ in range(5):
        state.history.append(
            ScoringExperience(
                tasks_processed=9,
                tasks_scored=9,
                actions_executed=1,
                successful_actions=1,
                average_urgency=0.8,
                max_urgency=0.9,
                recorded_at=START,
            )
        )


@pytest.mark.asyncio
async def test_adaptation_tick_raises_capacity(state) -> None:
    _busy_with_high_urgency_history(state)

    tick = await build_adaptation_agent(_learning(state), clock=state.clock).step()

    assert tick.action.adaptation_type == AdaptationType.INCREASE_CAPACITY
    assert tick.result.success
    assert tick.extras["settings_changed"] is True
    assert tick.extras["metrics_before"] == tick.extras["metrics_after"]
    assert state.settings_store.get().max_active_tasks == 15
    assert "adaptation=increase_capacity changed=True" in describe_adaptation_tick(tick)


@pytest.mark.asyncio
async def test_adaptation_tick_without_history_is_no_work(state) -> None:
    assert await build_adaptation_agent(_learning(state), clock=state.clock).step() is None


def test_seed_sample_tasks_once(state) -> None:
    assert seed_sample_tasks(state) == 7
    assert seed_sample_tasks(state) == 0

    s = stats(state)
    assert s.active == 1
    assert s.snoozed == 1
    assert s.pending == 5
    assert s.overdue == 1
    assert state.settings_store.count_rows() == 1


@pytest.mark.asyncio
async def test_refused_activation_is_recorded_in_result(state) -> None:
    state.user_actions().update_setting("max_active_tasks", "1")
    create_task(state, "first", priority=TaskPriority.CRITICAL, due_in_hours=0.5)
    create_task(state, "second", priority=TaskPriority.CRITICAL, due_in_hours=0.5)

    # Both are planned against the same free slot; only one can take it.
    tick = await _scoring_agent(state, batch_size=2).step()

    assert [a.action for a in tick.action] == [RecommendedAction.ACTIVATE, RecommendedAction.ACTIVATE]
    (won,) = [r for r in tick.result if r.success]
    (refused,) = [r for r in tick.result if not r.success]
    assert won.new_status == TaskStatus.ACTIVE
    assert "capacity" in refused.error
    assert refused.new_status is None

    assert state.task_store.get(refused.task_id).status == TaskStatus.PENDING
    assert not state.task_store.latest_recommendation(refused.task_id).is_applied
    assert state.task_store.latest_recommendation(won.task_id).is_applied

    assert tick.experience.actions_executed == 2
    assert tick.experience.successful_actions == 1
    assert "ok=1/2" in describe_scoring_tick(tick)


@pytest.mark.asyncio
async def test_failing_action_does_not_stop_the_rest_of_the_batch(state) -> None:
    state.user_actions().update_setting("escalation_threshold_hours", "1")
    broken = create_task(state, "broken", priority=TaskPriority.CRITICAL, due_in_hours=-2)
    fine = create_task(state, "fine", priority=TaskPriority.CRITICAL, due_in_hours=-2)
    state.task_store = FlakyTaskStore(state.settings.tasks_db_path, fail_updates={broken.id})

    tick = await _scoring_agent(state, batch_size=2).step()

    results = {r.task_id: r for r in tick.result}
    assert not results[broken.id].success
    assert results[broken.id].error == "database is locked"
    assert results[fine.id].success
    assert results[fine.id].new_status == TaskStatus.ESCALATED

    assert state.task_store.get(broken.id).status == TaskStatus.PENDING
    assert state.task_store.get(fine.id).status == TaskStatus.ESCALATED
    assert not state.task_store.latest_recommendation(broken.id).is_applied

    assert len(state.history) == 1
    assert tick.experience.successful_actions == 1


@pytest.mark.asyncio
async def test_bookkeeping_failure_after_change_is_a_failed_result(state) -> None:
    state.user_actions().update_setting("escalation_threshold_hours", "1")
    task = create_task(state, "late", priority=TaskPriority.CRITICAL, due_in_hours=-2)
    state.task_store = FlakyTaskStore(state.settings.tasks_db_path, fail_recommendation_updates=True)

    tick = await _scoring_agent(state).step()

    (result,) = tick.result
    assert not result.success
    assert result.error == "database is locked"

    # The transition itself went through; only marking the recommendation failed.
    assert state.task_store.get(task.id).status == TaskStatus.ESCALATED
    assert not state.task_store.latest_recommendation(task.id).is_applied
    assert len(state.history) == 1
    assert tick.experience.successful_actions == 0


@pytest.mark.asyncio
async def test_settings_write_failure_is_a_failed_adaptation(state, monkeypatch) -> None:
    _busy_with_high_urgency_history(state)
    before = state.settings_store.ensure_exists()

    def locked(settings, *, expected_updated_at=None) -> None:
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(state.settings_store, "save", locked)

    tick = await build_adaptation_agent(_learning(state), clock=state.clock).step()

    assert tick.action.adaptation_type == AdaptationType.INCREASE_CAPACITY
    assert not tick.result.success
    assert tick.result.error == "database is locked"
    assert tick.result.previous_settings == before
    assert tick.extras["settings_changed"] is False
    assert tick.experience is not None
    assert state.settings_store.get().max_active_tasks == 10
