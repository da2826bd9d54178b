# tests/test_scoring.py

from __future__ import annotations

from datetime import timedelta

import pytest

from task_agent.tasks.scoring import (
    PRIORITY_WEIGHTS,
    ScoringEngine,
    filter_by_urgency,
    most_urgent,
    time_weight,
)
from task_agent.tasks.task_models import Task, TaskPriority, TaskStatus
from task_agent.tasks.tuning import TuningSettings

from .conftest import START
from .fakes import FakeSettingsRepo, FakeTaskRepo


def _task(priority: TaskPriority = TaskPriority.MEDIUM, due_hours: float | None = None, **kw) -> Task:
    due = START + timedelta(hours=due_hours) if due_hours is not None else None
    return Task.create(kw.pop("title", "t"), priority=priority, due_date=due, now=kw.pop("now", START), **kw)


def test_weights_combine_into_urgency(clock) -> None:
    engine = ScoringEngine(clock)
    t = _task(TaskPriority.HIGH, due_hours=3)
    s = engine.score(t, TuningSettings(updated_at=START))

    assert s.priority_weight == 0.75
    assert s.time_weight == 0.85
    assert s.status_weight == 0.60
    assert s.urgency == pytest.approx(0.40 * 0.75 + 0.35 * 0.85 + 0.25 * 0.60)
    assert "Priority: high" in s.reasoning
    assert not s.is_overdue


@pytest.mark.parametrize(
    ("hours", "expected"),
    [
        (None, 0.30),
        (0.5, 0.95),
        (1.0, 0.95),
        (2.0, 0.85),
        (10.0, 0.70),
        (20.0, 0.55),
        (48.0, 0.40),
        (200.0, 0.25),
        (0.0, 0.80),
        (-24.0, 0.85),
        (-24.0 * 10, 1.0),
    ],
)
def test_time_weight_steps(hours, expected) -> None:
    assert time_weight(_task(due_hours=hours), START) == pytest.approx(expected)


def test_urgency_stays_in_unit_range(clock) -> None:
    engine = ScoringEngine(clock)
    settings = TuningSettings(updated_at=START)
    for priority in TaskPriority:
        for due in (None, -1000.0, -1.0, 0.5, 5.0, 1000.0):
            t = _task(priority, due_hours=due)
            for status in (TaskStatus.PENDING, TaskStatus.ACTIVE, TaskStatus.ESCALATED, TaskStatus.SNOOZED):
                t.status = status
                u = engine.score(t, settings).urgency
                assert 0.0 <= u <= 1.0


def test_urgency_monotone_in_priority(clock) -> None:
    engine = ScoringEngine(clock)
    settings = TuningSettings(updated_at=START)
    ordered = sorted(TaskPriority, key=lambda p: p.rank)
    scores = [engine.score(_task(p, due_hours=8), settings).urgency for p in ordered]
    assert scores == sorted(scores)
    assert [PRIORITY_WEIGHTS[p] for p in ordered] == [0.25, 0.50, 0.75, 1.00]


def test_urgency_monotone_in_time_within_each_range(clock) -> None:
    engine = ScoringEngine(clock)
    settings = TuningSettings(updated_at=START)

    upcoming = [engine.score(_task(due_hours=h), settings).urgency for h in (500, 72, 24, 12, 4, 1, 0.1)]
    assert upcoming == sorted(upcoming)

    overdue = [engine.score(_task(due_hours=h), settings).urgency for h in (-1, -24, -48, -96)]
    assert overdue == sorted(overdue)


def test_escalation_flag_respects_threshold_and_switch(clock) -> None:
    engine = ScoringEngine(clock)
    late = _task(TaskPriority.CRITICAL, due_hours=-2)

    s = engine.score(late, TuningSettings(escalation_threshold_hours=1, updated_at=START))
    assert s.is_overdue
    assert s.should_escalate
    assert "Needs escalation" in s.reasoning

    assert not engine.score(late, TuningSettings(escalation_threshold_hours=3, updated_at=START)).should_escalate

    off = TuningSettings(escalation_threshold_hours=1, updated_at=START).with_flags(
        auto_escalate_overdue_tasks=False, now=START
    )
    assert not engine.score(late, off).should_escalate

    late.escalate(now=START)
    assert not engine.score(late, TuningSettings(escalation_threshold_hours=1, updated_at=START)).should_escalate


def test_score_all_drops_terminal_and_orders(clock) -> None:
    engine = ScoringEngine(clock)
    settings = TuningSettings(updated_at=START)
    low = _task(TaskPriority.LOW, title="low")
    crit = _task(TaskPriority.CRITICAL, due_hours=1, title="crit")
    done = _task(TaskPriority.CRITICAL, due_hours=-5, title="done")
    done.complete(now=START)

    scored = engine.score_all([low, done, crit], settings)
    assert [s.task.title for s in scored] == ["crit", "low"]
    assert most_urgent(scored).task.title == "crit"
    assert [s.task.title for s in filter_by_urgency(scored, 0.5)] == ["crit"]
    assert most_urgent([]) is None


def test_equal_urgency_ties_break_on_age(clock) -> None:
    engine = ScoringEngine(clock)
    settings = TuningSettings(updated_at=START)
    older = _task(title="older", now=START - timedelta(hours=1))
    newer = _task(title="newer")
    scored = engine.score_all([newer, older], settings)
    assert [s.task.title for s in scored] == ["older", "newer"]


def test_gather_returns_none_without_open_tasks(clock) -> None:
    engine = ScoringEngine(clock)
    done = _task()
    done.complete(now=START)
    settings_repo = FakeSettingsRepo()

    assert engine.gather(FakeTaskRepo([done]), settings_repo) is None
    # Settings are created on first read.
    assert settings_repo.current is not None


def test_gather_scores_open_tasks(clock) -> None:
    engine = ScoringEngine(clock)
    a = _task(title="a")
    b = _task(title="b", due_hours=2)
    b.activate(now=START)

    percept = engine.gather(FakeTaskRepo([a, b]), FakeSettingsRepo())
    assert percept is not None
    assert len(percept.tasks) == 2
    assert len(percept.scored) == 2
    assert percept.active_count == 1
    assert percept.timestamp == START
    assert percept.scored[0].task.title == "b"
