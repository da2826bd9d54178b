# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from task_agent.core.clock import FrozenClock
from task_agent.core.state import AppState
from task_agent.learning.history import ExperienceHistory
from task_agent.tasks.settings_store import SettingsStore
from task_agent.tasks.task_store import TaskStore

from .fakes import FakeSettingsRepo, FakeTaskRepo

START = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(START)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal process settings compatible with AppState and the scheduler.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="task-agent-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        console_enabled=False,
        seed_sample_tasks=False,
        scoring_interval_seconds=0.0,
        scoring_backoff_seconds=0.0,
        adaptation_initial_delay_seconds=0.0,
        adaptation_interval_seconds=0.0,
        experience_capacity=100,
        min_experiences=5,
        analysis_window_minutes=60,
        batch_recommendations=1,
    )


@pytest.fixture()
def task_store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def settings_store(settings: SimpleNamespace) -> SettingsStore:
    return SettingsStore(settings.tasks_db_path)


@pytest.fixture()
def state(settings: SimpleNamespace, task_store: TaskStore, settings_store: SettingsStore, clock: FrozenClock) -> AppState:
    """
    AppState on real SQLite stores in tmp_path and a frozen clock.

    Store correctness is part of what we want to test, so no fakes here.
    """
    return AppState(
        settings=settings,
        task_store=task_store,
        settings_store=settings_store,
        clock=clock,
        history=ExperienceHistory(settings.experience_capacity),
    )


@pytest.fixture()
def task_repo() -> FakeTaskRepo:
    return FakeTaskRepo()


@pytest.fixture()
def settings_repo() -> FakeSettingsRepo:
    return FakeSettingsRepo()
