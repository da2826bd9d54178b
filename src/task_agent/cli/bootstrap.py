# src/task_agent/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite stores, clock and experience history into AppState,
- persists default tuning settings and optionally seeds demo tasks.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.clock import SystemClock
from ..core.state import AppState
from ..learning.history import ExperienceHistory
from ..tasks.settings_store import SettingsStore
from ..tasks.task_api import seed_sample_tasks
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Tasks, recommendations and tuning settings share one SQLite file.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    state = AppState(
        settings=settings,
        task_store=TaskStore(settings.tasks_db_path),
        settings_store=SettingsStore(settings.tasks_db_path),
        clock=SystemClock(),
        history=ExperienceHistory(int(getattr(settings, "experience_capacity", 100))),
    )

    tuning = state.settings_store.ensure_exists()
    logger.debug(
        "Tuning settings loaded: max_active=%s escalation=%sh auto_apply=%s",
        tuning.max_active_tasks,
        tuning.escalation_threshold_hours,
        tuning.auto_apply_recommendations,
    )

    if getattr(settings, "seed_sample_tasks", False):
        seed_sample_tasks(state)

    return state
