# src/task_agent/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..learning.history import ExperienceHistory
from ..tasks.task_queue import TaskQueue
from ..tasks.user_actions import UserActions
from .clock import Clock, SystemClock
from .ports import SettingsRepo, TaskRepo


@dataclass
class AppState:
    """
    Long-lived objects shared by the agent loops and the host.

    Everything per-tick (engines, queues) is built on demand from these.
    """

    # Process settings (config.Settings or any object with the same attributes).
    settings: Any

    task_store: TaskRepo
    settings_store: SettingsRepo
    clock: Clock = field(default_factory=SystemClock)
    history: ExperienceHistory = field(default_factory=ExperienceHistory)

    def user_actions(self) -> UserActions:
        return UserActions(self.task_store, self.settings_store, self.clock)

    def task_queue(self) -> TaskQueue:
        return TaskQueue(self.task_store, self.settings_store, self.clock)
