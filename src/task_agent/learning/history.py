# src/task_agent/learning/history.py

from __future__ import annotations

import threading
from collections import deque

from .models import ScoringExperience

DEFAULT_CAPACITY = 100


class ExperienceHistory:
    """
    Bounded FIFO of scoring experiences.

    Written by the scoring loop, read by the adaptation loop; the two may sit
    on different threads, so every access takes the lock. Not persisted.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._items: deque[ScoringExperience] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._items.maxlen or 0

    def append(self, experience: ScoringExperience) -> None:
        with self._lock:
            self._items.append(experience)

    def snapshot(self) -> list[ScoringExperience]:
        """Oldest first."""
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
