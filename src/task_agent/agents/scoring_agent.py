# src/task_agent/agents/scoring_agent.py

"""
Scoring/action loop wiring.

Sense  - read open tasks + settings and score them once
Think  - turn the most urgent task(s) into persisted recommendations
Act    - execute each recommendation through the task queue
Learn  - summarise the tick into the shared experience history
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..core.clock import Clock, SystemClock
from ..core.ports import SettingsRepo, TaskRepo
from ..core.tick import TickEngine, TickResult
from ..learning.adaptation import AdaptationEngine
from ..learning.models import ScoringExperience
from ..tasks.recommendation import RecommendationEngine, TaskAction
from ..tasks.recommendation_models import RecommendedAction
from ..tasks.scoring import ScoringEngine, TaskPercept
from ..tasks.task_models import TaskStatus
from ..tasks.task_queue import TaskQueue

logger = logging.getLogger(__name__)

ScoringActions = tuple[TaskAction, ...]


@dataclass(frozen=True, slots=True)
class TaskActionResult:
    task_id: str
    action: RecommendedAction
    success: bool
    error: str | None = None
    new_status: TaskStatus | None = None


ScoringResults = tuple[TaskActionResult, ...]
ScoringTick = TickResult[TaskPercept, ScoringActions, ScoringResults, ScoringExperience]


class ScoringPerception:
    def __init__(self, engine: ScoringEngine, task_repo: TaskRepo, settings_repo: SettingsRepo) -> None:
        self._engine = engine
        self._tasks = task_repo
        self._settings = settings_repo

    async def sense(self, stop: asyncio.Event) -> TaskPercept | None:
        return self._engine.gather(self._tasks, self._settings)


class ScoringPolicy:
    def __init__(self, recommender: RecommendationEngine, *, batch_size: int = 1) -> None:
        self._recommender = recommender
        self._batch_size = max(1, int(batch_size))

    async def think(self, percept: TaskPercept | None, stop: asyncio.Event) -> ScoringActions | None:
        if percept is None or not percept.scored:
            return None
        actions = self._recommender.recommend_batch(percept.scored, self._batch_size, percept.settings)
        return tuple(actions) or None


class ScoringActuator:
    """
    Executes decided actions one by one.

    A failing action is recorded in its result and does not stop the others;
    nothing is retried.
    """

    def __init__(self, queue: TaskQueue, recommender: RecommendationEngine, task_repo: TaskRepo) -> None:
        self._queue = queue
        self._recommender = recommender
        self._tasks = task_repo

    async def act(self, actions: ScoringActions | None, stop: asyncio.Event) -> ScoringResults | None:
        if not actions:
            return None
        return tuple(self._execute(a) for a in actions)

    def _execute(self, action: TaskAction) -> TaskActionResult:
        task_id = action.task.id
        try:
            ok = self._dispatch(action)
            if ok and action.recommendation is not None:
                self._recommender.mark_applied(action.recommendation)
            current = self._tasks.get(task_id) if ok else None
        except Exception as e:
            logger.warning("Action %s failed for task %s: %s", action.action.value, task_id, e, exc_info=True)
            return TaskActionResult(task_id=task_id, action=action.action, success=False, error=str(e))

        if not ok:
            return TaskActionResult(
                task_id=task_id,
                action=action.action,
                success=False,
                error=_refusal_reason(action.action),
            )

        logger.info("Action %s applied to task %s", action.action.value, task_id)
        return TaskActionResult(
            task_id=task_id,
            action=action.action,
            success=True,
            new_status=current.status if current is not None else None,
        )

    def _dispatch(self, action: TaskAction) -> bool:
        task_id = action.task.id
        kind = action.action
        if kind == RecommendedAction.ESCALATE:
            return self._queue.escalate(task_id)
        if kind in (RecommendedAction.AWAKEN, RecommendedAction.RETURN_TO_PENDING):
            return self._queue.return_to_pending(task_id)
        if kind == RecommendedAction.ACTIVATE:
            return self._queue.activate(task_id)
        if kind == RecommendedAction.SNOOZE:
            snooze = action.recommendation.suggested_snooze if action.recommendation else None
            return self._queue.snooze(task_id, snooze)
        if kind == RecommendedAction.COMPLETE:
            return self._queue.complete(task_id)
        raise ValueError(f"Unknown action: {kind}")


def _refusal_reason(kind: RecommendedAction) -> str:
    if kind == RecommendedAction.ACTIVATE:
        return "Task not found or no active capacity left."
    return "Task not found."


class ScoringLearner:
    def __init__(self, adaptation: AdaptationEngine) -> None:
        self._adaptation = adaptation

    async def learn(
        self,
        percept: TaskPercept | None,
        actions: ScoringActions | None,
        results: ScoringResults | None,
        stop: asyncio.Event,
    ) -> ScoringExperience | None:
        successful = sum(1 for r in results or () if r.success)
        return self._adaptation.record_experience(percept, actions, successful)


class ScoringAgent:
    """One scoring tick with loop-specific extras attached to the result."""

    def __init__(self, engine: TickEngine) -> None:
        self.engine = engine

    async def step(self, stop: asyncio.Event | None = None) -> ScoringTick | None:
        tick = await self.engine.step(stop)
        if tick is None:
            return None
        percept = tick.percept
        tick.extras["tasks_evaluated"] = len(percept.scored) if percept is not None else 0
        tick.extras["scored_tasks"] = percept.scored if percept is not None else ()
        return tick


def build_scoring_agent(
    task_repo: TaskRepo,
    settings_repo: SettingsRepo,
    adaptation: AdaptationEngine,
    *,
    clock: Clock | None = None,
    batch_size: int = 1,
) -> ScoringAgent:
    """Fresh per-tick collaborators around the long-lived stores and history."""
    clock = clock or SystemClock()
    scoring = ScoringEngine(clock)
    recommender = RecommendationEngine(task_repo, settings_repo, clock)
    queue = TaskQueue(task_repo, settings_repo, clock)
    engine = TickEngine(
        ScoringPerception(scoring, task_repo, settings_repo),
        ScoringPolicy(recommender, batch_size=batch_size),
        ScoringActuator(queue, recommender, task_repo),
        ScoringLearner(adaptation),
        clock=clock,
    )
    return ScoringAgent(engine)


def describe_scoring_tick(tick: ScoringTick | None) -> str:
    if tick is None:
        return "scoring tick: no work"
    results = tick.result or ()
    ok = sum(1 for r in results if r.success)
    top = tick.experience.max_urgency if tick.experience is not None else 0.0
    actions = ",".join(a.action.value for a in tick.action or ()) or "-"
    return (
        f"scoring tick: evaluated={tick.extras.get('tasks_evaluated', 0)} "
        f"actions={actions} ok={ok}/{len(results)} max_urgency={top:.2f}"
    )
