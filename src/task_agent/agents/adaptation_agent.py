# src/task_agent/agents/adaptation_agent.py

"""Adaptation loop wiring around the learning engine."""

from __future__ import annotations

import asyncio
from datetime import timedelta

from ..core.clock import Clock, SystemClock
from ..core.tick import TickEngine, TickResult
from ..learning.adaptation import AdaptationEngine, compute_metrics
from ..learning.models import AdaptationAction, AdaptationExperience, AdaptationPercept, AdaptationResult


AdaptationTick = TickResult[AdaptationPercept, AdaptationAction, AdaptationResult, AdaptationExperience]


class AdaptationPerception:
    def __init__(self, engine: AdaptationEngine, analysis_window: timedelta) -> None:
        self._engine = engine
        self._window = analysis_window

    async def sense(self, stop: asyncio.Event) -> AdaptationPercept | None:
        return self._engine.analyze_performance(self._window)


class AdaptationPolicy:
    def __init__(self, engine: AdaptationEngine) -> None:
        self._engine = engine

    async def think(self, percept: AdaptationPercept | None, stop: asyncio.Event) -> AdaptationAction | None:
        return self._engine.decide(percept)


class AdaptationActuator:
    def __init__(self, engine: AdaptationEngine) -> None:
        self._engine = engine

    async def act(self, action: AdaptationAction | None, stop: asyncio.Event) -> AdaptationResult | None:
        return self._engine.apply(action)


class AdaptationLearner:
    def __init__(self, engine: AdaptationEngine) -> None:
        self._engine = engine

    async def learn(
        self,
        percept: AdaptationPercept | None,
        action: AdaptationAction | None,
        result: AdaptationResult | None,
        stop: asyncio.Event,
    ) -> AdaptationExperience | None:
        return self._engine.record_adaptation_experience(percept, action, result)


class AdaptationAgent:
    """
    One adaptation tick.

    The result carries metrics before/after the tick. Metrics come from the
    experience history, which an adaptation does not touch, so both snapshots
    are equal unless the scoring loop recorded something in between.
    """

    def __init__(self, engine: TickEngine, learning: AdaptationEngine) -> None:
        self.engine = engine
        self._learning = learning

    async def step(self, stop: asyncio.Event | None = None) -> AdaptationTick | None:
        before = compute_metrics(self._learning.history.snapshot())
        tick = await self.engine.step(stop)
        if tick is None:
            return None

        after = compute_metrics(self._learning.history.snapshot())
        tick.extras["metrics_before"] = before.as_dict()
        tick.extras["metrics_after"] = after.as_dict()
        tick.extras["settings_changed"] = bool(tick.result is not None and tick.result.success)
        return tick


def build_adaptation_agent(
    learning: AdaptationEngine,
    *,
    clock: Clock | None = None,
    analysis_window: timedelta = timedelta(hours=1),
) -> AdaptationAgent:
    engine = TickEngine(
        AdaptationPerception(learning, analysis_window),
        AdaptationPolicy(learning),
        AdaptationActuator(learning),
        AdaptationLearner(learning),
        clock=clock or SystemClock(),
    )
    return AdaptationAgent(engine, learning)


def describe_adaptation_tick(tick: AdaptationTick | None) -> str:
    if tick is None:
        return "adaptation tick: no work"
    exp = tick.experience
    trend = exp.trend.value if exp is not None else "-"
    analyzed = exp.experiences_analyzed if exp is not None else 0
    kind = tick.action.adaptation_type.value if tick.action is not None else "-"
    return (
        f"adaptation tick: analyzed={analyzed} trend={trend} "
        f"adaptation={kind} changed={tick.extras.get('settings_changed', False)}"
    )
