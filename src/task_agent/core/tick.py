# src/task_agent/core/tick.py

from __future__ import annotations

"""
Generic Sense -> Think -> Act -> Learn tick.

A TickEngine holds four collaborators and nothing else. Every phase may
return None to mean "nothing to do"; phases given None are expected to pass
None on. When all four outputs are None, step() returns None and the caller
treats the tick as no-work.

The same stop event is handed to every phase. Phases may look at it but are
not required to; the engine only checks it once, before Sense.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Protocol, TypeVar

from .clock import Clock, SystemClock

P = TypeVar("P")
A = TypeVar("A")
R = TypeVar("R")
E = TypeVar("E")

P_co = TypeVar("P_co", covariant=True)
E_co = TypeVar("E_co", covariant=True)


class PerceptionSource(Protocol[P_co]):
    async def sense(self, stop: asyncio.Event) -> P_co | None: ...


class Policy(Protocol[P, A]):
    async def think(self, percept: P | None, stop: asyncio.Event) -> A | None: ...


class Actuator(Protocol[A, R]):
    async def act(self, action: A | None, stop: asyncio.Event) -> R | None: ...


class LearningComponent(Protocol[P, A, R, E_co]):
    async def learn(
            self,
            percept: P | None,
            action: A | None,
            result: R | None,
            stop: asyncio.Event,
    ) -> E_co | None: ...


@dataclass(slots=True)
class TickResult(Generic[P, A, R, E]):
    timestamp: datetime
    percept: P | None
    action: A | None
    result: R | None
    experience: E | None
    # Per-loop extras (scored tasks, metrics before/after, ...).
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def did_work(self) -> bool:
        return any(x is not None for x in (self.percept, self.action, self.result, self.experience))


class TickEngine(Generic[P, A, R, E]):
    def __init__(
            self,
            perception: PerceptionSource[P],
            policy: Policy[P, A],
            actuator: Actuator[A, R],
            learner: LearningComponent[P, A, R, E],
            *,
            clock: Clock | None = None,
    ) -> None:
        self.perception = perception
        self.policy = policy
        self.actuator = actuator
        self.learner = learner
        self._clock = clock or SystemClock()

    async def step(self, stop: asyncio.Event | None = None) -> TickResult[P, A, R, E] | None:
        stop = stop or asyncio.Event()
        if stop.is_set():
            return None

        percept = await self.perception.sense(stop)
        action = await self.policy.think(percept, stop)
        result = await self.actuator.act(action, stop)
        experience = await self.learner.learn(percept, action, result, stop)

        if percept is None and action is None and result is None and experience is None:
            return None

        return TickResult(
            timestamp=self._clock.now(),
            percept=percept,
            action=action,
            result=result,
            experience=experience,
        )
