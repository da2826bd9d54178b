# src/task_agent/agents/scheduler.py

from __future__ import annotations

"""
Dual-loop scheduler.

Two long-lived polling loops share one asyncio event loop:
- scoring loop: short interval after a tick that did work, longer back-off after
  a no-work tick or an exception;
- adaptation loop: startup delay, then a fixed interval whatever happened.

Each iteration builds a fresh agent through a factory, runs exactly one tick,
logs a one-line summary and then sleeps. The stop event interrupts the sleep;
a tick already running is allowed to finish.

The loops normally live in a background thread with their own event loop
(see start_agents_in_background), so a blocking console can run in the main
thread.
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Protocol

from ..learning.adaptation import AdaptationEngine
from .adaptation_agent import build_adaptation_agent, describe_adaptation_tick
from .scoring_agent import build_scoring_agent, describe_scoring_tick

if TYPE_CHECKING:
    from ..core.state import AppState

logger = logging.getLogger(__name__)

SCORING_INTERVAL_SECONDS = 5.0
SCORING_BACKOFF_SECONDS = 10.0
ADAPTATION_INITIAL_DELAY_SECONDS = 60.0
ADAPTATION_INTERVAL_SECONDS = 300.0


class TickRunner(Protocol):
    async def step(self, stop: asyncio.Event | None = None) -> Any | None: ...


async def _sleep_or_stop(stop: asyncio.Event, seconds: float) -> bool:
    """Sleep up to `seconds`; return True if the stop event fired first."""
    if stop.is_set():
        return True
    if seconds <= 0:
        await asyncio.sleep(0)
        return stop.is_set()
    try:
        await asyncio.wait_for(stop.wait(), timeout=seconds)
    except TimeoutError:
        return False
    return True


async def run_tick_loop(
        name: str,
        factory: Callable[[], TickRunner],
        stop: asyncio.Event,
        *,
        work_interval: float,
        idle_interval: float,
        error_interval: float | None = None,
        initial_delay: float = 0.0,
        describe: Callable[[Any], str] | None = None,
) -> int:
    """
    Generic polling loop around one tick runner.

    Returns the number of ticks attempted (handy for tests). Exceptions from a
    tick are logged and handled like a no-work tick; the loop keeps going.
    """
    work_s = max(0.0, float(work_interval))
    idle_s = max(0.0, float(idle_interval))
    error_s = idle_s if error_interval is None else max(0.0, float(error_interval))

    ticks = 0
    logger.info("%s loop started", name)

    if initial_delay > 0 and await _sleep_or_stop(stop, float(initial_delay)):
        logger.info("%s loop stopped before first tick", name)
        return ticks

    while not stop.is_set():
        ticks += 1
        try:
            runner = factory()
            tick = await runner.step(stop)
        except Exception:
            logger.exception("%s tick failed", name)
            delay = error_s
        else:
            summary = describe(tick) if describe is not None else f"{name} tick done={tick is not None}"
            if tick is None:
                logger.debug("%s", summary)
                delay = idle_s
            else:
                logger.info("%s", summary)
                delay = work_s

        if await _sleep_or_stop(stop, delay):
            break

    logger.info("%s loop stopped after %d tick(s)", name, ticks)
    return ticks


def _learning_engine(state: AppState) -> AdaptationEngine:
    return AdaptationEngine(
        state.task_store,
        state.settings_store,
        state.history,
        state.clock,
        min_experiences=int(getattr(state.settings, "min_experiences", 5)),
    )


async def run_scoring_loop(state: AppState, stop: asyncio.Event) -> int:
    settings = state.settings
    batch = int(getattr(settings, "batch_recommendations", 1))

    def factory() -> TickRunner:
        return build_scoring_agent(
            state.task_store,
            state.settings_store,
            _learning_engine(state),
            clock=state.clock,
            batch_size=batch,
        )

    backoff = float(getattr(settings, "scoring_backoff_seconds", SCORING_BACKOFF_SECONDS))
    return await run_tick_loop(
        "scoring",
        factory,
        stop,
        work_interval=float(getattr(settings, "scoring_interval_seconds", SCORING_INTERVAL_SECONDS)),
        idle_interval=backoff,
        error_interval=backoff,
        describe=describe_scoring_tick,
    )


async def run_adaptation_loop(state: AppState, stop: asyncio.Event) -> int:
    settings = state.settings
    window = timedelta(minutes=float(getattr(settings, "analysis_window_minutes", 60)))

    def factory() -> TickRunner:
        return build_adaptation_agent(_learning_engine(state), clock=state.clock, analysis_window=window)

    interval = float(getattr(settings, "adaptation_interval_seconds", ADAPTATION_INTERVAL_SECONDS))
    return await run_tick_loop(
        "adaptation",
        factory,
        stop,
        work_interval=interval,
        idle_interval=interval,
        error_interval=interval,
        initial_delay=float(
            getattr(settings, "adaptation_initial_delay_seconds", ADAPTATION_INITIAL_DELAY_SECONDS)
        ),
        describe=describe_adaptation_tick,
    )


async def run_agent_loops(state: AppState, stop: asyncio.Event) -> None:
    """Run both loops until `stop` is set. A crash in one loop never stops the other."""
    tasks = [
        asyncio.create_task(run_scoring_loop(state, stop), name="scoring-loop"),
        asyncio.create_task(run_adaptation_loop(state, stop), name="adaptation-loop"),
    ]
    try:
        results = await asyncio.gather(*tasks, return_exceptions=True)
    finally:
        for t in tasks:
            t.cancel()
        with contextlib.suppress(Exception):
            await asyncio.gather(*tasks, return_exceptions=True)

    for t, res in zip(tasks, results):
        if isinstance(res, BaseException) and not isinstance(res, asyncio.CancelledError):
            logger.error("%s exited with an error", t.get_name(), exc_info=res)


@dataclass
class AgentBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            # Loop already closed.
            logger.debug("Failed to signal agent stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self.thread.is_alive()


def start_agents_in_background(state: AppState) -> AgentBackgroundRunner | None:
    """
    Start both agent loops in a background thread with its own event loop.

    The console REPL blocks on input(), so the loops cannot share its thread.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(run_agent_loops(state, stop_event))
        except Exception:
            logger.exception("Agent loops crashed.")
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    t = threading.Thread(target=runner, name="task-agent-loops", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Agent thread did not initialize properly.")
        return None

    logger.info("Agent loops started in background thread.")
    return AgentBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
