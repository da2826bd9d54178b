# src/task_agent/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- both agent loops (scoring + adaptation) in a background thread,
- the console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..agents.scheduler import AgentBackgroundRunner, start_agents_in_background
from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state, runner: AgentBackgroundRunner | None) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    if runner is not None:
        runner.stop()
        runner.join(timeout=10.0)
        if runner.is_alive():
            logger.warning("Agent loops did not stop within 10s.")

    # Stores use short-lived sqlite connections per call; close() is a no-op kept for symmetry.
    for store in (state.task_store, state.settings_store):
        try:
            store.close()
        except Exception:
            logger.debug("Store close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_dir = getattr(settings, "data_dir", ".local/task_agent")
    # Loop summaries only reach the console when nobody is typing there.
    setup_logging(log_dir=log_dir, console_level=console_level, quiet_agents=settings.console_enabled)

    logger.info("Starting %s...", getattr(settings, "app_name", "task-agent"))

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    runner = start_agents_in_background(state)

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError):
        # Not in the main thread, or the platform lacks SIGTERM.
        logger.debug("Signal handlers not installed.", exc_info=True)

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running agent loops only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        _shutdown(state, runner)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
