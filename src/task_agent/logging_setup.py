# src/task_agent/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

APP_LOGGER_PREFIX = "task_agent."

# Per-tick summaries from these loggers would interleave with REPL input.
LOOP_LOGGER_PREFIXES: tuple[str, ...] = ("task_agent.agents.",)

LOG_FILE_NAME = "task_agent.log"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console-only filter while a human is typing at the REPL.

    App records pass, except the agent loops which need WARNING+. Anything
    else (third-party, captured py.warnings) needs ERROR+. The file handler
    is not filtered, so loop summaries are still on disk.
    """

    def __init__(self, loop_prefixes: Iterable[str] = LOOP_LOGGER_PREFIXES) -> None:
        super().__init__()
        self._loop_prefixes = tuple(loop_prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith(APP_LOGGER_PREFIX):
            return record.levelno >= logging.ERROR
        if name.startswith(self._loop_prefixes):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/task_agent",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    quiet_agents: bool = True,
) -> Path:
    """
    Install one stderr handler and one file handler on the root logger.

    Replaces whatever handlers were there, so calling it twice does not
    duplicate output. With quiet_agents=False (no console REPL) the loop
    summaries go to stderr too. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s [%(threadName)s]: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    if quiet_agents:
        console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)
    logging.getLogger(__name__).debug("Logging to %s", log_file)
    return log_file
