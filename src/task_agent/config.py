# src/task_agent/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

- One Settings object for the whole process.
- Every variable is optional; defaults give a working local setup.
- These are process settings (paths, cadences). The tuning knobs the agent
  adapts at runtime live in the settings store, not here.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKAGENT"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector / startup flags ----
    console_enabled: bool
    seed_sample_tasks: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    # ---- Loop cadence ----
    scoring_interval_seconds: float
    scoring_backoff_seconds: float
    adaptation_initial_delay_seconds: float
    adaptation_interval_seconds: float

    # ---- Learning ----
    experience_capacity: int
    min_experiences: int
    analysis_window_minutes: int
    batch_recommendations: int

    @staticmethod
    def from_env() -> "Settings":
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/task_agent"))

        return Settings(
            app_name=_env(_k("APP_NAME"), "task-agent"),
            log_level=_env(_k("LOG_LEVEL"), "INFO"),
            console_enabled=_env_bool(_k("CONSOLE_ENABLED"), True),
            seed_sample_tasks=_env_bool(_k("SEED_SAMPLE_TASKS"), False),
            data_dir=data_dir,
            tasks_db_path=_env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3"),
            scoring_interval_seconds=_env_float(_k("SCORING_INTERVAL_SECONDS"), 5.0),
            scoring_backoff_seconds=_env_float(_k("SCORING_BACKOFF_SECONDS"), 10.0),
            adaptation_initial_delay_seconds=_env_float(_k("ADAPTATION_INITIAL_DELAY_SECONDS"), 60.0),
            adaptation_interval_seconds=_env_float(_k("ADAPTATION_INTERVAL_SECONDS"), 300.0),
            # Both floored at the trend minimum of 5 experiences.
            experience_capacity=max(5, _env_int(_k("EXPERIENCE_CAPACITY"), 100)),
            min_experiences=max(5, _env_int(_k("MIN_EXPERIENCES"), 5)),
            analysis_window_minutes=max(1, _env_int(_k("ANALYSIS_WINDOW_MINUTES"), 60)),
            batch_recommendations=max(1, _env_int(_k("BATCH_RECOMMENDATIONS"), 1)),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
