# src/task_agent/learning/models.py

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum

from ..core.clock import utc_now
from ..tasks.tuning import TuningSettings


class PerformanceTrend(StrEnum):
    STABLE = "stable"
    DEGRADING = "degrading"
    IMPROVING = "improving"
    INSUFFICIENT_DATA = "insufficient_data"


class AdaptationType(StrEnum):
    INCREASE_CAPACITY = "increase_capacity"
    DECREASE_CAPACITY = "decrease_capacity"
    REDUCE_ESCALATION_THRESHOLD = "reduce_escalation_threshold"
    INCREASE_CONFIDENCE_THRESHOLD = "increase_confidence_threshold"


@dataclass(frozen=True, slots=True)
class ScoringExperience:
    """Summary of one scoring tick, kept in the experience history."""

    tasks_processed: int
    tasks_scored: int
    actions_executed: int
    successful_actions: int
    average_urgency: float
    max_urgency: float
    summary: str = ""
    recorded_at: datetime = field(default_factory=utc_now)

    @property
    def success_rate(self) -> float:
        if self.actions_executed <= 0:
            return 1.0
        return self.successful_actions / self.actions_executed


@dataclass(frozen=True, slots=True)
class SystemStatistics:
    active: int = 0
    pending: int = 0
    snoozed: int = 0
    escalated: int = 0
    completed: int = 0
    rejected: int = 0
    overdue: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class PerformanceMetrics:
    average_urgency: float
    max_urgency: float
    success_rate: float
    task_load: float
    action_rate: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class AdaptationPercept:
    experiences: tuple[ScoringExperience, ...]
    settings: TuningSettings
    statistics: SystemStatistics
    analysis_window: timedelta
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True, slots=True)
class AdaptationAction:
    adaptation_type: AdaptationType
    updated_settings: TuningSettings | None
    reasoning: str
    confidence: float
    # The settings the decision was computed from; used for compare-and-swap.
    based_on: TuningSettings | None = None


@dataclass(frozen=True, slots=True)
class AdaptationResult:
    action: AdaptationAction
    success: bool
    error: str | None = None
    previous_settings: TuningSettings | None = None
    new_settings: TuningSettings | None = None


@dataclass(frozen=True, slots=True)
class AdaptationExperience:
    experiences_analyzed: int
    adaptation_triggered: bool
    trend: PerformanceTrend
    metrics: PerformanceMetrics
    summary: str
