# src/task_agent/learning/adaptation.py

"""
Learning / self-adaptation.

The scoring loop feeds one ScoringExperience per tick into the history. The
adaptation loop periodically analyses that history, picks at most one
tuning change and writes it back to the settings store.

Decision rules (first match wins):

1. avg urgency > 0.70 and active >= 90% of capacity  -> increase capacity (+5, max 100)
2. avg urgency < 0.30 and active <  50% of capacity  -> decrease capacity (-3, min 1)
3. overdue > 50% of capacity                         -> lower escalation threshold (-6h, min 1h)
4. mean action rate < 0.20                           -> raise confidence threshold (+0.05, max 1.0)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timedelta

from ..core.clock import Clock, SystemClock
from ..core.ports import SettingsRepo, TaskRepo
from ..errors import TaskAgentError
from ..tasks.recommendation import TaskAction
from ..tasks.scoring import TaskPercept
from ..tasks.task_models import TaskStatus
from ..tasks.tuning import ESCALATION_THRESHOLD_HOURS_RANGE, MAX_ACTIVE_TASKS_RANGE, TuningSettings
from .history import ExperienceHistory
from .models import (
    AdaptationAction,
    AdaptationExperience,
    AdaptationPercept,
    AdaptationResult,
    AdaptationType,
    PerformanceMetrics,
    PerformanceTrend,
    ScoringExperience,
    SystemStatistics,
)

logger = logging.getLogger(__name__)

MIN_EXPERIENCES = 5
TREND_RECENT_COUNT = 3
TREND_STABLE_DELTA = 0.05

HIGH_URGENCY = 0.70
LOW_URGENCY = 0.30
HIGH_LOAD_RATIO = 0.90
LOW_LOAD_RATIO = 0.50
OVERDUE_RATIO = 0.50
LOW_ACTION_RATE = 0.20

CAPACITY_STEP_UP = 5
CAPACITY_STEP_DOWN = 3
ESCALATION_STEP_HOURS = 6
CONFIDENCE_STEP = 0.05

_CONFIDENCE = {
    AdaptationType.INCREASE_CAPACITY: 0.80,
    AdaptationType.DECREASE_CAPACITY: 0.70,
    AdaptationType.REDUCE_ESCALATION_THRESHOLD: 0.85,
    AdaptationType.INCREASE_CONFIDENCE_THRESHOLD: 0.75,
}


def collect_statistics(task_repo: TaskRepo, now: datetime) -> SystemStatistics:
    return SystemStatistics(
        active=task_repo.count_by_status(TaskStatus.ACTIVE),
        pending=task_repo.count_by_status(TaskStatus.PENDING),
        snoozed=task_repo.count_by_status(TaskStatus.SNOOZED),
        escalated=task_repo.count_by_status(TaskStatus.ESCALATED),
        completed=task_repo.count_by_status(TaskStatus.COMPLETED),
        rejected=task_repo.count_by_status(TaskStatus.REJECTED),
        overdue=len(task_repo.list_overdue(now)),
    )


def compute_metrics(experiences: Sequence[ScoringExperience]) -> PerformanceMetrics:
    if not experiences:
        return PerformanceMetrics(0.0, 0.0, 1.0, 0.0, 0.0)
    n = len(experiences)
    return PerformanceMetrics(
        average_urgency=sum(e.average_urgency for e in experiences) / n,
        max_urgency=max(e.max_urgency for e in experiences),
        success_rate=sum(e.success_rate for e in experiences) / n,
        task_load=sum(e.tasks_processed for e in experiences) / n,
        action_rate=sum(e.actions_executed for e in experiences) / n,
    )


def determine_trend(experiences: Sequence[ScoringExperience]) -> PerformanceTrend:
    """Rising urgency means the system is falling behind, i.e. degrading."""
    if len(experiences) < MIN_EXPERIENCES:
        return PerformanceTrend.INSUFFICIENT_DATA

    recent = experiences[-TREND_RECENT_COUNT:]
    older = experiences[:-TREND_RECENT_COUNT]
    recent_avg = sum(e.average_urgency for e in recent) / len(recent)
    older_avg = sum(e.average_urgency for e in older) / len(older)

    change = recent_avg - older_avg
    if abs(change) < TREND_STABLE_DELTA:
        return PerformanceTrend.STABLE
    return PerformanceTrend.DEGRADING if change > 0 else PerformanceTrend.IMPROVING


def determine_adaptation(
    metrics: PerformanceMetrics,
    statistics: SystemStatistics,
    settings: TuningSettings,
) -> AdaptationType | None:
    capacity = settings.max_active_tasks

    if metrics.average_urgency > HIGH_URGENCY and statistics.active >= capacity * HIGH_LOAD_RATIO:
        return AdaptationType.INCREASE_CAPACITY
    if metrics.average_urgency < LOW_URGENCY and statistics.active < capacity * LOW_LOAD_RATIO:
        return AdaptationType.DECREASE_CAPACITY
    if statistics.overdue > capacity * OVERDUE_RATIO:
        return AdaptationType.REDUCE_ESCALATION_THRESHOLD
    if metrics.action_rate < LOW_ACTION_RATE:
        return AdaptationType.INCREASE_CONFIDENCE_THRESHOLD
    return None


def adapt_settings(
    adaptation: AdaptationType,
    current: TuningSettings,
    metrics: PerformanceMetrics,
    statistics: SystemStatistics,
    *,
    now: datetime | None = None,
) -> tuple[TuningSettings, str]:
    """Return (settings with the single field changed, reasoning)."""
    if adaptation == AdaptationType.INCREASE_CAPACITY:
        value = min(current.max_active_tasks + CAPACITY_STEP_UP, MAX_ACTIVE_TASKS_RANGE[1])
        return (
            current.with_max_active_tasks(value, now=now),
            f"High urgency ({metrics.average_urgency:.2f}) at capacity. "
            f"Increasing from {current.max_active_tasks} to {value}.",
        )

    if adaptation == AdaptationType.DECREASE_CAPACITY:
        value = max(current.max_active_tasks - CAPACITY_STEP_DOWN, MAX_ACTIVE_TASKS_RANGE[0])
        return (
            current.with_max_active_tasks(value, now=now),
            f"Low urgency ({metrics.average_urgency:.2f}) and underutilized. "
            f"Decreasing from {current.max_active_tasks} to {value}.",
        )

    if adaptation == AdaptationType.REDUCE_ESCALATION_THRESHOLD:
        value = max(current.escalation_threshold_hours - ESCALATION_STEP_HOURS, ESCALATION_THRESHOLD_HOURS_RANGE[0])
        return (
            current.with_escalation_threshold_hours(value, now=now),
            f"Many overdue tasks ({statistics.overdue}). "
            f"Reducing escalation threshold from {current.escalation_threshold_hours}h to {value}h.",
        )

    value = round(min(current.minimum_confidence_threshold + CONFIDENCE_STEP, 1.0), 4)
    return (
        current.with_minimum_confidence_threshold(value, now=now),
        f"Low action rate ({metrics.action_rate:.2f}). "
        f"Raising confidence threshold from {current.minimum_confidence_threshold:.2f} to {value:.2f}.",
    )


class AdaptationEngine:
    def __init__(
        self,
        task_repo: TaskRepo,
        settings_repo: SettingsRepo,
        history: ExperienceHistory | None = None,
        clock: Clock | None = None,
        *,
        min_experiences: int = MIN_EXPERIENCES,
    ) -> None:
        self._tasks = task_repo
        self._settings = settings_repo
        self._clock = clock or SystemClock()
        self.history = history if history is not None else ExperienceHistory()
        self._min_experiences = max(MIN_EXPERIENCES, min_experiences)

    # --- scoring loop side ---

    def record_experience(
        self,
        percept: TaskPercept | None,
        actions: Sequence[TaskAction] | None,
        successful_actions: int,
    ) -> ScoringExperience | None:
        """Summarise one scoring tick and push it into the history."""
        if percept is None or not percept.scored:
            return None

        urgencies = [s.urgency for s in percept.scored]
        executed = len(actions or ())
        experience = ScoringExperience(
            tasks_processed=len(percept.tasks),
            tasks_scored=len(percept.scored),
            actions_executed=executed,
            successful_actions=successful_actions,
            average_urgency=sum(urgencies) / len(urgencies),
            max_urgency=max(urgencies),
            summary=_scoring_summary(percept, actions, successful_actions),
            recorded_at=self._clock.now(),
        )
        self.history.append(experience)
        return experience

    # --- adaptation loop side ---

    def analyze_performance(self, analysis_window: timedelta = timedelta(hours=1)) -> AdaptationPercept | None:
        experiences = self.history.snapshot()
        if len(experiences) < self._min_experiences:
            logger.debug("Not enough experience for analysis (%d/%d)", len(experiences), self._min_experiences)
            return None

        settings = self._settings.ensure_exists()
        return AdaptationPercept(
            experiences=tuple(experiences),
            settings=settings,
            statistics=self.gather_statistics(),
            analysis_window=analysis_window,
            timestamp=self._clock.now(),
        )

    def gather_statistics(self) -> SystemStatistics:
        return collect_statistics(self._tasks, self._clock.now())

    def decide(self, percept: AdaptationPercept | None) -> AdaptationAction | None:
        if percept is None:
            return None

        metrics = compute_metrics(percept.experiences)
        adaptation = determine_adaptation(metrics, percept.statistics, percept.settings)
        if adaptation is None:
            return None

        updated, reasoning = adapt_settings(
            adaptation,
            percept.settings,
            metrics,
            percept.statistics,
            now=self._clock.now(),
        )
        if updated.same_values(percept.settings):
            # Already at the bound; nothing would change.
            logger.debug("Adaptation %s skipped: value already at its limit", adaptation.value)
            return None

        return AdaptationAction(
            adaptation_type=adaptation,
            updated_settings=updated,
            reasoning=reasoning,
            confidence=_CONFIDENCE[adaptation],
            based_on=percept.settings,
        )

    def apply(self, action: AdaptationAction | None) -> AdaptationResult | None:
        if action is None:
            return None

        previous = self._settings.get()
        if action.updated_settings is None:
            return AdaptationResult(action=action, success=False, error="No settings to apply", previous_settings=previous)

        expected = action.based_on.updated_at if action.based_on is not None else None
        try:
            action.updated_settings.validate_consistency()
            self._settings.save(action.updated_settings, expected_updated_at=expected)
        except TaskAgentError as e:
            logger.warning("Adaptation %s rejected: %s", action.adaptation_type.value, e)
            return AdaptationResult(action=action, success=False, error=str(e), previous_settings=previous)
        except Exception as e:
            logger.error("Adaptation %s failed to save", action.adaptation_type.value, exc_info=True)
            return AdaptationResult(action=action, success=False, error=str(e), previous_settings=previous)

        logger.info("Adaptation applied: %s (%s)", action.adaptation_type.value, action.reasoning)
        return AdaptationResult(
            action=action,
            success=True,
            previous_settings=previous,
            new_settings=action.updated_settings,
        )

    def record_adaptation_experience(
        self,
        percept: AdaptationPercept | None,
        action: AdaptationAction | None,
        result: AdaptationResult | None,
    ) -> AdaptationExperience | None:
        if percept is None:
            return None

        trend = determine_trend(percept.experiences)
        return AdaptationExperience(
            experiences_analyzed=len(percept.experiences),
            adaptation_triggered=action is not None,
            trend=trend,
            metrics=compute_metrics(percept.experiences),
            summary=_adaptation_summary(action, result, trend),
        )


def _scoring_summary(
    percept: TaskPercept,
    actions: Sequence[TaskAction] | None,
    successful_actions: int,
) -> str:
    top = percept.scored[0]
    parts = [f"Scored {len(percept.scored)} task(s); top urgency {top.urgency:.2f} ({top.task.title})"]
    if actions:
        kinds = ", ".join(a.action.value for a in actions)
        parts.append(f"actions: {kinds} ({successful_actions}/{len(actions)} ok)")
    else:
        parts.append("no action")
    return "; ".join(parts)


def _adaptation_summary(
    action: AdaptationAction | None,
    result: AdaptationResult | None,
    trend: PerformanceTrend,
) -> str:
    if action is None:
        return f"Performance trend: {trend.value}. No adaptation needed."
    if result is not None and result.success:
        return f"Performance trend: {trend.value}. Applied {action.adaptation_type.value}: {action.reasoning}"
    error = result.error if result is not None else "not applied"
    return f"Performance trend: {trend.value}. Adaptation {action.adaptation_type.value} failed: {error}"
