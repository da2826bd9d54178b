# src/task_agent/tasks/recommendation.py

"""
Recommendation engine.

Maps the most urgent scored task to at most one proposed action. Rules are
checked in order and the first match wins:

1. escalate         - overdue past the escalation threshold
2. awaken           - snooze period is over
3. activate         - pending, urgent, and capacity left
4. snooze           - low urgency while the system is near capacity
5. return_to_pending - active but no longer urgent

Every recommendation produced is persisted (unapplied) before it is returned.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from ..core.clock import Clock, SystemClock
from ..core.ports import SettingsRepo, TaskRepo
from .recommendation_models import Recommendation, RecommendedAction
from .scoring import ScoredTask
from .task_models import Task, TaskPriority, TaskStatus
from .tuning import TuningSettings

logger = logging.getLogger(__name__)

ESCALATE_CONFIDENCE = 0.95
AWAKEN_CONFIDENCE = 1.00
SNOOZE_CONFIDENCE = 0.70
RETURN_TO_PENDING_CONFIDENCE = 0.65

ACTIVATE_MIN_URGENCY = 0.70
SNOOZE_MAX_URGENCY = 0.30
SNOOZE_CAPACITY_RATIO = 0.80
RETURN_TO_PENDING_MAX_URGENCY = 0.40


@dataclass(frozen=True, slots=True)
class TaskAction:
    """One operation the scoring policy decided to perform."""

    task: Task
    action: RecommendedAction
    recommendation: Recommendation | None = None
    scored: ScoredTask | None = None


def evaluate_rules(
    scored: ScoredTask,
    settings: TuningSettings,
    active_count: int,
    *,
    now: datetime,
) -> Recommendation | None:
    """Pure rule evaluation for a single scored task."""
    task = scored.task
    validity = settings.recommendation_validity_duration

    if scored.should_escalate and task.status != TaskStatus.ESCALATED:
        return Recommendation.create(
            task_id=task.id,
            action=RecommendedAction.ESCALATE,
            reasoning=f"Task is overdue by escalation threshold. Urgency score: {scored.urgency:.2f}",
            confidence=ESCALATE_CONFIDENCE,
            validity=validity,
            suggested_priority=TaskPriority.CRITICAL,
            now=now,
        )

    if scored.should_awaken:
        return Recommendation.create(
            task_id=task.id,
            action=RecommendedAction.AWAKEN,
            reasoning="Snooze period has ended. Ready to return to pending status.",
            confidence=AWAKEN_CONFIDENCE,
            validity=validity,
            now=now,
        )

    if (
        task.status == TaskStatus.PENDING
        and scored.urgency >= ACTIVATE_MIN_URGENCY
        and active_count < settings.max_active_tasks
    ):
        return Recommendation.create(
            task_id=task.id,
            action=RecommendedAction.ACTIVATE,
            reasoning=f"High urgency score ({scored.urgency:.2f}) and capacity available for active tasks.",
            confidence=min(1.0, scored.urgency),
            validity=validity,
            now=now,
        )

    if (
        task.status in (TaskStatus.PENDING, TaskStatus.ACTIVE)
        and scored.urgency < SNOOZE_MAX_URGENCY
        and not scored.is_overdue
        and active_count >= settings.max_active_tasks * SNOOZE_CAPACITY_RATIO
    ):
        return Recommendation.create(
            task_id=task.id,
            action=RecommendedAction.SNOOZE,
            reasoning=(
                f"Low urgency score ({scored.urgency:.2f}) and system near capacity. "
                "Defer to reduce load."
            ),
            confidence=SNOOZE_CONFIDENCE,
            validity=validity,
            suggested_snooze=settings.default_snooze_duration,
            now=now,
        )

    if task.status == TaskStatus.ACTIVE and scored.urgency < RETURN_TO_PENDING_MAX_URGENCY:
        return Recommendation.create(
            task_id=task.id,
            action=RecommendedAction.RETURN_TO_PENDING,
            reasoning=f"Urgency decreased ({scored.urgency:.2f}). Consider deprioritizing to free capacity.",
            confidence=RETURN_TO_PENDING_CONFIDENCE,
            validity=validity,
            now=now,
        )

    return None


class RecommendationEngine:
    def __init__(
        self,
        task_repo: TaskRepo,
        settings_repo: SettingsRepo,
        clock: Clock | None = None,
    ) -> None:
        self._tasks = task_repo
        self._settings = settings_repo
        self._clock = clock or SystemClock()

    def recommend(
        self,
        scored_tasks: Sequence[ScoredTask],
        settings: TuningSettings | None = None,
    ) -> TaskAction | None:
        """Recommendation for the single most urgent open task, or None."""
        actions = self.recommend_batch(scored_tasks, 1, settings)
        return actions[0] if actions else None

    def recommend_batch(
        self,
        scored_tasks: Sequence[ScoredTask],
        max_recommendations: int,
        settings: TuningSettings | None = None,
    ) -> list[TaskAction]:
        if max_recommendations <= 0:
            return []
        candidates = sorted(
            (s for s in scored_tasks if not s.task.is_terminal),
            key=ScoredTask.sort_key,
        )[:max_recommendations]
        if not candidates:
            return []

        settings = settings or self._settings.ensure_exists()
        active_count = self._tasks.count_by_status(TaskStatus.ACTIVE)
        now = self._clock.now()

        actions: list[TaskAction] = []
        for scored in candidates:
            rec = evaluate_rules(scored, settings, active_count, now=now)
            if rec is None:
                continue
            self._tasks.add_recommendation(rec)
            logger.debug(
                "Recommendation task=%s action=%s confidence=%.2f",
                rec.task_id,
                rec.action.value,
                rec.confidence,
            )
            actions.append(TaskAction(task=scored.task, action=rec.action, recommendation=rec, scored=scored))
        return actions

    def should_auto_apply(self, recommendation: Recommendation, settings: TuningSettings | None = None) -> bool:
        settings = settings or self._settings.ensure_exists()
        return (
            settings.auto_apply_recommendations
            and recommendation.is_valid(self._clock.now())
            and recommendation.meets_confidence(settings.minimum_confidence_threshold)
        )

    def latest_valid(self, task_id: str) -> Recommendation | None:
        rec = self._tasks.latest_recommendation(task_id)
        if rec is None or not rec.is_valid(self._clock.now()):
            return None
        return rec

    def mark_applied(self, recommendation: Recommendation) -> None:
        recommendation.mark_applied(now=self._clock.now())
        self._tasks.update_recommendation(recommendation)
