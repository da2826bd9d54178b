# src/task_agent/tasks/tuning.py

"""
Tuning settings: the process-wide knobs the agent loops read and the
adaptation loop rewrites.

Instances are immutable. Every change goes through a with_*() method that
returns a new, bounds-checked object; cross-field rules are checked by
validate_consistency() right before a replacement is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta

from ..core.clock import utc_now
from ..errors import InvariantViolationError, ValidationError

MAX_ACTIVE_TASKS_RANGE = (1, 100)
ESCALATION_THRESHOLD_HOURS_RANGE = (1, 168)
CONFIDENCE_THRESHOLD_RANGE = (0.0, 1.0)
SNOOZE_DURATION_RANGE = (timedelta(minutes=1), timedelta(days=30))
VALIDITY_DURATION_RANGE = (timedelta(minutes=1), timedelta(hours=24))

# Minimum confidence threshold allowed while auto-apply is on.
AUTO_APPLY_MIN_CONFIDENCE = 0.5


@dataclass(frozen=True, slots=True)
class TuningSettings:
    max_active_tasks: int = 10
    escalation_threshold_hours: int = 24
    minimum_confidence_threshold: float = 0.75
    default_snooze_duration: timedelta = timedelta(hours=4)
    recommendation_validity_duration: timedelta = timedelta(hours=1)

    auto_apply_recommendations: bool = False
    auto_escalate_overdue_tasks: bool = True
    auto_awaken_snoozed_tasks: bool = True

    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        lo, hi = MAX_ACTIVE_TASKS_RANGE
        if not lo <= self.max_active_tasks <= hi:
            raise ValidationError(f"max_active_tasks must be between {lo} and {hi}.")

        lo, hi = ESCALATION_THRESHOLD_HOURS_RANGE
        if not lo <= self.escalation_threshold_hours <= hi:
            raise ValidationError(f"escalation_threshold_hours must be between {lo} and {hi}.")

        lo_f, hi_f = CONFIDENCE_THRESHOLD_RANGE
        if not lo_f <= self.minimum_confidence_threshold <= hi_f:
            raise ValidationError(f"minimum_confidence_threshold must be between {lo_f} and {hi_f}.")

        lo_d, hi_d = SNOOZE_DURATION_RANGE
        if not lo_d <= self.default_snooze_duration <= hi_d:
            raise ValidationError("default_snooze_duration must be between 1 minute and 30 days.")

        lo_d, hi_d = VALIDITY_DURATION_RANGE
        if not lo_d <= self.recommendation_validity_duration <= hi_d:
            raise ValidationError("recommendation_validity_duration must be between 1 minute and 24 hours.")

    def validate_consistency(self) -> None:
        if self.auto_apply_recommendations and self.minimum_confidence_threshold < AUTO_APPLY_MIN_CONFIDENCE:
            raise InvariantViolationError(
                "When auto_apply_recommendations is enabled, minimum_confidence_threshold "
                f"must be at least {AUTO_APPLY_MIN_CONFIDENCE}."
            )
        if self.recommendation_validity_duration > self.default_snooze_duration:
            raise InvariantViolationError(
                "recommendation_validity_duration must not exceed default_snooze_duration."
            )

    def clone(self, *, now: datetime | None = None) -> TuningSettings:
        return replace(self, updated_at=now or utc_now())

    # ---- copy-on-write updates ----

    def with_max_active_tasks(self, value: int, *, now: datetime | None = None) -> TuningSettings:
        return replace(self, max_active_tasks=int(value), updated_at=now or utc_now())

    def with_escalation_threshold_hours(self, value: int, *, now: datetime | None = None) -> TuningSettings:
        return replace(self, escalation_threshold_hours=int(value), updated_at=now or utc_now())

    def with_minimum_confidence_threshold(self, value: float, *, now: datetime | None = None) -> TuningSettings:
        return replace(self, minimum_confidence_threshold=float(value), updated_at=now or utc_now())

    def with_default_snooze_duration(self, value: timedelta, *, now: datetime | None = None) -> TuningSettings:
        return replace(self, default_snooze_duration=value, updated_at=now or utc_now())

    def with_recommendation_validity_duration(
        self, value: timedelta, *, now: datetime | None = None
    ) -> TuningSettings:
        return replace(self, recommendation_validity_duration=value, updated_at=now or utc_now())

    def with_flags(
        self,
        *,
        auto_apply_recommendations: bool | None = None,
        auto_escalate_overdue_tasks: bool | None = None,
        auto_awaken_snoozed_tasks: bool | None = None,
        now: datetime | None = None,
    ) -> TuningSettings:
        return replace(
            self,
            auto_apply_recommendations=(
                self.auto_apply_recommendations
                if auto_apply_recommendations is None
                else bool(auto_apply_recommendations)
            ),
            auto_escalate_overdue_tasks=(
                self.auto_escalate_overdue_tasks
                if auto_escalate_overdue_tasks is None
                else bool(auto_escalate_overdue_tasks)
            ),
            auto_awaken_snoozed_tasks=(
                self.auto_awaken_snoozed_tasks
                if auto_awaken_snoozed_tasks is None
                else bool(auto_awaken_snoozed_tasks)
            ),
            updated_at=now or utc_now(),
        )

    def same_values(self, other: TuningSettings) -> bool:
        """Field-by-field equality ignoring updated_at."""
        return replace(self, updated_at=other.updated_at) == other
