# src/task_agent/tasks/recommendation_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from ..core.clock import utc_now
from ..errors import ValidationError
from .task_models import TaskPriority


class RecommendedAction(StrEnum):
    ESCALATE = "escalate"
    AWAKEN = "awaken"
    ACTIVATE = "activate"
    SNOOZE = "snooze"
    RETURN_TO_PENDING = "return_to_pending"
    COMPLETE = "complete"


@dataclass(slots=True)
class Recommendation:
    """
    A time-bounded, confidence-scored suggestion for one task.

    Valid while unapplied and not yet expired.
    """

    id: str
    task_id: str
    action: RecommendedAction
    reasoning: str
    confidence: float
    generated_at: datetime
    expires_at: datetime

    suggested_priority: TaskPriority | None = None
    suggested_snooze: timedelta | None = None
    is_applied: bool = False
    applied_at: datetime | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValidationError("Recommendation confidence must be between 0.0 and 1.0.")
        if self.expires_at < self.generated_at:
            raise ValidationError("Recommendation cannot expire before it was generated.")

    @classmethod
    def create(
        cls,
        *,
        task_id: str,
        action: RecommendedAction,
        reasoning: str,
        confidence: float,
        validity: timedelta,
        suggested_priority: TaskPriority | None = None,
        suggested_snooze: timedelta | None = None,
        now: datetime | None = None,
    ) -> Recommendation:
        now = now or utc_now()
        return cls(
            id=uuid.uuid4().hex,
            task_id=task_id,
            action=action,
            reasoning=reasoning,
            confidence=float(confidence),
            generated_at=now,
            expires_at=now + validity,
            suggested_priority=suggested_priority,
            suggested_snooze=suggested_snooze,
        )

    def is_valid(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        return not self.is_applied and now < self.expires_at

    def meets_confidence(self, threshold: float) -> bool:
        return self.confidence >= threshold

    def mark_applied(self, *, now: datetime | None = None) -> None:
        self.is_applied = True
        self.applied_at = now or utc_now()
