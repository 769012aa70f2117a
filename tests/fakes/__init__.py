"""Shared test doubles: re-export memory backends, a controllable clock and an episode builder."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from triageguard.models.episode import (
    AIAssessment,
    Episode,
    Symptoms,
    TriageAssessment,
    UrgencyLevel,
    ValidationStatus,
)
from triageguard.notifications.memory_channel import MemoryNotificationChannel, NotificationRecord
from triageguard.persistence.memory_backend import MemoryEpisodeStore


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> datetime:
        self.now += timedelta(minutes=minutes, seconds=seconds)
        return self.now

    def minutes_ago(self, minutes: float) -> datetime:
        return self.now - timedelta(minutes=minutes)


def make_episode(
    episode_id: str,
    urgency: UrgencyLevel | str | None = UrgencyLevel.ROUTINE,
    *,
    queued_at: datetime | None = None,
    supervisor: str | None = None,
    **fields: Any,
) -> Episode:
    """Build an episode; with ``queued_at`` it is already pending in the queue."""
    triage = None
    if urgency is not None:
        triage = TriageAssessment(
            urgency_level=urgency,
            rule_based_score=50,
            final_score=55,
            ai_assessment=AIAssessment(used=True, confidence=0.8, reasoning="pattern match"),
        )
    data: dict[str, Any] = {
        "episode_id": episode_id,
        "patient_id": f"patient-{episode_id}",
        "symptoms": Symptoms(primary_complaint="headache", severity=5, duration="2 days"),
        "triage_assessment": triage,
    }
    if queued_at is not None:
        data.update(
            validation_status=ValidationStatus.PENDING,
            queued_at=queued_at,
            urgency_level=urgency,
            assigned_supervisor=supervisor,
        )
    data.update(fields)
    return Episode(**data)


__all__ = [
    "FrozenClock",
    "MemoryEpisodeStore",
    "MemoryNotificationChannel",
    "NotificationRecord",
    "make_episode",
]
