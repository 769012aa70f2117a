"""In-memory notification channel for unit tests: records every send."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

from pydantic import BaseModel, Field

from triageguard.core.exceptions import NotificationError
from triageguard.models.episode import Episode, HumanValidation
from triageguard.models.queue import QueueItem, QueueStatistics


class NotificationRecord(BaseModel):
    kind: str  # supervisor, care_coordinator, escalation, reminder, batch or queue_status
    episode_id: Optional[str] = None
    supervisor_id: Optional[str] = None
    is_emergency: bool = False
    reason: Optional[str] = None
    candidates: list[str] = Field(default_factory=list)
    approved: Optional[bool] = None
    wait_minutes: Optional[float] = None
    episode_ids: list[str] = Field(default_factory=list)
    total_pending: Optional[int] = None


class MemoryNotificationChannel:
    """Recording INotificationChannel.

    ``fail_kinds`` makes sends of those kinds raise NotificationError instead
    of being recorded.
    """

    def __init__(self, fail_kinds: Sequence[str] = ()) -> None:
        self.sent: list[NotificationRecord] = []
        self.fail_kinds = set(fail_kinds)

    def _record(self, record: NotificationRecord) -> str:
        if record.kind in self.fail_kinds:
            raise NotificationError(f"{record.kind} notification failed", episode_id=record.episode_id)
        self.sent.append(record)
        return f"msg-{len(self.sent)}"

    def of_kind(self, kind: str) -> list[NotificationRecord]:
        return [r for r in self.sent if r.kind == kind]

    def notify_supervisor(self, episode: Episode, supervisor_id: Optional[str] = None,
                          is_emergency: bool = False) -> str:
        return self._record(NotificationRecord(
            kind="supervisor", episode_id=episode.episode_id,
            supervisor_id=supervisor_id, is_emergency=is_emergency,
        ))

    def notify_care_coordinator(self, episode: Episode, validation: HumanValidation) -> str:
        return self._record(NotificationRecord(
            kind="care_coordinator", episode_id=episode.episode_id,
            supervisor_id=validation.supervisor_id, approved=validation.approved,
        ))

    def send_escalation_notification(self, episode: Episode, reason: str,
                                     candidate_supervisors: Sequence[str]) -> str:
        return self._record(NotificationRecord(
            kind="escalation", episode_id=episode.episode_id,
            reason=reason, candidates=list(candidate_supervisors),
        ))

    def send_validation_reminder(self, episode: Episode, supervisor_id: Optional[str],
                                 wait_minutes: float) -> str:
        return self._record(NotificationRecord(
            kind="reminder", episode_id=episode.episode_id,
            supervisor_id=supervisor_id, wait_minutes=wait_minutes,
        ))

    def send_batch_notification(self, supervisor_id: Optional[str], items: Sequence[QueueItem]) -> str:
        return self._record(NotificationRecord(
            kind="batch", supervisor_id=supervisor_id,
            episode_ids=[item.episode_id for item in items],
        ))

    def send_queue_status_update(self, statistics: QueueStatistics) -> str:
        return self._record(NotificationRecord(kind="queue_status", total_pending=statistics.total_pending))
