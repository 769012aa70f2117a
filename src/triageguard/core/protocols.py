"""Protocol interfaces for the collaborators the workflow core consumes.

Structural typing, no inheritance required, easy to test with isinstance().
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from typing import Any, Optional, Protocol, runtime_checkable

from triageguard.models.episode import Episode, HumanValidation
from triageguard.models.queue import EpisodeFilter, EpisodeIndex, KeyCondition, QueueItem, QueueStatistics


# ---------------------------------------------------------------------------
# Persistence: Episode Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IEpisodeStore(Protocol):
    """Episode table with the validation-queue and supervisor indexes.

    ``update`` takes Episode field names; ``remove`` lists fields to clear.
    With ``unless_completed`` the write is refused (ConcurrentModificationError)
    when the stored episode is already validated.
    """

    def get(self, episode_id: str) -> Episode: ...

    def put(self, episode: Episode) -> None: ...

    def update(
        self,
        episode_id: str,
        changes: dict[str, Any],
        *,
        remove: Iterable[str] = (),
        unless_completed: bool = False,
    ) -> Episode: ...

    def query(
        self,
        index: EpisodeIndex,
        key: KeyCondition,
        filter: Optional[EpisodeFilter] = None,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[Episode]: ...


# ---------------------------------------------------------------------------
# Notification Channel
# ---------------------------------------------------------------------------

@runtime_checkable
class INotificationChannel(Protocol):
    """Supervisor, care-coordinator and escalation alerts, plus reminders and queue digests."""

    def notify_supervisor(
        self, episode: Episode, supervisor_id: Optional[str] = None, is_emergency: bool = False
    ) -> str: ...

    def notify_care_coordinator(self, episode: Episode, validation: HumanValidation) -> str: ...

    def send_escalation_notification(
        self, episode: Episode, reason: str, candidate_supervisors: Sequence[str]
    ) -> str: ...

    def send_validation_reminder(
        self, episode: Episode, supervisor_id: Optional[str], wait_minutes: float
    ) -> str: ...

    def send_batch_notification(self, supervisor_id: Optional[str], items: Sequence[QueueItem]) -> str: ...

    def send_queue_status_update(self, statistics: QueueStatistics) -> str: ...


# ---------------------------------------------------------------------------
# Supervisor availability
# ---------------------------------------------------------------------------

@runtime_checkable
class IAvailabilityChecker(Protocol):
    """Chooses a backup supervisor from a tier's configured list."""

    def find_available_backup(
        self, candidates: Sequence[str], *, exclude: Collection[str] = ()
    ) -> Optional[str]: ...
