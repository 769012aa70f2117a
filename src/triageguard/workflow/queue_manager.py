"""ValidationQueueManager: the logical validation queue over the episode store.

There is no separate queue storage: an episode is queued while its
``validation_status`` is pending and it carries a triage assessment. Ordering
is strict priority (emergency first), then FIFO on ``queued_at``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from statistics import fmean
from typing import Optional

from triageguard.core.config import QueueConfig
from triageguard.core.exceptions import EpisodeNotFoundError, ValidationInputError
from triageguard.core.protocols import IEpisodeStore
from triageguard.core.types import Clock, minutes_between, utc_now
from triageguard.models.episode import Episode, UrgencyLevel, ValidationStatus
from triageguard.models.escalation import DEFAULT_ESCALATION_RULES, EscalationRuleSet
from triageguard.models.queue import EpisodeFilter, EpisodeIndex, KeyCondition, QueueItem, QueueStatistics

logger = logging.getLogger(__name__)

_STAT_FIELDS = {
    UrgencyLevel.EMERGENCY: "emergency_count",
    UrgencyLevel.URGENT: "urgent_count",
    UrgencyLevel.ROUTINE: "routine_count",
    UrgencyLevel.SELF_CARE: "self_care_count",
}


class ValidationQueueManager:
    """Enqueue, order, inspect and reassign episodes awaiting validation."""

    def __init__(self, store: IEpisodeStore, rules: EscalationRuleSet = DEFAULT_ESCALATION_RULES,
                 settings: QueueConfig | None = None, clock: Clock = utc_now) -> None:
        self._store = store
        self._rules = rules
        self._settings = settings or QueueConfig()
        self._clock = clock

    # ---- ordering helpers ----

    def _sort_key(self, episode: Episode) -> tuple:
        return (self._rules.priority(episode.urgency), episode.queued_at, episode.episode_id)

    def _pending(self, supervisor_id: Optional[str] = None,
                 urgency: Optional[UrgencyLevel] = None,
                 limit: Optional[int] = None) -> list[Episode]:
        """Pending episodes in queue order."""
        filter = EpisodeFilter(urgency_level=urgency) if urgency is not None else None
        if supervisor_id:
            episodes = self._store.query(
                EpisodeIndex.SUPERVISOR_QUEUE,
                KeyCondition(validation_status=ValidationStatus.PENDING, assigned_supervisor=supervisor_id),
                filter,
                limit=limit,
            )
        else:
            episodes = self._store.query(
                EpisodeIndex.VALIDATION_QUEUE,
                KeyCondition(validation_status=ValidationStatus.PENDING),
                filter,
                limit=limit,
            )
        queued = [e for e in episodes if e.is_queued and e.queued_at is not None]
        queued.sort(key=self._sort_key)
        return queued

    def _position_in(self, episode: Episode, pending: list[Episode]) -> int:
        key = self._sort_key(episode)
        return 1 + sum(1 for e in pending if e.episode_id != episode.episode_id and self._sort_key(e) < key)

    def average_validation_minutes(self, urgency: UrgencyLevel | str | None) -> float:
        """Mean queued-to-validated time of recently completed episodes in the tier.

        Falls back to the tier rule's maximum wait when there is no history.
        """
        rule = self._rules.rule_for(urgency)
        completed = self._store.query(
            EpisodeIndex.VALIDATION_QUEUE,
            KeyCondition(validation_status=ValidationStatus.COMPLETED),
            EpisodeFilter(urgency_level=rule.urgency_level),
            newest_first=True,
            limit=self._settings.history_window,
        )
        durations = [
            minutes_between(e.queued_at, e.human_validation.timestamp)
            for e in completed
            if e.queued_at is not None and e.human_validation is not None
        ]
        durations = [d for d in durations if d >= 0]
        if not durations:
            return float(rule.max_wait_time_minutes)
        return fmean(durations)

    # ---- queue operations ----

    def add_to_queue(self, episode: Episode, supervisor_id: Optional[str] = None) -> Episode:
        if episode.triage_assessment is None:
            raise ValidationInputError("Episode does not have triage assessment", episode_id=episode.episode_id)

        urgency = episode.triage_assessment.urgency_level
        changes = {
            "validation_status": ValidationStatus.PENDING,
            "queued_at": self._clock(),
            "urgency_level": urgency,
            "queue_priority": self._rules.priority(urgency),
        }
        if supervisor_id:
            changes["assigned_supervisor"] = supervisor_id

        updated = self._store.update(episode.episode_id, changes, unless_completed=True)
        logger.info("Queued episode %s (urgency=%s, supervisor=%s)",
                    episode.episode_id, urgency, supervisor_id or "unassigned")
        return updated

    def remove_from_queue(self, episode_id: str) -> None:
        """Mark the episode completed and drop its queue metadata.

        No-op for unknown episodes or ones already removed.
        """
        try:
            episode = self._store.get(episode_id)
        except EpisodeNotFoundError:
            logger.debug("Episode %s not found, nothing to remove from queue", episode_id)
            return
        if (episode.validation_status == ValidationStatus.COMPLETED
                and episode.queue_priority is None and episode.assigned_supervisor is None):
            return

        try:
            self._store.update(
                episode_id,
                {"validation_status": ValidationStatus.COMPLETED},
                remove=("queue_priority", "assigned_supervisor"),
            )
        except EpisodeNotFoundError:
            logger.debug("Episode %s deleted before removal from queue", episode_id)
            return
        logger.info("Removed episode %s from validation queue", episode_id)

    def get_queue(self, supervisor_id: Optional[str] = None,
                  urgency_filter: Optional[UrgencyLevel] = None,
                  limit: Optional[int] = None) -> list[QueueItem]:
        limit = limit or self._settings.default_limit
        selected = self._pending(supervisor_id, urgency_filter)[:limit]
        if not selected:
            return []

        full_queue = self._pending() if (supervisor_id or urgency_filter) else selected
        now = self._clock()
        averages: dict[UrgencyLevel, float] = {}
        items = []
        for episode in selected:
            tier = self._rules.resolve_level(episode.urgency)
            if tier not in averages:
                averages[tier] = self.average_validation_minutes(tier)
            position = self._position_in(episode, full_queue)
            items.append(self._to_item(episode, now, position * averages[tier]))
        return items

    def _to_item(self, episode: Episode, now: datetime, estimated_wait: float) -> QueueItem:
        symptoms = episode.symptoms
        ai = episode.triage_assessment.ai_assessment
        return QueueItem(
            episode_id=episode.episode_id,
            patient_id=episode.patient_id,
            urgency_level=episode.urgency,
            priority=self._rules.priority(episode.urgency),
            assigned_supervisor=episode.assigned_supervisor,
            queued_at=episode.queued_at,
            waiting_minutes=round(minutes_between(episode.queued_at, now), 2),
            estimated_wait_minutes=round(estimated_wait, 2),
            primary_complaint=symptoms.primary_complaint if symptoms else None,
            severity=symptoms.severity if symptoms else None,
            ai_confidence=ai.confidence,
            ai_reasoning=ai.reasoning,
        )

    def get_queue_position(self, episode_id: str) -> Optional[int]:
        """1-based position in the global queue, or None when not queued."""
        try:
            episode = self._store.get(episode_id)
        except EpisodeNotFoundError:
            return None
        if not episode.is_queued or episode.queued_at is None:
            return None
        return self._position_in(episode, self._pending())

    def get_estimated_wait_time(self, episode_id: str) -> float:
        """Estimated minutes until validation: position x tier average."""
        try:
            episode = self._store.get(episode_id)
        except EpisodeNotFoundError:
            return 0.0
        if not episode.is_queued or episode.queued_at is None:
            return 0.0
        position = self._position_in(episode, self._pending())
        return round(position * self.average_validation_minutes(episode.urgency), 2)

    def get_overdue_episodes(self, threshold_minutes: float,
                             urgency_level: Optional[UrgencyLevel] = None) -> list[Episode]:
        cutoff = self._clock() - timedelta(minutes=threshold_minutes)
        episodes = self._store.query(
            EpisodeIndex.VALIDATION_QUEUE,
            KeyCondition(validation_status=ValidationStatus.PENDING, queued_before=cutoff),
            EpisodeFilter(urgency_level=urgency_level) if urgency_level is not None else None,
        )
        overdue = [e for e in episodes if e.is_queued]
        overdue.sort(key=self._sort_key)
        return overdue

    def reassign_episode(self, episode_id: str, new_supervisor_id: str) -> Episode:
        updated = self._store.update(
            episode_id,
            {"assigned_supervisor": new_supervisor_id, "reassigned_at": self._clock()},
        )
        logger.info("Reassigned episode %s to supervisor %s", episode_id, new_supervisor_id)
        return updated

    def get_queue_statistics(self) -> QueueStatistics:
        pending = self._pending(limit=self._settings.statistics_limit)
        stats = QueueStatistics(total_pending=len(pending))
        if not pending:
            return stats

        for episode in pending:
            field = _STAT_FIELDS[self._rules.resolve_level(episode.urgency)]
            setattr(stats, field, getattr(stats, field) + 1)

        now = self._clock()
        stats.average_wait_minutes = round(fmean(minutes_between(e.queued_at, now) for e in pending), 2)
        return stats
