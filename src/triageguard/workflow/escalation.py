"""EscalationEngine: SLA timeouts, supervisor outages and overrides.

An escalated episode is handed to a backup supervisor when one is available.
Otherwise the tier rule decides between automatic approval at the higher
care level and an alert that leaves the episode queued. The escalation
record is written before any notification goes out.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from datetime import datetime, timedelta
from typing import Optional

from triageguard.core.exceptions import (
    ConcurrentModificationError,
    EscalationError,
    SweepError,
    TriageGuardError,
)
from triageguard.core.logging_config import audit_logger
from triageguard.core.protocols import IAvailabilityChecker, IEpisodeStore, INotificationChannel
from triageguard.core.types import Clock, minutes_between, utc_now
from triageguard.models.episode import (
    Episode,
    EpisodeStatus,
    EscalationInfo,
    EscalationOutcome,
    HumanValidation,
    OverrideInfo,
    UrgencyLevel,
    ValidationStatus,
)
from triageguard.models.escalation import (
    DEFAULT_ESCALATION_RULES,
    SYSTEM_ESCALATION_SUPERVISOR,
    EscalationResult,
    EscalationRule,
    EscalationRuleSet,
    ReassignmentResult,
    SweepFailure,
    SweepReport,
)
from triageguard.models.queue import EpisodeIndex, KeyCondition
from triageguard.workflow.availability import FirstConfiguredBackup
from triageguard.workflow.queue_manager import ValidationQueueManager

logger = logging.getLogger(__name__)

AUTO_APPROVAL_NOTES = "Defaulted to higher care level due to supervisor unavailability"


class EscalationEngine:
    """Applies the per-tier escalation rules to overdue or rejected episodes."""

    def __init__(
        self,
        store: IEpisodeStore,
        queue_manager: ValidationQueueManager,
        notifier: INotificationChannel,
        rules: EscalationRuleSet = DEFAULT_ESCALATION_RULES,
        availability: IAvailabilityChecker | None = None,
        clock: Clock = utc_now,
        reminder_fraction: float = 0.5,
    ) -> None:
        self._store = store
        self._queue = queue_manager
        self._notifier = notifier
        self._rules = rules
        self._availability = availability or FirstConfiguredBackup()
        self._clock = clock
        self._reminder_fraction = reminder_fraction

    @property
    def rules(self) -> EscalationRuleSet:
        return self._rules

    # ---- escalation of a single episode ----

    def escalate_episode(self, episode: Episode, reason: str, *,
                         exclude: Collection[str] = ()) -> EscalationResult:
        """Escalate one episode under the rule for its urgency.

        ``exclude`` lists supervisors that must not be chosen as the backup.
        Store and notification failures are raised as EscalationError.
        """
        rule = self._rules.rule_for(episode.urgency)
        now = self._clock()
        attempted = list(episode.escalation_info.attempted_supervisors) if episode.escalation_info else []
        logger.warning("Escalating episode %s under %s rule: %s",
                       episode.episode_id, rule.urgency_level, reason)
        try:
            backup = self._availability.find_available_backup(rule.backup_supervisors, exclude=exclude)
            validation: Optional[HumanValidation] = None
            if backup:
                outcome = EscalationOutcome.REASSIGNED
                episode = self._queue.reassign_episode(episode.episode_id, backup)
            elif rule.default_to_higher_care_level:
                outcome, validation, episode = self._auto_approve(episode, reason, now)
            else:
                outcome = EscalationOutcome.ALERTED_ONLY

            if backup and backup not in attempted:
                attempted.append(backup)
            info = EscalationInfo(reason=reason, timestamp=now, new_supervisor_id=backup, outcome=outcome,
                                  attempted_supervisors=attempted)
            episode = self._store.update(episode.episode_id, {"escalation_info": info})

            if outcome == EscalationOutcome.REASSIGNED:
                self._notifier.send_escalation_notification(episode, reason, rule.backup_supervisors)
                self._notifier.notify_supervisor(episode, backup, is_emergency=True)
            elif outcome == EscalationOutcome.DEFAULTED_HIGHER_CARE:
                self._notifier.notify_care_coordinator(episode, validation)
            else:
                self._notifier.send_escalation_notification(episode, reason, rule.backup_supervisors)
        except TriageGuardError as exc:
            logger.error("Escalation of episode %s failed: %s", episode.episode_id, exc)
            raise EscalationError(episode.episode_id, rule.urgency_level.value, reason, str(exc)) from exc

        logger.info("Episode %s escalation outcome: %s", episode.episode_id, outcome)
        return EscalationResult(episode_id=episode.episode_id, outcome=outcome, escalation_info=info)

    def _auto_approve(self, episode: Episode, reason: str,
                      now: datetime) -> tuple[EscalationOutcome, Optional[HumanValidation], Episode]:
        """Record a system approval unless the episode is already validated."""
        if episode.human_validation is not None:
            logger.info("Episode %s already validated, alerting only", episode.episode_id)
            return EscalationOutcome.ALERTED_ONLY, None, episode

        validation = HumanValidation(
            supervisor_id=SYSTEM_ESCALATION_SUPERVISOR,
            approved=True,
            override_reason=f"Automatic approval due to escalation: {reason}"[:500],
            notes=AUTO_APPROVAL_NOTES,
            timestamp=now,
        )
        try:
            updated = self._store.update(
                episode.episode_id,
                {
                    "human_validation": validation,
                    "validation_status": ValidationStatus.COMPLETED,
                    "status": EpisodeStatus.ESCALATED,
                },
                remove=("queue_priority",),
                unless_completed=True,
            )
        except ConcurrentModificationError:
            logger.info("Episode %s was validated concurrently, alerting only", episode.episode_id)
            return EscalationOutcome.ALERTED_ONLY, None, episode
        return EscalationOutcome.DEFAULTED_HIGHER_CARE, validation, updated

    # ---- periodic sweep ----

    def _timeout_reason(self, rule: EscalationRule) -> str:
        return f"Timeout escalation: exceeded {rule.max_wait_time_minutes} minutes"

    def _tier_episodes(self, rule: EscalationRule, threshold_minutes: float) -> list[Episode]:
        """Pending episodes governed by ``rule`` that were queued over ``threshold_minutes`` ago.

        The least urgent rule also governs episodes whose urgency has no rule of its own.
        """
        catch_all = rule.urgency_level == self._rules.fallback.urgency_level
        episodes = self._queue.get_overdue_episodes(threshold_minutes, None if catch_all else rule.urgency_level)
        return [e for e in episodes if self._rules.resolve_level(e.urgency) == rule.urgency_level]

    @staticmethod
    def _already_tried(episode: Episode) -> set[str]:
        tried = set(episode.escalation_info.attempted_supervisors) if episode.escalation_info else set()
        if episode.assigned_supervisor:
            tried.add(episode.assigned_supervisor)
        return tried

    def _remind(self, episode: Episode, now: datetime) -> None:
        wait = minutes_between(episode.queued_at, now)
        self._notifier.send_validation_reminder(episode, episode.assigned_supervisor, wait)
        self._store.update(episode.episode_id, {"reminder_sent_at": now})
        logger.info("Sent validation reminder for episode %s to %s",
                    episode.episode_id, episode.assigned_supervisor or "unassigned")

    def check_for_timeout_escalations(self) -> SweepReport:
        """Escalate episodes past their tier's maximum wait and remind on those nearing it.

        The SLA window restarts after each reassignment or escalation, so an
        episode is escalated at most once per window. A repeat escalation skips
        the supervisors the episode already went to. One reminder goes out per
        window once ``reminder_fraction`` of it has elapsed.

        Failures are collected per rule and per episode; if any occurred a
        SweepError carrying the full report is raised after the sweep.
        """
        report = SweepReport()
        for rule in self._rules:
            remind_after = rule.max_wait_time_minutes * self._reminder_fraction
            lookup_minutes = remind_after if remind_after > 0 else rule.max_wait_time_minutes
            try:
                candidates = self._tier_episodes(rule, lookup_minutes)
            except TriageGuardError as exc:
                logger.error("Overdue lookup for %s failed: %s", rule.urgency_level, exc)
                report.failures.append(SweepFailure(
                    urgency_level=rule.urgency_level, error=str(exc), kind=exc.kind,
                ))
                continue

            now = self._clock()
            overdue_cutoff = now - timedelta(minutes=rule.max_wait_time_minutes)
            reminder_cutoff = now - timedelta(minutes=lookup_minutes)
            reason = self._timeout_reason(rule)
            for episode in candidates:
                started = episode.sla_started_at
                try:
                    if started < overdue_cutoff:
                        self.escalate_episode(episode, reason, exclude=self._already_tried(episode))
                        report.escalated.append(episode.episode_id)
                    elif (remind_after > 0 and started < reminder_cutoff
                          and (episode.reminder_sent_at is None or episode.reminder_sent_at < started)):
                        self._remind(episode, now)
                        report.reminded.append(episode.episode_id)
                except TriageGuardError as exc:
                    report.failures.append(SweepFailure(
                        urgency_level=rule.urgency_level,
                        episode_id=episode.episode_id,
                        error=str(exc),
                        kind=exc.kind,
                    ))

        logger.info("Timeout sweep escalated %d and reminded %d episode(s) with %d failure(s)",
                    len(report.escalated), len(report.reminded), len(report.failures))
        if not report.ok:
            raise SweepError(report)
        return report

    # ---- supervisor outages ----

    def handle_supervisor_unavailability(self, supervisor_id: str) -> list[ReassignmentResult]:
        """Move every pending episode off ``supervisor_id``."""
        assigned = self._store.query(
            EpisodeIndex.SUPERVISOR_QUEUE,
            KeyCondition(validation_status=ValidationStatus.PENDING, assigned_supervisor=supervisor_id),
        )
        results = []
        for episode in assigned:
            if not episode.is_queued:
                continue
            rule = self._rules.rule_for(episode.urgency)
            backup = self._availability.find_available_backup(rule.backup_supervisors, exclude={supervisor_id})
            if backup:
                updated = self._queue.reassign_episode(episode.episode_id, backup)
                self._notifier.notify_supervisor(
                    updated, backup, is_emergency=rule.urgency_level == UrgencyLevel.EMERGENCY,
                )
                results.append(ReassignmentResult(episode_id=episode.episode_id, new_supervisor_id=backup))
            else:
                escalation = self.escalate_episode(
                    episode,
                    f"Supervisor unavailable: {supervisor_id}, no backup available",
                    exclude={supervisor_id},
                )
                results.append(ReassignmentResult(episode_id=episode.episode_id, escalation=escalation))
        logger.info("Handled unavailability of %s: %d episode(s)", supervisor_id, len(results))
        return results

    # ---- supervisor overrides ----

    def handle_override(self, episode: Episode, validation: HumanValidation) -> Optional[EscalationResult]:
        """Audit a supervisor decision and escalate rejections.

        The episode is already completed by the decision, so a reassignment
        here only informs the backup of the rejection; it cannot be validated
        again. The override record is persisted even when the escalation fails.
        """
        audit_logger.info(
            "Validation override on episode %s by %s (approved=%s)",
            episode.episode_id, validation.supervisor_id, validation.approved,
            extra={
                "episode_id": episode.episode_id,
                "supervisor_id": validation.supervisor_id,
                "approved": validation.approved,
                "override_reason": validation.override_reason,
                "original_urgency": str(episode.urgency) if episode.urgency is not None else None,
            },
        )

        result = None
        try:
            if not validation.approved:
                reason = validation.override_reason or "no reason given"
                result = self.escalate_episode(episode, f"Supervisor override: {reason}")
        finally:
            self._store.update(episode.episode_id, {"override_info": OverrideInfo(
                supervisor_id=validation.supervisor_id,
                reason=validation.override_reason,
                timestamp=validation.timestamp,
                approved=validation.approved,
            )})
        return result
