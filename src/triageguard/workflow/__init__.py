"""Human-validation workflow: queue manager, escalation engine, coordinator."""

from __future__ import annotations

from triageguard.core.config import AppSettings
from triageguard.core.logging_config import configure_logging
from triageguard.core.protocols import IAvailabilityChecker, IEpisodeStore, INotificationChannel
from triageguard.models.escalation import DEFAULT_ESCALATION_RULES, EscalationRuleSet
from triageguard.notifications import create_notification_channel
from triageguard.persistence import create_episode_store
from triageguard.workflow.availability import FirstConfiguredBackup, RosterAvailabilityChecker
from triageguard.workflow.coordinator import WorkflowCoordinator
from triageguard.workflow.escalation import EscalationEngine
from triageguard.workflow.queue_manager import ValidationQueueManager


def create_coordinator(
    settings: AppSettings | None = None,
    *,
    store: IEpisodeStore | None = None,
    notifier: INotificationChannel | None = None,
    availability: IAvailabilityChecker | None = None,
    rules: EscalationRuleSet = DEFAULT_ESCALATION_RULES,
) -> WorkflowCoordinator:
    """Wire the workflow from settings; any collaborator may be passed in."""
    if settings is None:
        settings = AppSettings()
    configure_logging(settings)

    if store is None:
        store = create_episode_store(settings)
    if notifier is None:
        notifier = create_notification_channel(settings)
    queue_manager = ValidationQueueManager(store, rules, settings.queue)
    engine = EscalationEngine(store, queue_manager, notifier, rules, availability or FirstConfiguredBackup(),
                              reminder_fraction=settings.queue.reminder_fraction)
    return WorkflowCoordinator(store, queue_manager, engine, notifier)


__all__ = [
    "EscalationEngine",
    "FirstConfiguredBackup",
    "RosterAvailabilityChecker",
    "ValidationQueueManager",
    "WorkflowCoordinator",
    "create_coordinator",
]
