"""Notification payloads and their subject/body rendering."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field

from triageguard.core.types import Timestamp, format_timestamp, minutes_between
from triageguard.models.episode import Episode, HumanValidation, UrgencyLevel
from triageguard.models.queue import QueueItem, QueueStatistics


class NotificationType(StrEnum):
    VALIDATION_REQUIRED = "validation_required"
    EMERGENCY_ALERT = "emergency_alert"
    VALIDATION_COMPLETED = "validation_completed"
    ESCALATION_REQUIRED = "escalation_required"
    VALIDATION_REMINDER = "validation_reminder"
    BATCH_VALIDATION_REQUEST = "batch_validation_request"
    QUEUE_STATUS_UPDATE = "queue_status_update"


class NotificationMessage(BaseModel):
    """One SNS message. Batch and queue-status messages carry no episode."""

    type: NotificationType
    episode_id: Optional[str] = None
    patient_id: Optional[str] = None
    urgency_level: Optional[str] = None
    supervisor_id: Optional[str] = None
    timestamp: Timestamp
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_emergency_tier(self) -> bool:
        return self.urgency_level == UrgencyLevel.EMERGENCY


def _urgency(episode: Episode) -> Optional[str]:
    urgency = episode.urgency
    return str(urgency) if urgency is not None else None


def supervisor_message(episode: Episode, supervisor_id: Optional[str], is_emergency: bool,
                       now: datetime) -> NotificationMessage:
    symptoms = episode.symptoms
    triage = episode.triage_assessment
    details: dict[str, Any] = {}
    if symptoms is not None:
        details["symptoms"] = {
            "primary_complaint": symptoms.primary_complaint,
            "severity": symptoms.severity,
            "duration": symptoms.duration,
        }
    if triage is not None:
        details["triage"] = {
            "rule_based_score": triage.rule_based_score,
            "final_score": triage.final_score,
            "ai_used": triage.ai_assessment.used,
            "ai_confidence": triage.ai_assessment.confidence,
            "ai_reasoning": triage.ai_assessment.reasoning,
        }
    return NotificationMessage(
        type=NotificationType.EMERGENCY_ALERT if is_emergency else NotificationType.VALIDATION_REQUIRED,
        episode_id=episode.episode_id,
        patient_id=episode.patient_id,
        urgency_level=_urgency(episode),
        supervisor_id=supervisor_id,
        timestamp=now,
        details=details,
    )


def coordinator_message(episode: Episode, validation: HumanValidation, now: datetime) -> NotificationMessage:
    return NotificationMessage(
        type=NotificationType.VALIDATION_COMPLETED,
        episode_id=episode.episode_id,
        patient_id=episode.patient_id,
        urgency_level=_urgency(episode),
        supervisor_id=validation.supervisor_id,
        timestamp=now,
        details={
            "approved": validation.approved,
            "override_reason": validation.override_reason,
            "notes": validation.notes,
            "validation_timestamp": format_timestamp(validation.timestamp),
        },
    )


def escalation_message(episode: Episode, reason: str, backup_supervisors: Sequence[str],
                       now: datetime) -> NotificationMessage:
    wait = int(minutes_between(episode.queued_at, now)) if episode.queued_at else 0
    return NotificationMessage(
        type=NotificationType.ESCALATION_REQUIRED,
        episode_id=episode.episode_id,
        patient_id=episode.patient_id,
        urgency_level=_urgency(episode),
        timestamp=now,
        details={
            "escalation_reason": reason,
            "backup_supervisors": list(backup_supervisors),
            "original_assignment": episode.assigned_supervisor,
            "wait_minutes": wait,
        },
    )


def reminder_message(episode: Episode, supervisor_id: Optional[str], wait_minutes: float,
                     now: datetime) -> NotificationMessage:
    symptoms = episode.symptoms
    return NotificationMessage(
        type=NotificationType.VALIDATION_REMINDER,
        episode_id=episode.episode_id,
        patient_id=episode.patient_id,
        urgency_level=_urgency(episode),
        supervisor_id=supervisor_id,
        timestamp=now,
        details={
            "wait_minutes": int(wait_minutes),
            "primary_complaint": symptoms.primary_complaint if symptoms else None,
        },
    )


def batch_message(supervisor_id: Optional[str], items: Sequence[QueueItem], now: datetime) -> NotificationMessage:
    return NotificationMessage(
        type=NotificationType.BATCH_VALIDATION_REQUEST,
        supervisor_id=supervisor_id,
        timestamp=now,
        details={
            "episodes": [
                {
                    "episode_id": item.episode_id,
                    "urgency_level": str(item.urgency_level),
                    "severity": item.severity,
                    "waiting_minutes": int(item.waiting_minutes),
                }
                for item in items
            ],
        },
    )


def queue_status_message(statistics: QueueStatistics, now: datetime) -> NotificationMessage:
    return NotificationMessage(
        type=NotificationType.QUEUE_STATUS_UPDATE,
        timestamp=now,
        details={"stats": statistics.model_dump()},
    )


def render_subject(message: NotificationMessage) -> str:
    """SNS subjects are limited to 100 ASCII characters."""
    if message.urgency_level == UrgencyLevel.EMERGENCY:
        prefix = "[EMERGENCY] "
    elif message.urgency_level == UrgencyLevel.URGENT:
        prefix = "[URGENT] "
    else:
        prefix = ""

    episode = message.episode_id
    if message.type == NotificationType.VALIDATION_REQUIRED:
        subject = f"{prefix}Healthcare Validation Required - Episode {episode}"
    elif message.type == NotificationType.EMERGENCY_ALERT:
        subject = f"[EMERGENCY ALERT] Immediate Validation Required - Episode {episode}"
    elif message.type == NotificationType.VALIDATION_COMPLETED:
        subject = f"Validation Completed - Episode {episode}"
    elif message.type == NotificationType.VALIDATION_REMINDER:
        subject = f"{prefix}Validation Reminder - Episode {episode}"
    elif message.type == NotificationType.BATCH_VALIDATION_REQUEST:
        subject = f"{len(message.details['episodes'])} Episodes Pending Validation"
    elif message.type == NotificationType.QUEUE_STATUS_UPDATE:
        subject = "Healthcare Validation Queue Status Update"
    else:
        subject = f"{prefix}Validation Escalation Required - Episode {episode}"
    return subject[:100]


def render_body(message: NotificationMessage) -> str:
    lines = []
    if message.episode_id is not None:
        lines += [
            f"Episode ID: {message.episode_id}",
            f"Patient ID: {message.patient_id}",
            f"Urgency Level: {message.urgency_level or 'unknown'}",
        ]
    lines.append(f"Timestamp: {format_timestamp(message.timestamp)}")
    if message.supervisor_id:
        lines.append(f"Assigned Supervisor: {message.supervisor_id}")
    lines.append("")

    details = message.details
    symptoms = details.get("symptoms")
    if message.type in (NotificationType.VALIDATION_REQUIRED, NotificationType.EMERGENCY_ALERT):
        if message.type == NotificationType.EMERGENCY_ALERT:
            lines += ["EMERGENCY SITUATION DETECTED", ""]
        if symptoms:
            lines += [
                f"Primary Complaint: {symptoms['primary_complaint']}",
                f"Symptom Severity: {symptoms['severity']}/10",
                f"Duration: {symptoms['duration']}",
            ]
        triage = details.get("triage")
        if triage and message.type == NotificationType.VALIDATION_REQUIRED:
            lines += [
                "",
                "Triage Assessment:",
                f"- Rule-based Score: {triage['rule_based_score']}",
                f"- Final Score: {triage['final_score']}",
                f"- AI Assessment Used: {'Yes' if triage['ai_used'] else 'No'}",
            ]
            if triage["ai_used"] and triage["ai_confidence"] is not None:
                lines.append(f"- AI Confidence: {triage['ai_confidence']}")
            if triage["ai_reasoning"]:
                lines.append(f"- AI Reasoning: {triage['ai_reasoning']}")
        lines.append("")
        if message.type == NotificationType.EMERGENCY_ALERT:
            lines += ["IMMEDIATE VALIDATION REQUIRED", "This case requires urgent supervisor attention."]
        else:
            lines.append("Please review and validate this triage assessment.")
    elif message.type == NotificationType.VALIDATION_COMPLETED:
        lines += [
            f"Validation Decision: {'APPROVED' if details['approved'] else 'NOT APPROVED'}",
            f"Supervisor: {message.supervisor_id}",
            f"Validation Time: {details['validation_timestamp']}",
        ]
        if details.get("override_reason"):
            lines.append(f"Override Reason: {details['override_reason']}")
        if details.get("notes"):
            lines.append(f"Notes: {details['notes']}")
        lines += ["", "The episode is now ready for care coordination."]
    elif message.type == NotificationType.VALIDATION_REMINDER:
        if details.get("primary_complaint"):
            lines.append(f"Primary Complaint: {details['primary_complaint']}")
        lines += [
            f"Wait Time: {details['wait_minutes']} minutes",
            "",
            "This episode is still awaiting your validation.",
        ]
    elif message.type == NotificationType.BATCH_VALIDATION_REQUEST:
        episodes = details["episodes"]
        lines.append(f"Pending Episodes: {len(episodes)}")
        for entry in episodes:
            severity = f"{entry['severity']}/10" if entry["severity"] is not None else "n/a"
            lines.append(f"- {entry['episode_id']} ({entry['urgency_level']}, severity {severity}, "
                         f"waiting {entry['waiting_minutes']} minutes)")
        lines += ["", "Please review your pending validations."]
    elif message.type == NotificationType.QUEUE_STATUS_UPDATE:
        stats = details["stats"]
        lines += [
            f"Total Pending: {stats['total_pending']}",
            f"Emergency: {stats['emergency_count']}",
            f"Urgent: {stats['urgent_count']}",
            f"Routine: {stats['routine_count']}",
            f"Self-care: {stats['self_care_count']}",
            f"Average Wait: {stats['average_wait_minutes']} minutes",
        ]
    else:
        lines += [
            f"Escalation Reason: {details['escalation_reason']}",
            f"Original Assignment: {details.get('original_assignment') or 'Unassigned'}",
            f"Wait Time: {details['wait_minutes']} minutes",
            f"Backup Supervisors: {', '.join(details['backup_supervisors'])}",
            "",
            "This case requires immediate attention due to supervisor unavailability.",
        ]
    return "\n".join(lines) + "\n"


def message_attributes(message: NotificationMessage, **extra: str | int) -> dict[str, dict[str, str]]:
    """SNS MessageAttributes for subscription filter policies; ints become Number attributes."""
    attributes: dict[str, str | int] = {
        "notification_type": message.type.value,
        "urgency_level": message.urgency_level or "unknown",
    }
    if message.episode_id is not None:
        attributes["episode_id"] = message.episode_id
    attributes.update(extra)
    return {
        name: {"DataType": "Number" if isinstance(value, int) else "String", "StringValue": str(value)}
        for name, value in attributes.items()
    }
