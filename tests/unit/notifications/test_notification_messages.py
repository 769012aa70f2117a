"""Tests for notification payload building and rendering."""

from __future__ import annotations

from tests.fakes import FrozenClock, make_episode
from triageguard.models.episode import HumanValidation, UrgencyLevel
from triageguard.models.queue import QueueStatistics
from triageguard.notifications.messages import (
    NotificationType,
    batch_message,
    coordinator_message,
    escalation_message,
    message_attributes,
    queue_status_message,
    reminder_message,
    render_body,
    render_subject,
    supervisor_message,
)

clock = FrozenClock()


def test_supervisor_subject_prefixes():
    emergency = make_episode("E1", UrgencyLevel.EMERGENCY)
    urgent = make_episode("U1", UrgencyLevel.URGENT)
    routine = make_episode("R1")

    assert render_subject(supervisor_message(urgent, "sup-1", False, clock.now)) == (
        "[URGENT] Healthcare Validation Required - Episode U1"
    )
    assert render_subject(supervisor_message(routine, None, False, clock.now)) == (
        "Healthcare Validation Required - Episode R1"
    )
    alert = supervisor_message(emergency, "sup-1", True, clock.now)
    assert alert.type == NotificationType.EMERGENCY_ALERT
    assert render_subject(alert) == "[EMERGENCY ALERT] Immediate Validation Required - Episode E1"


def test_subject_capped_at_sns_limit():
    episode = make_episode("E" * 150, UrgencyLevel.EMERGENCY)
    assert len(render_subject(supervisor_message(episode, None, False, clock.now))) == 100


def test_validation_required_body():
    body = render_body(supervisor_message(make_episode("R1"), "sup-1", False, clock.now))
    assert "Episode ID: R1" in body
    assert "Assigned Supervisor: sup-1" in body
    assert "Primary Complaint: headache" in body
    assert "Symptom Severity: 5/10" in body
    assert "- AI Confidence: 0.8" in body
    assert "Please review and validate this triage assessment." in body


def test_emergency_alert_body():
    body = render_body(supervisor_message(make_episode("E1", UrgencyLevel.EMERGENCY), None, True, clock.now))
    assert "EMERGENCY SITUATION DETECTED" in body
    assert "IMMEDIATE VALIDATION REQUIRED" in body
    assert "Triage Assessment:" not in body


def test_coordinator_body():
    validation = HumanValidation(supervisor_id="sup-1", approved=False, override_reason="wrong tier",
                                 notes="call back", timestamp=clock.now)
    message = coordinator_message(make_episode("R1"), validation, clock.now)
    body = render_body(message)

    assert render_subject(message) == "Validation Completed - Episode R1"
    assert "Validation Decision: NOT APPROVED" in body
    assert "Override Reason: wrong tier" in body
    assert "Notes: call back" in body
    assert "Validation Time: 2026-03-01T12:00:00.000000Z" in body


def test_escalation_body_includes_wait_and_backups():
    episode = make_episode("U1", UrgencyLevel.URGENT, queued_at=clock.minutes_ago(12), supervisor="sup-a")
    message = escalation_message(episode, "Timeout escalation: exceeded 15 minutes",
                                 ("urgent-supervisor-1", "urgent-supervisor-2"), clock.now)
    body = render_body(message)

    assert render_subject(message) == "[URGENT] Validation Escalation Required - Episode U1"
    assert "Escalation Reason: Timeout escalation: exceeded 15 minutes" in body
    assert "Original Assignment: sup-a" in body
    assert "Wait Time: 12 minutes" in body
    assert "Backup Supervisors: urgent-supervisor-1, urgent-supervisor-2" in body


def test_message_attributes():
    message = supervisor_message(make_episode("E1", UrgencyLevel.EMERGENCY), "sup-1", True, clock.now)
    attributes = message_attributes(message, supervisor_id="sup-1")
    assert attributes["notification_type"] == {"DataType": "String", "StringValue": "emergency_alert"}
    assert attributes["urgency_level"]["StringValue"] == "emergency"
    assert attributes["supervisor_id"]["StringValue"] == "sup-1"
    assert message.is_emergency_tier


def test_reminder_body():
    episode = make_episode("E1", UrgencyLevel.EMERGENCY, queued_at=clock.minutes_ago(3), supervisor="sup-1")
    message = reminder_message(episode, "sup-1", 3.4, clock.now)
    body = render_body(message)

    assert render_subject(message) == "[EMERGENCY] Validation Reminder - Episode E1"
    assert "Assigned Supervisor: sup-1" in body
    assert "Wait Time: 3 minutes" in body
    assert "Primary Complaint: headache" in body


def test_batch_body_has_no_episode_header():
    message = batch_message("sup-1", [], clock.now)
    body = render_body(message)

    assert render_subject(message) == "0 Episodes Pending Validation"
    assert "Episode ID" not in body
    assert "Pending Episodes: 0" in body
    assert "episode_id" not in message_attributes(message)


def test_queue_status_body():
    stats = QueueStatistics(total_pending=4, emergency_count=1, urgent_count=1, routine_count=1,
                            self_care_count=1, average_wait_minutes=7.25)
    message = queue_status_message(stats, clock.now)
    body = render_body(message)

    assert message.type == NotificationType.QUEUE_STATUS_UPDATE
    assert "Total Pending: 4" in body
    assert "Self-care: 1" in body
    assert "Average Wait: 7.25 minutes" in body
