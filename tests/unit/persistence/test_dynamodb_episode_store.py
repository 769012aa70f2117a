"""Unit tests for DynamoDBEpisodeStore using moto."""

from __future__ import annotations

import sys
from decimal import Decimal
from pathlib import Path

import boto3
import pytest
from moto import mock_aws

from tests.fakes import FrozenClock, make_episode
from triageguard.core.exceptions import ConcurrentModificationError, EpisodeNotFoundError
from triageguard.core.protocols import IEpisodeStore
from triageguard.models.episode import (
    EpisodeStatus,
    EscalationInfo,
    EscalationOutcome,
    HumanValidation,
    UrgencyLevel,
    ValidationStatus,
)
from triageguard.models.queue import EpisodeFilter, EpisodeIndex, KeyCondition
from triageguard.persistence.dynamodb_backend import DynamoDBEpisodeStore, episode_to_item

# Make scripts/ importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent.parent / "scripts"))

from create_episode_table import create_table  # noqa: E402

TABLE_SUFFIX = "-test"
REGION = "us-east-1"

clock = FrozenClock()


# ---------- fixtures ----------

@pytest.fixture
def aws():
    with mock_aws():
        ddb = boto3.resource("dynamodb", region_name=REGION)
        create_table(ddb, suffix=TABLE_SUFFIX)
        yield ddb


@pytest.fixture
def ddb_store(aws):
    return DynamoDBEpisodeStore(table_suffix=TABLE_SUFFIX, region=REGION)


def _raw(aws, episode_id):
    return aws.Table(f"triageguard-episodes{TABLE_SUFFIX}").get_item(Key={"episodeId": episode_id})["Item"]


# ---------- tests ----------

def test_satisfies_protocol(ddb_store):
    assert isinstance(ddb_store, IEpisodeStore)
    assert ddb_store.table_name == "triageguard-episodes-test"


def test_item_conversion_uses_camel_case_and_decimals():
    item = episode_to_item(make_episode("E1", queued_at=clock.now))
    assert item["episodeId"] == "E1"
    assert item["queuedAt"] == "2026-03-01T12:00:00.000000Z"
    assert item["triageAssessment"]["finalScore"] == Decimal("55.0")
    assert item["triageAssessment"]["aiAssessment"]["confidence"] == Decimal("0.8")
    assert "assignedSupervisor" not in item


def test_put_get_round_trip(ddb_store):
    episode = make_episode("E1", UrgencyLevel.EMERGENCY, queued_at=clock.now, supervisor="sup-a")
    ddb_store.put(episode)
    assert ddb_store.get("E1") == episode


def test_get_missing(ddb_store):
    with pytest.raises(EpisodeNotFoundError):
        ddb_store.get("missing")


def test_update_set_remove_and_version(aws, ddb_store):
    ddb_store.put(make_episode("E1", queued_at=clock.now, supervisor="sup-a", queue_priority=2))
    updated = ddb_store.update(
        "E1",
        {"reassigned_at": clock.now, "status": EpisodeStatus.ESCALATED},
        remove=("queue_priority", "assigned_supervisor"),
    )

    assert updated.version == 1
    assert updated.reassigned_at == clock.now
    assert updated.status == EpisodeStatus.ESCALATED
    assert updated.queue_priority is None
    raw = _raw(aws, "E1")
    assert "assignedSupervisor" not in raw
    assert "queuePriority" not in raw
    assert raw["updatedAt"].endswith("Z")


def test_update_none_value_removes_attribute(aws, ddb_store):
    ddb_store.put(make_episode("E1", queued_at=clock.now, supervisor="sup-a"))
    ddb_store.update("E1", {"assigned_supervisor": None})
    assert "assignedSupervisor" not in _raw(aws, "E1")


def test_update_nested_model(ddb_store):
    ddb_store.put(make_episode("E1", queued_at=clock.now))
    validation = HumanValidation(supervisor_id="sup-1", approved=False, override_reason="wrong tier",
                                 timestamp=clock.now)
    updated = ddb_store.update(
        "E1",
        {"human_validation": validation, "validation_status": ValidationStatus.COMPLETED},
        unless_completed=True,
    )
    assert updated.human_validation == validation
    assert updated.validation_status == ValidationStatus.COMPLETED


def test_update_escalation_and_reminder_fields(aws, ddb_store):
    ddb_store.put(make_episode("E1", queued_at=clock.minutes_ago(6)))
    info = EscalationInfo(reason="manual", timestamp=clock.now, new_supervisor_id="b-2",
                          outcome=EscalationOutcome.REASSIGNED, attempted_supervisors=["b-1", "b-2"])
    updated = ddb_store.update("E1", {"escalation_info": info, "reminder_sent_at": clock.now})

    assert updated.escalation_info == info
    assert updated.reminder_sent_at == clock.now
    assert updated.sla_started_at == clock.now
    raw = _raw(aws, "E1")
    assert raw["escalationInfo"]["attemptedSupervisors"] == ["b-1", "b-2"]
    assert raw["reminderSentAt"] == "2026-03-01T12:00:00.000000Z"


def test_update_unless_completed_conflicts(ddb_store):
    ddb_store.put(make_episode("E1", validation_status=ValidationStatus.COMPLETED))
    with pytest.raises(ConcurrentModificationError):
        ddb_store.update("E1", {"queue_priority": 1}, unless_completed=True)


def test_update_missing_episode(ddb_store):
    with pytest.raises(EpisodeNotFoundError):
        ddb_store.update("missing", {"queue_priority": 1})


def test_query_validation_index(ddb_store):
    ddb_store.put(make_episode("E2", UrgencyLevel.URGENT, queued_at=clock.minutes_ago(2)))
    ddb_store.put(make_episode("E1", UrgencyLevel.ROUTINE, queued_at=clock.minutes_ago(8)))
    ddb_store.put(make_episode("E3", UrgencyLevel.URGENT, queued_at=clock.minutes_ago(12)))
    pending = KeyCondition(validation_status=ValidationStatus.PENDING)

    ordered = ddb_store.query(EpisodeIndex.VALIDATION_QUEUE, pending)
    assert [e.episode_id for e in ordered] == ["E3", "E1", "E2"]

    newest = ddb_store.query(EpisodeIndex.VALIDATION_QUEUE, pending, newest_first=True, limit=1)
    assert [e.episode_id for e in newest] == ["E2"]

    overdue = ddb_store.query(
        EpisodeIndex.VALIDATION_QUEUE,
        KeyCondition(validation_status=ValidationStatus.PENDING, queued_before=clock.minutes_ago(5)),
        EpisodeFilter(urgency_level=UrgencyLevel.URGENT),
    )
    assert [e.episode_id for e in overdue] == ["E3"]


def test_query_supervisor_index(ddb_store):
    ddb_store.put(make_episode("E1", queued_at=clock.minutes_ago(3), supervisor="sup-a"))
    ddb_store.put(make_episode("E2", queued_at=clock.minutes_ago(2), supervisor="sup-b"))
    found = ddb_store.query(
        EpisodeIndex.SUPERVISOR_QUEUE,
        KeyCondition(validation_status=ValidationStatus.PENDING, assigned_supervisor="sup-a"),
    )
    assert [e.episode_id for e in found] == ["E1"]
