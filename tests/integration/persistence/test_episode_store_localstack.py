"""Integration tests for the episode workflow against LocalStack."""

from __future__ import annotations

import uuid

import pytest

from tests.fakes import FrozenClock, MemoryNotificationChannel, make_episode
from tests.integration.conftest import LOCALSTACK_URL, REGION, skip_no_localstack
from triageguard.core.exceptions import ConcurrentModificationError
from triageguard.models.episode import UrgencyLevel, ValidationStatus
from triageguard.models.queue import QueueStatistics
from triageguard.notifications.sns_channel import SNSNotificationChannel
from triageguard.workflow import create_coordinator


@skip_no_localstack
class TestEpisodeStoreIntegration:
    @pytest.fixture
    def episode_id(self):
        return f"int-{uuid.uuid4()}"

    def test_round_trip(self, ddb_store, episode_id):
        episode = make_episode(episode_id, UrgencyLevel.URGENT, queued_at=FrozenClock().now)
        ddb_store.put(episode)
        assert ddb_store.get(episode_id) == episode

    def test_conditional_completion(self, ddb_store, episode_id):
        ddb_store.put(make_episode(episode_id, validation_status=ValidationStatus.COMPLETED))
        with pytest.raises(ConcurrentModificationError):
            ddb_store.update(episode_id, {"queue_priority": 1}, unless_completed=True)

    def test_submit_and_decide(self, ddb_store, episode_id):
        notifier = MemoryNotificationChannel()
        coordinator = create_coordinator(store=ddb_store, notifier=notifier)
        ddb_store.put(make_episode(episode_id, UrgencyLevel.EMERGENCY))

        submitted = coordinator.dispatch("submit", {"episodeId": episode_id})
        assert submitted.ok
        decided = coordinator.dispatch("decision", {
            "episodeId": episode_id, "supervisorId": "sup-1", "approved": True,
        })
        assert decided.body["newStatus"] == "active"
        assert ddb_store.get(episode_id).validation_status == ValidationStatus.COMPLETED


@skip_no_localstack
class TestSNSIntegration:
    @pytest.fixture
    def channel(self, notification_topic):
        return SNSNotificationChannel(notification_topic, notification_topic, region=REGION,
                                      endpoint_url=LOCALSTACK_URL)

    def test_publish_supervisor_notice(self, channel):
        assert channel.notify_supervisor(make_episode("int-sns"), "sup-1")

    def test_publish_reminder_and_queue_status(self, channel):
        assert channel.send_validation_reminder(make_episode("int-sns"), "sup-1", 31.0)
        assert channel.send_queue_status_update(QueueStatistics(total_pending=1, routine_count=1))
