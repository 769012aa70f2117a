"""SNS notification channel implementing INotificationChannel."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from triageguard.core.exceptions import NotificationError
from triageguard.core.types import Clock, utc_now
from triageguard.models.episode import Episode, HumanValidation
from triageguard.models.queue import QueueItem, QueueStatistics
from triageguard.notifications.messages import (
    NotificationMessage,
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

logger = logging.getLogger(__name__)


class SNSNotificationChannel:
    """Production INotificationChannel publishing to two SNS topics.

    Routine traffic goes to the notification topic; emergency alerts and
    escalations go to the emergency alert topic. Emergency notifications are
    retried with exponential backoff, all others are sent exactly once.
    """

    def __init__(self, notification_topic_arn: str, emergency_alert_topic_arn: str,
                 region: str = "us-east-1", endpoint_url: str | None = None,
                 max_attempts: int = 3, base_delay_seconds: float = 0.5,
                 max_delay_seconds: float = 5.0, clock: Clock = utc_now,
                 sleep: Callable[[float], None] = time.sleep) -> None:
        self._notification_topic_arn = notification_topic_arn
        self._emergency_alert_topic_arn = emergency_alert_topic_arn or notification_topic_arn
        self._max_attempts = max(1, max_attempts)
        self._base_delay = base_delay_seconds
        self._max_delay = max_delay_seconds
        self._clock = clock
        self._sleep = sleep
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("sns", **kwargs)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry ``attempt`` (1-indexed), capped at max_delay."""
        return min(self._base_delay * (2 ** (attempt - 1)), self._max_delay)

    def _publish(self, topic_arn: str, message: NotificationMessage, *, retry: bool,
                 **extra_attributes: str) -> str:
        attempts = self._max_attempts if retry else 1
        subject = render_subject(message)
        body = render_body(message)
        attributes = message_attributes(message, **extra_attributes)

        attempt = 1
        while True:
            try:
                resp = self._client.publish(
                    TopicArn=topic_arn,
                    Subject=subject,
                    Message=body,
                    MessageAttributes=attributes,
                )
            except (ClientError, BotoCoreError) as exc:
                if attempt >= attempts:
                    raise NotificationError(
                        f"SNS publish of {message.type.value} failed after {attempt} attempt(s): {exc}",
                        episode_id=message.episode_id,
                        attempts=attempt,
                        notification_type=message.type.value,
                    ) from exc
                delay = self.backoff_delay(attempt)
                logger.warning("SNS publish of %s for %s failed (attempt %d/%d), retrying in %.2fs",
                               message.type.value, message.episode_id, attempt, attempts, delay)
                self._sleep(delay)
                attempt += 1
                continue

            message_id = resp["MessageId"]
            logger.info("Sent %s for %s. MessageId: %s",
                        message.type.value, message.episode_id or message.supervisor_id or "queue", message_id)
            return message_id

    # ---- INotificationChannel methods ----

    def notify_supervisor(self, episode: Episode, supervisor_id: Optional[str] = None,
                          is_emergency: bool = False) -> str:
        message = supervisor_message(episode, supervisor_id, is_emergency, self._clock())
        topic = self._emergency_alert_topic_arn if is_emergency else self._notification_topic_arn
        return self._publish(topic, message, retry=is_emergency,
                             supervisor_id=supervisor_id or "unassigned")

    def notify_care_coordinator(self, episode: Episode, validation: HumanValidation) -> str:
        message = coordinator_message(episode, validation, self._clock())
        return self._publish(self._notification_topic_arn, message, retry=False,
                             approved=str(validation.approved).lower())

    def send_escalation_notification(self, episode: Episode, reason: str,
                                     candidate_supervisors: Sequence[str]) -> str:
        message = escalation_message(episode, reason, candidate_supervisors, self._clock())
        return self._publish(self._emergency_alert_topic_arn, message,
                             retry=message.is_emergency_tier,
                             escalation_reason=reason)

    def send_validation_reminder(self, episode: Episode, supervisor_id: Optional[str],
                                 wait_minutes: float) -> str:
        message = reminder_message(episode, supervisor_id, wait_minutes, self._clock())
        return self._publish(self._notification_topic_arn, message,
                             retry=message.is_emergency_tier,
                             supervisor_id=supervisor_id or "unassigned")

    def send_batch_notification(self, supervisor_id: Optional[str], items: Sequence[QueueItem]) -> str:
        message = batch_message(supervisor_id, items, self._clock())
        return self._publish(self._notification_topic_arn, message, retry=False,
                             supervisor_id=supervisor_id or "unassigned", count=len(items))

    def send_queue_status_update(self, statistics: QueueStatistics) -> str:
        message = queue_status_message(statistics, self._clock())
        return self._publish(self._notification_topic_arn, message, retry=False,
                             total_pending=statistics.total_pending,
                             emergency_count=statistics.emergency_count)
