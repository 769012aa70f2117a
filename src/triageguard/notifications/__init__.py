"""Supervisor and care-coordinator notification channels."""

from __future__ import annotations

from triageguard.core.config import AppSettings
from triageguard.notifications.memory_channel import MemoryNotificationChannel
from triageguard.notifications.sns_channel import SNSNotificationChannel


def create_notification_channel(settings: AppSettings | None = None) -> SNSNotificationChannel:
    """Create the SNS notification channel from application settings."""
    if settings is None:
        settings = AppSettings()

    cfg = settings.notifications
    return SNSNotificationChannel(
        notification_topic_arn=cfg.notification_topic_arn,
        emergency_alert_topic_arn=cfg.emergency_alert_topic_arn,
        region=cfg.region,
        endpoint_url=cfg.endpoint_url,
        max_attempts=cfg.emergency_max_attempts,
        base_delay_seconds=cfg.emergency_base_delay_seconds,
        max_delay_seconds=cfg.emergency_max_delay_seconds,
    )


__all__ = ["MemoryNotificationChannel", "SNSNotificationChannel", "create_notification_channel"]
