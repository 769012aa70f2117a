"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class DynamoDBConfig(BaseSettings):
    """Episode table configuration."""

    model_config = {"env_prefix": "TRIAGEGUARD_DYNAMO_"}

    table_name: str = "triageguard-episodes"
    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override
    validation_status_index: str = "ValidationStatusIndex"
    supervisor_index: str = "SupervisorAssignmentIndex"


class NotificationConfig(BaseSettings):
    """SNS topics and the retry policy for emergency notifications."""

    model_config = {"env_prefix": "TRIAGEGUARD_SNS_"}

    region: str = "us-east-1"
    endpoint_url: str | None = None  # LocalStack override
    notification_topic_arn: str = ""
    emergency_alert_topic_arn: str = ""
    emergency_max_attempts: int = 3
    emergency_base_delay_seconds: float = 0.5
    emergency_max_delay_seconds: float = 5.0


class QueueConfig(BaseSettings):
    """Validation queue listing and wait-time learning."""

    model_config = {"env_prefix": "TRIAGEGUARD_QUEUE_"}

    default_limit: int = 20
    statistics_limit: int = 1000
    history_window: int = 50  # completed validations per tier used for the average
    reminder_fraction: float = Field(default=0.5, ge=0, lt=1)  # share of the SLA before a reminder; 0 disables


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "TRIAGEGUARD_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    dynamodb: DynamoDBConfig = DynamoDBConfig()
    notifications: NotificationConfig = NotificationConfig()
    queue: QueueConfig = QueueConfig()
