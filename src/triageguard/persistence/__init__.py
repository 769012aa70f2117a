"""Pluggable episode store backends behind the IEpisodeStore protocol."""

from __future__ import annotations

from triageguard.core.config import AppSettings
from triageguard.persistence.dynamodb_backend import DynamoDBEpisodeStore
from triageguard.persistence.memory_backend import MemoryEpisodeStore


def create_episode_store(settings: AppSettings | None = None) -> DynamoDBEpisodeStore:
    """Create the DynamoDB episode store from application settings."""
    if settings is None:
        settings = AppSettings()

    return DynamoDBEpisodeStore(
        table_name=settings.dynamodb.table_name,
        table_suffix=settings.dynamodb.table_suffix,
        region=settings.dynamodb.region,
        endpoint_url=settings.dynamodb.endpoint_url,
        validation_status_index=settings.dynamodb.validation_status_index,
        supervisor_index=settings.dynamodb.supervisor_index,
    )


__all__ = ["DynamoDBEpisodeStore", "MemoryEpisodeStore", "create_episode_store"]
