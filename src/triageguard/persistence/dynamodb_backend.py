"""DynamoDB backend implementing IEpisodeStore."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import Any, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from triageguard.core.exceptions import ConcurrentModificationError, EpisodeNotFoundError, StoreError
from triageguard.core.types import format_timestamp, utc_now
from triageguard.models.episode import Episode, ValidationStatus
from triageguard.models.queue import EpisodeFilter, EpisodeIndex, KeyCondition

logger = logging.getLogger(__name__)


def _decode_decimals(item: dict[str, Any]) -> dict[str, Any]:
    """Convert Decimal values in a DynamoDB item to int/float."""
    out: dict[str, Any] = {}
    for k, v in item.items():
        out[k] = _decode_value(v)
    return out


def _decode_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == int(value) else float(value)
    if isinstance(value, dict):
        return _decode_decimals(value)
    if isinstance(value, list):
        return [_decode_value(v) for v in value]
    return value


def _to_dynamodb(obj: Any) -> Any:
    """Convert JSON-serialized floats to Decimal for DynamoDB."""
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _to_dynamodb(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_to_dynamodb(i) for i in obj]
    return obj


def episode_to_item(episode: Episode) -> dict[str, Any]:
    return _to_dynamodb(episode.model_dump(mode="json", by_alias=True, exclude_none=True))


def _attribute(field: str) -> str:
    info = Episode.model_fields.get(field)
    if info is None:
        raise ValueError(f"Unknown episode field: {field!r}")
    return info.alias or field


class DynamoDBEpisodeStore:
    """Production IEpisodeStore backed by a DynamoDB table.

    Table key is ``episodeId``. Two global secondary indexes back the queue:
    ``validationStatus``/``queuedAt`` and ``validationStatus``/``assignedSupervisor``.
    Both are sparse, so ``None`` values are written as REMOVE actions.
    """

    def __init__(self, table_name: str = "triageguard-episodes", table_suffix: str = "",
                 region: str = "us-east-1", endpoint_url: str | None = None,
                 validation_status_index: str = "ValidationStatusIndex",
                 supervisor_index: str = "SupervisorAssignmentIndex") -> None:
        self._table_name = f"{table_name}{table_suffix}"
        self._region = region
        self._endpoint_url = endpoint_url
        self._indexes = {
            EpisodeIndex.VALIDATION_QUEUE: validation_status_index,
            EpisodeIndex.SUPERVISOR_QUEUE: supervisor_index,
        }
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)

    @property
    def table_name(self) -> str:
        return self._table_name

    def _table(self):
        return self._ddb.Table(self._table_name)

    def _get_item(self, episode_id: str) -> dict[str, Any] | None:
        """Get a single item by key. Returns None if not found."""
        try:
            resp = self._table().get_item(Key={"episodeId": episode_id})
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"DynamoDB GET failed for episode {episode_id!r}: {exc}",
                             episode_id=episode_id) from exc
        item = resp.get("Item")
        return _decode_decimals(item) if item else None

    # ---- IEpisodeStore methods ----

    def get(self, episode_id: str) -> Episode:
        item = self._get_item(episode_id)
        if item is None:
            raise EpisodeNotFoundError(episode_id)
        return Episode.model_validate(item)

    def put(self, episode: Episode) -> None:
        try:
            self._table().put_item(Item=episode_to_item(episode))
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"DynamoDB PUT failed for episode {episode.episode_id!r}: {exc}",
                             episode_id=episode.episode_id) from exc

    def update(
        self,
        episode_id: str,
        changes: dict[str, Any],
        *,
        remove: Iterable[str] = (),
        unless_completed: bool = False,
    ) -> Episode:
        set_values = {f: v for f, v in changes.items() if v is not None}
        remove_fields = [f for f, v in changes.items() if v is None] + list(remove)
        serialized = Episode.model_construct(**set_values).model_dump(
            mode="json", by_alias=True, include=set(set_values), exclude_none=True,
        )

        names: dict[str, str] = {"#id": "episodeId", "#updatedAt": "updatedAt", "#version": "version"}
        values: dict[str, Any] = {":updatedAt": format_timestamp(utc_now()), ":one": 1}
        set_parts = ["#updatedAt = :updatedAt"]
        for i, field in enumerate(set_values):
            attr = _attribute(field)
            names[f"#s{i}"] = attr
            values[f":s{i}"] = _to_dynamodb(serialized[attr])
            set_parts.append(f"#s{i} = :s{i}")
        remove_parts = []
        for i, field in enumerate(remove_fields):
            names[f"#r{i}"] = _attribute(field)
            remove_parts.append(f"#r{i}")

        expression = "SET " + ", ".join(set_parts)
        if remove_parts:
            expression += " REMOVE " + ", ".join(remove_parts)
        expression += " ADD #version :one"

        condition = "attribute_exists(#id)"
        if unless_completed:
            names["#validationStatus"] = "validationStatus"
            values[":completed"] = ValidationStatus.COMPLETED.value
            condition += " AND (attribute_not_exists(#validationStatus) OR #validationStatus <> :completed)"

        try:
            resp = self._table().update_item(
                Key={"episodeId": episode_id},
                UpdateExpression=expression,
                ConditionExpression=condition,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                if self._get_item(episode_id) is None:
                    raise EpisodeNotFoundError(episode_id) from exc
                raise ConcurrentModificationError(episode_id) from exc
            raise StoreError(f"DynamoDB UPDATE failed for episode {episode_id!r}: {exc}",
                             episode_id=episode_id) from exc
        except BotoCoreError as exc:
            raise StoreError(f"DynamoDB UPDATE failed for episode {episode_id!r}: {exc}",
                             episode_id=episode_id) from exc
        return Episode.model_validate(_decode_decimals(resp["Attributes"]))

    def query(
        self,
        index: EpisodeIndex,
        key: KeyCondition,
        filter: Optional[EpisodeFilter] = None,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[Episode]:
        condition = Key("validationStatus").eq(key.validation_status.value)
        if index == EpisodeIndex.VALIDATION_QUEUE and key.queued_before is not None:
            condition = condition & Key("queuedAt").lt(format_timestamp(key.queued_before))
        if index == EpisodeIndex.SUPERVISOR_QUEUE and key.assigned_supervisor is not None:
            condition = condition & Key("assignedSupervisor").eq(key.assigned_supervisor)

        filter_expression = None
        if filter is not None:
            if filter.urgency_level is not None:
                filter_expression = Attr("urgencyLevel").eq(filter.urgency_level.value)
            if filter.assigned_supervisor is not None:
                by_supervisor = Attr("assignedSupervisor").eq(filter.assigned_supervisor)
                filter_expression = by_supervisor if filter_expression is None else filter_expression & by_supervisor

        kwargs: dict[str, Any] = {
            "IndexName": self._indexes[index],
            "KeyConditionExpression": condition,
            "ScanIndexForward": not newest_first,
        }
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression

        items: list[dict[str, Any]] = []
        try:
            while True:
                resp = self._table().query(**kwargs)
                items.extend(resp.get("Items", []))
                if limit is not None and len(items) >= limit:
                    break
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"DynamoDB QUERY on {self._indexes[index]} failed: {exc}",
                             index=self._indexes[index]) from exc

        if limit is not None:
            items = items[:limit]
        logger.debug("Query %s returned %d episode(s)", self._indexes[index], len(items))
        return [Episode.model_validate(_decode_decimals(item)) for item in items]
