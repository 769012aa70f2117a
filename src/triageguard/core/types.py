"""Type aliases and timestamp helpers used across triageguard."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Callable

from pydantic import AfterValidator, PlainSerializer

JsonDict = dict[str, Any]
Clock = Callable[[], datetime]

# Fixed width so stored timestamps sort lexicographically in range keys.
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return ensure_utc(value).strftime(TIMESTAMP_FORMAT)


def minutes_between(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 60.0


Timestamp = Annotated[
    datetime,
    AfterValidator(ensure_utc),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]
