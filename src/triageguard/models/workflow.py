"""Coordinator request payloads and the response envelope."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from pydantic.alias_generators import to_camel

from triageguard.models.episode import UrgencyLevel


class WorkflowOperation(StrEnum):
    SUBMIT = "submit"
    STATUS = "status"
    LIST = "list"
    DECISION = "decision"
    STATISTICS = "statistics"
    DIGEST = "digest"
    QUEUE_STATUS_UPDATE = "queueStatusUpdate"


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class SubmitRequest(RequestModel):
    episode_id: str = Field(min_length=1)
    supervisor_id: Optional[str] = None


class StatusRequest(RequestModel):
    episode_id: str = Field(min_length=1)


class ListRequest(RequestModel):
    supervisor_id: Optional[str] = None
    urgency: Optional[UrgencyLevel] = None
    limit: int = Field(default=20, ge=1, le=100)


class DigestRequest(RequestModel):
    supervisor_id: str = Field(min_length=1)
    limit: int = Field(default=20, ge=1, le=100)


class DecisionRequest(RequestModel):
    episode_id: str = Field(min_length=1)
    supervisor_id: str = Field(min_length=1)
    approved: StrictBool
    override_reason: Optional[str] = Field(default=None, max_length=500)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("override_reason", "notes", mode="after")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class WorkflowResponse(BaseModel):
    status_code: int = 200
    body: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300
