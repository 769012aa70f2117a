"""Queue projections and store query descriptors."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel

from triageguard.core.types import Timestamp
from triageguard.models.episode import StoreModel, UrgencyLevel, ValidationStatus


class EpisodeIndex(StrEnum):
    """Logical secondary indexes of the episode table."""

    VALIDATION_QUEUE = "validation_queue"  # validationStatus + queuedAt
    SUPERVISOR_QUEUE = "supervisor_queue"  # validationStatus + assignedSupervisor


class KeyCondition(BaseModel):
    """Key condition for an index query.

    ``queued_before`` narrows the range key of the validation queue index;
    ``assigned_supervisor`` is the range key of the supervisor index.
    """

    validation_status: ValidationStatus
    queued_before: Optional[datetime] = None
    assigned_supervisor: Optional[str] = None


class EpisodeFilter(BaseModel):
    urgency_level: Optional[UrgencyLevel] = None
    assigned_supervisor: Optional[str] = None


class QueueItem(StoreModel):
    """Read-only projection of a pending episode for queue display."""

    episode_id: str
    patient_id: str
    urgency_level: UrgencyLevel | str
    priority: int
    assigned_supervisor: Optional[str] = None
    queued_at: Timestamp
    waiting_minutes: float = 0.0
    estimated_wait_minutes: float = 0.0
    primary_complaint: Optional[str] = None
    severity: Optional[int] = None
    ai_confidence: Optional[float] = None
    ai_reasoning: Optional[str] = None


class QueueStatistics(StoreModel):
    total_pending: int = 0
    emergency_count: int = 0
    urgent_count: int = 0
    routine_count: int = 0
    self_care_count: int = 0
    average_wait_minutes: float = 0.0
