"""Episode aggregate and the validation records attached to it."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from triageguard.core.types import Timestamp, utc_now


class UrgencyLevel(StrEnum):
    EMERGENCY = "emergency"
    URGENT = "urgent"
    ROUTINE = "routine"
    SELF_CARE = "self-care"


class EpisodeStatus(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ESCALATED = "escalated"
    CANCELLED = "cancelled"


class ValidationStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"


class EscalationOutcome(StrEnum):
    REASSIGNED = "reassigned"
    DEFAULTED_HIGHER_CARE = "defaulted_higher_care"
    ALERTED_ONLY = "alerted_only"


# Lower rank = validated first.
URGENCY_PRIORITY: dict[UrgencyLevel, int] = {
    UrgencyLevel.EMERGENCY: 0,
    UrgencyLevel.URGENT: 1,
    UrgencyLevel.ROUTINE: 2,
    UrgencyLevel.SELF_CARE: 3,
}


def coerce_urgency(value: object) -> object:
    """Return the matching UrgencyLevel, or the raw value when it is unknown."""
    try:
        return UrgencyLevel(value)
    except ValueError:
        return value


class StoreModel(BaseModel):
    """Base for models persisted in the episode table (camelCase attributes)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Symptoms(StoreModel):
    primary_complaint: str
    duration: str = ""
    severity: int = Field(default=0, ge=0, le=10)
    associated_symptoms: list[str] = Field(default_factory=list)


class AIAssessment(StoreModel):
    used: bool = False
    confidence: Optional[float] = None
    reasoning: Optional[str] = None
    model_used: Optional[str] = None


class TriageAssessment(StoreModel):
    """Output of the (external) triage engine awaiting human sign-off."""

    urgency_level: UrgencyLevel | str
    rule_based_score: float = 0
    ai_assessment: AIAssessment = Field(default_factory=AIAssessment)
    final_score: float = 0

    @field_validator("urgency_level", mode="before")
    @classmethod
    def _coerce_urgency(cls, value: object) -> object:
        return coerce_urgency(value)


class HumanValidation(StoreModel):
    """A supervisor's approve/override decision on a triage recommendation."""

    supervisor_id: str = Field(min_length=1)
    approved: bool
    override_reason: Optional[str] = Field(default=None, min_length=1, max_length=500)
    notes: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    timestamp: Timestamp = Field(default_factory=utc_now)


class EscalationInfo(StoreModel):
    reason: str
    timestamp: Timestamp = Field(default_factory=utc_now)
    new_supervisor_id: Optional[str] = None
    outcome: Optional[EscalationOutcome] = None
    # backups already handed this episode by earlier escalations
    attempted_supervisors: list[str] = Field(default_factory=list)


class OverrideInfo(StoreModel):
    supervisor_id: str
    reason: Optional[str] = None
    timestamp: Timestamp
    approved: bool


class Episode(StoreModel):
    """A patient care interaction record as stored in the episode table.

    ``validation_status`` only ever moves pending -> completed. The episode is
    part of the logical validation queue while it is pending and carries a
    triage assessment.
    """

    episode_id: str
    patient_id: str
    status: EpisodeStatus = EpisodeStatus.ACTIVE
    symptoms: Optional[Symptoms] = None
    triage_assessment: Optional[TriageAssessment] = None
    urgency_level: Optional[UrgencyLevel | str] = None
    validation_status: Optional[ValidationStatus] = None
    assigned_supervisor: Optional[str] = None
    queued_at: Optional[Timestamp] = None
    queue_priority: Optional[int] = None
    reassigned_at: Optional[Timestamp] = None
    reminder_sent_at: Optional[Timestamp] = None
    human_validation: Optional[HumanValidation] = None
    escalation_info: Optional[EscalationInfo] = None
    override_info: Optional[OverrideInfo] = None
    version: int = 0
    created_at: Timestamp = Field(default_factory=utc_now)
    updated_at: Optional[Timestamp] = None

    @field_validator("urgency_level", mode="before")
    @classmethod
    def _coerce_urgency(cls, value: object) -> object:
        return None if value is None else coerce_urgency(value)

    @property
    def urgency(self) -> UrgencyLevel | str | None:
        """Queue-level urgency, falling back to the triage assessment's."""
        if self.urgency_level is not None:
            return self.urgency_level
        if self.triage_assessment is not None:
            return self.triage_assessment.urgency_level
        return None

    @property
    def is_queued(self) -> bool:
        return self.validation_status == ValidationStatus.PENDING and self.triage_assessment is not None

    @property
    def sla_started_at(self) -> Optional[datetime]:
        """Start of the current SLA window.

        Queuing opens the window; a later reassignment or escalation restarts it.
        """
        marks = [self.queued_at, self.reassigned_at]
        if self.escalation_info is not None:
            marks.append(self.escalation_info.timestamp)
        started = [m for m in marks if m is not None]
        return max(started) if started else None
