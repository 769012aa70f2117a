"""Escalation rules per urgency tier and the results the engine reports."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from types import MappingProxyType
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from triageguard.models.episode import (
    URGENCY_PRIORITY,
    EscalationInfo,
    EscalationOutcome,
    UrgencyLevel,
    coerce_urgency,
)

SYSTEM_ESCALATION_SUPERVISOR = "system-escalation"


class EscalationRule(BaseModel):
    """SLA and fallback behaviour for one urgency tier."""

    model_config = ConfigDict(frozen=True)

    urgency_level: UrgencyLevel
    max_wait_time_minutes: int = Field(gt=0)
    backup_supervisors: tuple[str, ...] = ()
    default_to_higher_care_level: bool = False


class EscalationRuleSet:
    """Immutable urgency -> rule map, ordered most to least urgent.

    Lookups for an urgency that has no rule (including values that are not a
    known ``UrgencyLevel``) resolve to the least urgent configured rule.
    """

    def __init__(self, rules: Iterable[EscalationRule]) -> None:
        ordered = sorted(rules, key=lambda r: URGENCY_PRIORITY[r.urgency_level])
        if not ordered:
            raise ValueError("EscalationRuleSet requires at least one rule")
        self._rules = MappingProxyType({rule.urgency_level: rule for rule in ordered})
        self._fallback = ordered[-1]

    def __iter__(self) -> Iterator[EscalationRule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def fallback(self) -> EscalationRule:
        return self._fallback

    def rule_for(self, urgency: UrgencyLevel | str | None) -> EscalationRule:
        level = coerce_urgency(urgency) if urgency is not None else None
        return self._rules.get(level, self._fallback)  # type: ignore[arg-type]

    def resolve_level(self, urgency: UrgencyLevel | str | None) -> UrgencyLevel:
        return self.rule_for(urgency).urgency_level

    def priority(self, urgency: UrgencyLevel | str | None) -> int:
        return URGENCY_PRIORITY[self.resolve_level(urgency)]


DEFAULT_ESCALATION_RULES = EscalationRuleSet([
    EscalationRule(
        urgency_level=UrgencyLevel.EMERGENCY,
        max_wait_time_minutes=5,
        backup_supervisors=("emergency-supervisor-1", "emergency-supervisor-2"),
        default_to_higher_care_level=True,
    ),
    EscalationRule(
        urgency_level=UrgencyLevel.URGENT,
        max_wait_time_minutes=15,
        backup_supervisors=("urgent-supervisor-1", "urgent-supervisor-2"),
        default_to_higher_care_level=True,
    ),
    EscalationRule(
        urgency_level=UrgencyLevel.ROUTINE,
        max_wait_time_minutes=60,
        backup_supervisors=("routine-supervisor-1", "routine-supervisor-2"),
        default_to_higher_care_level=False,
    ),
    EscalationRule(
        urgency_level=UrgencyLevel.SELF_CARE,
        max_wait_time_minutes=120,
        backup_supervisors=("routine-supervisor-1",),
        default_to_higher_care_level=False,
    ),
])


class EscalationResult(BaseModel):
    episode_id: str
    outcome: EscalationOutcome
    escalation_info: EscalationInfo


class ReassignmentResult(BaseModel):
    """Outcome of moving one episode off an unavailable supervisor."""

    episode_id: str
    new_supervisor_id: Optional[str] = None
    escalation: Optional[EscalationResult] = None


class SweepFailure(BaseModel):
    urgency_level: UrgencyLevel
    episode_id: Optional[str] = None  # None when the overdue query itself failed
    error: str
    kind: str


class SweepReport(BaseModel):
    """Aggregated result of one timeout sweep across all rules."""

    escalated: list[str] = Field(default_factory=list)
    reminded: list[str] = Field(default_factory=list)
    failures: list[SweepFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures
