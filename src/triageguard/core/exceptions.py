"""triageguard exception hierarchy.

Every error carries a ``kind`` tag and a structured ``context`` dict so that
callers can report a remediation payload instead of a bare message.
"""

from __future__ import annotations

from typing import Any


class TriageGuardError(Exception):
    """Base exception for all triageguard errors."""

    kind = "internal"

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, "kind": self.kind, **self.context}


class ValidationInputError(TriageGuardError):
    """Malformed request or episode that cannot enter the workflow."""

    kind = "validation_input"

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None, **context: Any) -> None:
        self.errors = errors or []
        super().__init__(message, errors=self.errors or None, **context)


class EpisodeNotFoundError(TriageGuardError):
    """No episode stored under the given id."""

    kind = "not_found"

    def __init__(self, episode_id: str) -> None:
        self.episode_id = episode_id
        super().__init__(f"Episode not found: {episode_id}", episode_id=episode_id)


class StoreError(TriageGuardError):
    """Episode store operation failed."""

    kind = "store"


class ConcurrentModificationError(TriageGuardError):
    """A conditional write lost against a concurrent writer."""

    kind = "conflict"

    def __init__(self, episode_id: str, message: str | None = None) -> None:
        self.episode_id = episode_id
        super().__init__(
            message or f"Episode {episode_id} was already validated by another writer",
            episode_id=episode_id,
        )


class NotificationError(TriageGuardError):
    """Notification publish failed after all permitted attempts."""

    kind = "notification"

    def __init__(self, message: str, episode_id: str | None = None, attempts: int = 1, **context: Any) -> None:
        self.episode_id = episode_id
        self.attempts = attempts
        super().__init__(message, episode_id=episode_id, attempts=attempts, **context)


class EscalationError(TriageGuardError):
    """Escalation of an episode failed part-way."""

    kind = "escalation"

    def __init__(self, episode_id: str, urgency_level: str, reason: str, message: str) -> None:
        self.episode_id = episode_id
        self.urgency_level = urgency_level
        self.reason = reason
        super().__init__(
            f"Escalation failed for episode {episode_id}: {message}",
            episode_id=episode_id,
            rule=urgency_level,
            reason=reason,
        )


class SweepError(TriageGuardError):
    """One or more episodes failed during a timeout sweep."""

    kind = "sweep"

    def __init__(self, report: Any) -> None:
        self.report = report
        failures = report.failures
        super().__init__(
            f"Timeout sweep finished with {len(failures)} failure(s)",
            failures=[f.model_dump(mode="json") for f in failures],
            escalated=list(report.escalated),
        )
