"""WorkflowCoordinator: request surface of the human-validation workflow.

Each operation takes a camelCase payload dict and returns a response body.
``dispatch`` maps domain errors onto status codes for the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from triageguard.core.exceptions import (
    ConcurrentModificationError,
    EpisodeNotFoundError,
    TriageGuardError,
    ValidationInputError,
)
from triageguard.core.protocols import IEpisodeStore, INotificationChannel
from triageguard.core.types import Clock, JsonDict, utc_now
from triageguard.models.episode import EpisodeStatus, HumanValidation, UrgencyLevel, ValidationStatus
from triageguard.models.workflow import (
    DecisionRequest,
    DigestRequest,
    ListRequest,
    StatusRequest,
    SubmitRequest,
    WorkflowOperation,
    WorkflowResponse,
)
from triageguard.workflow.escalation import EscalationEngine
from triageguard.workflow.queue_manager import ValidationQueueManager

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT", bound=BaseModel)

_MISSING_ERROR_TYPES = {"missing", "string_too_short"}

_STATUS_CODES: list[tuple[type[TriageGuardError], int]] = [
    (ValidationInputError, 400),
    (EpisodeNotFoundError, 404),
    (ConcurrentModificationError, 409),
]


def _parse(model: type[RequestT], payload: Optional[JsonDict], missing_message: str) -> RequestT:
    """Validate a request payload, translating pydantic errors for the caller."""
    try:
        return model.model_validate(payload or {})
    except ValidationError as exc:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"], "type": err["type"]}
            for err in exc.errors()
        ]
        if any(err["type"] in _MISSING_ERROR_TYPES for err in errors):
            message = missing_message
        else:
            message = "Invalid request payload"
        raise ValidationInputError(message, errors=errors) from exc


class WorkflowCoordinator:
    """Validation request operations plus supervisor digests and queue status broadcasts."""

    def __init__(
        self,
        store: IEpisodeStore,
        queue_manager: ValidationQueueManager,
        engine: EscalationEngine,
        notifier: INotificationChannel,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._queue = queue_manager
        self._engine = engine
        self._notifier = notifier
        self._clock = clock
        self._handlers: dict[WorkflowOperation, Callable[[Optional[JsonDict]], JsonDict]] = {
            WorkflowOperation.SUBMIT: self.submit,
            WorkflowOperation.STATUS: self.status,
            WorkflowOperation.LIST: self.list_queue,
            WorkflowOperation.DECISION: self.decision,
            WorkflowOperation.STATISTICS: self.statistics,
            WorkflowOperation.DIGEST: self.digest,
            WorkflowOperation.QUEUE_STATUS_UPDATE: self.queue_status_update,
        }

    @property
    def queue_manager(self) -> ValidationQueueManager:
        return self._queue

    @property
    def engine(self) -> EscalationEngine:
        return self._engine

    # ---- operations ----

    def submit(self, payload: Optional[JsonDict]) -> JsonDict:
        request = _parse(SubmitRequest, payload, "Missing required field: episodeId")
        episode = self._store.get(request.episode_id)
        if episode.triage_assessment is None:
            raise ValidationInputError("Episode does not have triage assessment", episode_id=episode.episode_id)

        if episode.human_validation is not None:
            return {
                "message": "Episode already has human validation",
                "episodeId": episode.episode_id,
                "validationStatus": episode.validation_status,
            }

        queued = self._queue.add_to_queue(episode, request.supervisor_id)
        urgency = queued.urgency
        self._notifier.notify_supervisor(
            queued, request.supervisor_id, is_emergency=urgency == UrgencyLevel.EMERGENCY,
        )
        return {
            "message": "Validation request submitted successfully",
            "episodeId": queued.episode_id,
            "urgencyLevel": urgency,
            "queuePosition": self._queue.get_queue_position(queued.episode_id),
        }

    def status(self, payload: Optional[JsonDict]) -> JsonDict:
        request = _parse(StatusRequest, payload, "Missing required field: episodeId")
        episode = self._store.get(request.episode_id)
        validation = episode.human_validation
        return {
            "episodeId": episode.episode_id,
            "validationStatus": episode.validation_status,
            "validation": validation.model_dump(mode="json", by_alias=True) if validation else None,
            "queuePosition": self._queue.get_queue_position(episode.episode_id),
            "estimatedWaitTime": self._queue.get_estimated_wait_time(episode.episode_id),
        }

    def list_queue(self, payload: Optional[JsonDict]) -> JsonDict:
        request = _parse(ListRequest, payload, "Invalid queue request")
        items = self._queue.get_queue(request.supervisor_id, request.urgency, request.limit)
        return {
            "queue": [item.model_dump(mode="json", by_alias=True) for item in items],
            "totalItems": len(items),
            "supervisorId": request.supervisor_id,
        }

    def decision(self, payload: Optional[JsonDict]) -> JsonDict:
        request = _parse(DecisionRequest, payload, "Missing required fields: episodeId, supervisorId, approved")
        episode = self._store.get(request.episode_id)
        if episode.human_validation is not None:
            raise ConcurrentModificationError(episode.episode_id, "Episode already has human validation")

        validation = HumanValidation(
            supervisor_id=request.supervisor_id,
            approved=request.approved,
            override_reason=request.override_reason,
            notes=request.notes,
            timestamp=self._clock(),
        )
        new_status = EpisodeStatus.ACTIVE if request.approved else EpisodeStatus.ESCALATED
        updated = self._store.update(
            episode.episode_id,
            {
                "human_validation": validation,
                "validation_status": ValidationStatus.COMPLETED,
                "status": new_status,
            },
            unless_completed=True,
        )
        logger.info("Recorded validation for episode %s by %s (approved=%s)",
                    episode.episode_id, validation.supervisor_id, validation.approved)

        self._queue.remove_from_queue(episode.episode_id)
        if not request.approved and request.override_reason:
            self._engine.handle_override(self._store.get(episode.episode_id), validation)
        if request.approved:
            self._notifier.notify_care_coordinator(updated, validation)

        return {
            "message": "Validation decision recorded successfully",
            "episodeId": episode.episode_id,
            "approved": validation.approved,
            "newStatus": new_status,
            "validation": validation.model_dump(mode="json", by_alias=True),
        }

    def statistics(self, payload: Optional[JsonDict] = None) -> JsonDict:
        return self._queue.get_queue_statistics().model_dump(mode="json", by_alias=True)

    def digest(self, payload: Optional[JsonDict]) -> JsonDict:
        """Send one supervisor a single notification listing their pending episodes."""
        request = _parse(DigestRequest, payload, "Missing required field: supervisorId")
        items = self._queue.get_queue(request.supervisor_id, limit=request.limit)
        message_id = self._notifier.send_batch_notification(request.supervisor_id, items) if items else None
        return {
            "supervisorId": request.supervisor_id,
            "episodeCount": len(items),
            "messageId": message_id,
        }

    def queue_status_update(self, payload: Optional[JsonDict] = None) -> JsonDict:
        statistics = self._queue.get_queue_statistics()
        message_id = self._notifier.send_queue_status_update(statistics)
        return {**statistics.model_dump(mode="json", by_alias=True), "messageId": message_id}

    # ---- dispatch ----

    def dispatch(self, operation: str, payload: Optional[JsonDict] = None) -> WorkflowResponse:
        """Run one operation and map domain errors to a status code.

        Exceptions outside the triageguard hierarchy propagate.
        """
        try:
            try:
                handler = self._handlers[WorkflowOperation(operation)]
            except ValueError:
                raise ValidationInputError(f"Unsupported operation: {operation}", operation=operation) from None
            body = handler(payload)
        except TriageGuardError as exc:
            status_code = next((code for cls, code in _STATUS_CODES if isinstance(exc, cls)), 500)
            if status_code == 500:
                logger.exception("Operation %s failed", operation)
            else:
                logger.info("Operation %s rejected (%d): %s", operation, status_code, exc)
            return WorkflowResponse(status_code=status_code, body=exc.to_payload())
        return WorkflowResponse(status_code=200, body=body)
