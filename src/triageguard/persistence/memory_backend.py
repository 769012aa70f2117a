"""In-memory backends for unit tests: dict-backed fakes."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Optional

from triageguard.core.exceptions import ConcurrentModificationError, EpisodeNotFoundError
from triageguard.core.types import utc_now
from triageguard.models.episode import Episode, ValidationStatus
from triageguard.models.queue import EpisodeFilter, EpisodeIndex, KeyCondition


class MemoryEpisodeStore:
    """Dict-backed IEpisodeStore mirroring the DynamoDB adapter's semantics.

    Both indexes are sparse: an episode without ``queued_at`` is invisible to
    the validation queue index, one without ``assigned_supervisor`` to the
    supervisor index.
    """

    def __init__(self, episodes: Iterable[Episode] = ()) -> None:
        self._episodes: dict[str, Episode] = {}
        for episode in episodes:
            self.put(episode)

    def get(self, episode_id: str) -> Episode:
        episode = self._episodes.get(episode_id)
        if episode is None:
            raise EpisodeNotFoundError(episode_id)
        return episode.model_copy(deep=True)

    def put(self, episode: Episode) -> None:
        self._episodes[episode.episode_id] = episode.model_copy(deep=True)

    def update(
        self,
        episode_id: str,
        changes: dict[str, Any],
        *,
        remove: Iterable[str] = (),
        unless_completed: bool = False,
    ) -> Episode:
        current = self._episodes.get(episode_id)
        if current is None:
            raise EpisodeNotFoundError(episode_id)
        if unless_completed and current.validation_status == ValidationStatus.COMPLETED:
            raise ConcurrentModificationError(episode_id)

        unknown = (set(changes) | set(remove)) - set(Episode.model_fields)
        if unknown:
            raise ValueError(f"Unknown episode fields: {sorted(unknown)}")

        data = dict(current)
        data.update(changes)
        for field in remove:
            data[field] = None
        data["version"] = current.version + 1
        data["updated_at"] = utc_now()
        updated = Episode.model_validate(data)
        self._episodes[episode_id] = updated
        return updated.model_copy(deep=True)

    def query(
        self,
        index: EpisodeIndex,
        key: KeyCondition,
        filter: Optional[EpisodeFilter] = None,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> list[Episode]:
        matches = [e for e in self._episodes.values() if e.validation_status == key.validation_status]

        if index == EpisodeIndex.VALIDATION_QUEUE:
            matches = [e for e in matches if e.queued_at is not None]
            if key.queued_before is not None:
                matches = [e for e in matches if e.queued_at < key.queued_before]
            matches.sort(key=lambda e: e.queued_at, reverse=newest_first)
        else:
            matches = [e for e in matches if e.assigned_supervisor is not None]
            if key.assigned_supervisor is not None:
                matches = [e for e in matches if e.assigned_supervisor == key.assigned_supervisor]
            matches.sort(key=lambda e: e.assigned_supervisor, reverse=newest_first)

        if filter is not None:
            if filter.urgency_level is not None:
                matches = [e for e in matches if e.urgency_level == filter.urgency_level]
            if filter.assigned_supervisor is not None:
                matches = [e for e in matches if e.assigned_supervisor == filter.assigned_supervisor]

        if limit is not None:
            matches = matches[:limit]
        return [e.model_copy(deep=True) for e in matches]

    def __len__(self) -> int:
        return len(self._episodes)
