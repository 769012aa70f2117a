"""Backup supervisor selection strategies (IAvailabilityChecker)."""

from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from typing import Optional


class FirstConfiguredBackup:
    """Picks the first configured backup; no real availability signal."""

    def find_available_backup(self, candidates: Sequence[str], *,
                              exclude: Collection[str] = ()) -> Optional[str]:
        for candidate in candidates:
            if candidate not in exclude:
                return candidate
        return None


class RosterAvailabilityChecker:
    """Skips supervisors currently marked unavailable on the roster."""

    def __init__(self, unavailable: Iterable[str] = ()) -> None:
        self._unavailable = set(unavailable)

    def mark_unavailable(self, supervisor_id: str) -> None:
        self._unavailable.add(supervisor_id)

    def mark_available(self, supervisor_id: str) -> None:
        self._unavailable.discard(supervisor_id)

    def is_available(self, supervisor_id: str) -> bool:
        return supervisor_id not in self._unavailable

    def find_available_backup(self, candidates: Sequence[str], *,
                              exclude: Collection[str] = ()) -> Optional[str]:
        for candidate in candidates:
            if candidate not in exclude and self.is_available(candidate):
                return candidate
        return None
