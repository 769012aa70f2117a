"""Unit test fixtures: in-memory store, recording notifier, frozen clock."""

from __future__ import annotations

import pytest

from tests.fakes import FrozenClock, MemoryEpisodeStore, MemoryNotificationChannel


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store() -> MemoryEpisodeStore:
    return MemoryEpisodeStore()


@pytest.fixture
def notifier() -> MemoryNotificationChannel:
    return MemoryNotificationChannel()
