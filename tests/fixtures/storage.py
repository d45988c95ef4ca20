from __future__ import annotations

from collections.abc import Generator

import pytest

from src.user_service.core.events.event_bus import InMemoryEventBus, _reset_event_bus
from src.user_service.core.storage.table_storage import (
    InMemoryTableStorage,
    _reset_storage,
)
from src.user_service.triggers.post_confirmation import _reset_redis_service

__all__ = ["table_storage", "event_bus", "reset_singletons"]


@pytest.fixture
def table_storage() -> InMemoryTableStorage:
    return InMemoryTableStorage()


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None]:
    """Process-wide storage and bus instances never leak between tests."""
    _reset_storage()
    _reset_event_bus()
    _reset_redis_service()
    yield
    _reset_storage()
    _reset_event_bus()
    _reset_redis_service()
