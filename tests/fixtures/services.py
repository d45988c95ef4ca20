from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from src.user_service.core.events.event_bus import InMemoryEventBus
from src.user_service.core.events.publisher import EventPublisher
from src.user_service.core.storage.table_storage import InMemoryTableStorage
from src.user_service.entities.core.user.repository import UserRepository
from src.user_service.triggers.post_confirmation import SignupReconciler

__all__ = [
    "user_repository",
    "event_publisher",
    "recorded_sleeps",
    "signup_reconciler",
    "signup_event",
]

TEST_BUS = "test-user-service"


@pytest.fixture
def user_repository(table_storage: InMemoryTableStorage) -> UserRepository:
    return UserRepository(table_storage)


@pytest.fixture
def event_publisher(event_bus: InMemoryEventBus) -> EventPublisher:
    return EventPublisher(event_bus, bus_name=TEST_BUS, environment="test")


@pytest.fixture
def recorded_sleeps() -> list[float]:
    return []


@pytest.fixture
def signup_reconciler(
    user_repository: UserRepository,
    event_publisher: EventPublisher,
    recorded_sleeps: list[float],
) -> SignupReconciler:
    """Reconciler whose backoff sleeps are recorded instead of awaited."""

    async def _sleep(seconds: float) -> None:
        recorded_sleeps.append(seconds)

    return SignupReconciler(user_repository, event_publisher, sleep=_sleep)


@pytest.fixture
def signup_event() -> Callable[..., dict[str, Any]]:
    """Factory for identity provider post-confirmation events."""

    def _make(
        sub: str | None = "user-123",
        email: str | None = "Jane.Doe@Example.com",
        trigger_source: str = "PostConfirmation_ConfirmSignUp",
    ) -> dict[str, Any]:
        attributes: dict[str, Any] = {}
        if sub is not None:
            attributes["sub"] = sub
        if email is not None:
            attributes["email"] = email
        return {
            "version": "1",
            "triggerSource": trigger_source,
            "region": "us-east-1",
            "userPoolId": "us-east-1_test",
            "userName": sub,
            "request": {"userAttributes": attributes},
            "response": {},
        }

    return _make
