"""Event bus interface and implementations."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod

from loguru import logger

from src.user_service.core.events.models import EntryResult, EventEntry, PutEventsResult


class EventBus(ABC):
    """Abstract interface for event bus backends."""

    @abstractmethod
    async def put_events(self, entries: list[EventEntry]) -> PutEventsResult:
        """Send a batch of events.

        Per-entry failures are reported in the result, not raised. Transport
        failures may raise.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the bus backend is available."""


class InMemoryEventBus(EventBus):
    """Records published entries. Can be told to fail for tests."""

    def __init__(self):
        self.entries: list[EventEntry] = []
        self.fail_with: Exception | None = None
        self.reject_with: tuple[str, str] | None = None

    async def put_events(self, entries: list[EventEntry]) -> PutEventsResult:
        if self.fail_with is not None:
            raise self.fail_with

        if self.reject_with is not None:
            code, message = self.reject_with
            return PutEventsResult(
                failed_entry_count=len(entries),
                entries=[EntryResult(error_code=code, error_message=message) for _ in entries],
            )

        results = []
        for entry in entries:
            self.entries.append(entry)
            results.append(EntryResult(event_id=str(uuid.uuid4())))
        return PutEventsResult(failed_entry_count=0, entries=results)

    def of_type(self, detail_type: str) -> list[EventEntry]:
        return [entry for entry in self.entries if entry.detail_type == detail_type]

    def is_available(self) -> bool:
        return True


class RedisStreamEventBus(EventBus):
    """Appends events to a Redis stream named after the bus.

    A batch is sent in one non-transactional pipeline; each XADD succeeds or
    fails on its own, which maps onto per-entry results.
    """

    def __init__(self, redis_client, stream_prefix: str = "events", maxlen: int = 100_000):
        self._redis = redis_client
        self._prefix = stream_prefix
        self._maxlen = maxlen
        self._available = True

    def stream_key(self, bus_name: str) -> str:
        return f"{self._prefix}:{bus_name}"

    async def put_events(self, entries: list[EventEntry]) -> PutEventsResult:
        async with self._redis.pipeline(transaction=False) as pipe:
            for entry in entries:
                pipe.xadd(
                    self.stream_key(entry.event_bus_name),
                    {
                        "source": entry.source,
                        "detail-type": entry.detail_type,
                        "detail": entry.detail,
                    },
                    maxlen=self._maxlen,
                    approximate=True,
                )
            try:
                replies = await pipe.execute(raise_on_error=False)
            except Exception:
                self._available = False
                raise

        self._available = True
        results = []
        for reply in replies:
            if isinstance(reply, Exception):
                results.append(
                    EntryResult(error_code=type(reply).__name__, error_message=str(reply))
                )
            else:
                event_id = reply.decode("utf-8") if isinstance(reply, bytes) else str(reply)
                results.append(EntryResult(event_id=event_id))

        failed = sum(1 for result in results if result.error_code)
        if failed:
            logger.bind(failed=failed, total=len(results)).debug("Partial stream write")
        return PutEventsResult(failed_entry_count=failed, entries=results)

    def is_available(self) -> bool:
        return self._available


# Global event bus instance
_event_bus: EventBus | None = None


def _create_event_bus(redis_client=None) -> EventBus:
    """Build the configured bus, falling back to memory outside production."""
    from src.user_service.runtime.context import get_config

    config = get_config()
    if config.events.backend == "memory":
        logger.info("Event bus: in-memory")
        return InMemoryEventBus()

    if redis_client is not None:
        logger.info("Event bus: Redis stream for {}", config.events.bus_name)
        return RedisStreamEventBus(redis_client)

    if config.app.environment == "production":
        raise RuntimeError("Redis event bus unavailable in production")

    logger.warning("Redis unavailable, using in-memory event bus")
    return InMemoryEventBus()


def get_event_bus(redis_client=None) -> EventBus:
    """Get the configured event bus instance."""
    global _event_bus

    if _event_bus is None:
        _event_bus = _create_event_bus(redis_client)

    return _event_bus


def _reset_event_bus() -> None:
    """Reset event bus instance (for testing)."""
    global _event_bus
    _event_bus = None
