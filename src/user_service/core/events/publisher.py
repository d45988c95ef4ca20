"""Best-effort domain event publishing.

Delivery is fire-and-forget: the outcome of a mutation never depends on its
event reaching the bus. All failures are logged and dropped inside
``EventPublisher._deliver``. Guaranteed delivery would need an outbox in
front of this class; there is none.
"""

from __future__ import annotations

import json
from typing import Any

from loguru import logger

from src.user_service.core.events.event_bus import EventBus
from src.user_service.core.events.models import (
    EVENT_DETAIL_TYPES,
    EventDetail,
    EventEntry,
    EventMetadata,
    EventType,
    UserCreatedDetail,
    UserDeletedDetail,
    UserUpdatedDetail,
)
from src.user_service.entities.core._base import utc_now_iso

SOURCE = "user-service"
EVENT_VERSION = "1.0"


class EventPublisher:
    """Publishes domain events to an ``EventBus``. ``publish`` never raises."""

    def __init__(
        self,
        bus: EventBus,
        *,
        bus_name: str,
        environment: str = "unknown",
        source: str = SOURCE,
        schema_version: str = EVENT_VERSION,
    ):
        self._bus = bus
        self._bus_name = bus_name
        self._environment = environment
        self._source = source
        self._schema_version = schema_version

    def build_entry(
        self,
        event_type: EventType,
        detail: EventDetail | dict[str, Any],
        correlation_id: str,
    ) -> EventEntry:
        """Wrap ``detail`` with the version tag and metadata block."""
        if isinstance(detail, dict):
            detail = EVENT_DETAIL_TYPES[event_type].model_validate(detail)

        metadata = EventMetadata(
            correlation_id=correlation_id,
            environment=self._environment,
            timestamp=utc_now_iso(),
        )
        payload = {
            "version": self._schema_version,
            **detail.model_dump(mode="json", by_alias=True, exclude_none=True),
            "metadata": metadata.model_dump(by_alias=True),
        }
        return EventEntry(
            source=self._source,
            detail_type=event_type.value,
            detail=json.dumps(payload),
            event_bus_name=self._bus_name,
        )

    async def publish(
        self,
        event_type: EventType,
        detail: EventDetail | dict[str, Any],
        correlation_id: str,
    ) -> None:
        await self._deliver(event_type, detail, correlation_id)

    async def _deliver(
        self,
        event_type: EventType,
        detail: EventDetail | dict[str, Any],
        correlation_id: str,
    ) -> None:
        log = logger.bind(detail_type=str(event_type), correlation_id=correlation_id)
        try:
            entry = self.build_entry(event_type, detail, correlation_id)
            result = await self._bus.put_events([entry])
        except Exception:
            # Best-effort boundary: nothing escapes to the caller.
            log.opt(exception=True).error("Error publishing event")
            return

        if result.failed_entry_count > 0:
            failed = next((e for e in result.entries if e.error_code), None)
            log.bind(
                error_code=failed.error_code if failed else None,
                error_message=failed.error_message if failed else None,
            ).error("Failed to publish event")
            return

        event_id = result.entries[0].event_id if result.entries else None
        log.bind(event_id=event_id).info("Event published")

    async def publish_user_created(
        self, user_id: str, email: str, correlation_id: str
    ) -> None:
        await self.publish(
            EventType.USER_CREATED,
            UserCreatedDetail(user_id=user_id, email=email),
            correlation_id,
        )

    async def publish_user_updated(
        self, user_id: str, changed_fields: list[str], correlation_id: str
    ) -> None:
        await self.publish(
            EventType.USER_UPDATED,
            UserUpdatedDetail(user_id=user_id, changed_fields=changed_fields),
            correlation_id,
        )

    async def publish_user_deleted(self, user_id: str, correlation_id: str) -> None:
        await self.publish(
            EventType.USER_DELETED, UserDeletedDetail(user_id=user_id), correlation_id
        )


def create_event_publisher(bus: EventBus) -> EventPublisher:
    """Build a publisher from the current configuration."""
    from src.user_service.runtime.context import get_config

    config = get_config()
    return EventPublisher(
        bus,
        bus_name=config.events.bus_name,
        environment=config.app.stage,
        source=config.events.source,
        schema_version=config.events.schema_version,
    )
