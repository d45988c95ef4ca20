"""Tests for event buses and the best-effort publisher."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from src.user_service.core.events.event_bus import InMemoryEventBus, RedisStreamEventBus
from src.user_service.core.events.models import (
    EventEntry,
    EventType,
    UserUpdatedDetail,
)
from src.user_service.core.events.publisher import EventPublisher


def make_entry(detail_type: str = "user.created") -> EventEntry:
    return EventEntry(
        source="user-service",
        detail_type=detail_type,
        detail='{"userId": "u1"}',
        event_bus_name="bus",
    )


class TestRedisStreamEventBus:
    def setup_method(self):
        self.pipe = MagicMock()
        self.pipe.__aenter__ = AsyncMock(return_value=self.pipe)
        self.pipe.__aexit__ = AsyncMock(return_value=False)
        self.mock_redis = MagicMock()
        self.mock_redis.pipeline.return_value = self.pipe
        self.bus = RedisStreamEventBus(self.mock_redis, stream_prefix="events")

    @pytest.mark.asyncio
    async def test_appends_each_entry_to_bus_stream(self):
        self.pipe.execute = AsyncMock(return_value=["1-0", "1-1"])

        result = await self.bus.put_events([make_entry(), make_entry("user.deleted")])

        assert result.failed_entry_count == 0
        assert [entry.event_id for entry in result.entries] == ["1-0", "1-1"]
        assert self.pipe.xadd.call_count == 2
        stream, fields = self.pipe.xadd.call_args_list[1].args
        assert stream == "events:bus"
        assert fields["detail-type"] == "user.deleted"
        self.pipe.execute.assert_awaited_once_with(raise_on_error=False)

    @pytest.mark.asyncio
    async def test_reports_per_entry_failures(self):
        self.pipe.execute = AsyncMock(return_value=["1-0", ResponseError("OOM")])

        result = await self.bus.put_events([make_entry(), make_entry()])

        assert result.failed_entry_count == 1
        assert result.entries[1].error_code == "ResponseError"
        assert result.entries[1].error_message == "OOM"

    @pytest.mark.asyncio
    async def test_transport_failure_raises(self):
        self.pipe.execute = AsyncMock(side_effect=RedisConnectionError("down"))

        with pytest.raises(RedisConnectionError):
            await self.bus.put_events([make_entry()])
        assert not self.bus.is_available()


class TestEventPublisher:
    def setup_method(self):
        self.bus = InMemoryEventBus()
        self.publisher = EventPublisher(self.bus, bus_name="bus", environment="test")

    @pytest.mark.asyncio
    async def test_envelope(self):
        await self.publisher.publish_user_created("u1", "jane@example.com", "corr-1")

        [entry] = self.bus.entries
        assert entry.source == "user-service"
        assert entry.detail_type == "user.created"
        assert entry.event_bus_name == "bus"

        detail = json.loads(entry.detail)
        assert detail["version"] == "1.0"
        assert detail["userId"] == "u1"
        assert detail["email"] == "jane@example.com"
        assert detail["metadata"]["correlationId"] == "corr-1"
        assert detail["metadata"]["environment"] == "test"
        assert detail["metadata"]["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_accepts_plain_dict_detail(self):
        await self.publisher.publish(
            EventType.EMAIL_PRIMARY_CHANGED,
            {"userId": "u1", "oldEmail": "a@example.com", "newEmail": "b@example.com"},
            "corr-2",
        )

        detail = json.loads(self.bus.entries[0].detail)
        assert detail["oldEmail"] == "a@example.com"
        assert detail["newEmail"] == "b@example.com"

    @pytest.mark.asyncio
    async def test_updated_event_lists_changed_fields(self):
        await self.publisher.publish(
            EventType.USER_UPDATED,
            UserUpdatedDetail(user_id="u1", changed_fields=["firstName", "phone"]),
            "corr-3",
        )

        detail = json.loads(self.bus.of_type("user.updated")[0].detail)
        assert detail["changedFields"] == ["firstName", "phone"]

    @pytest.mark.asyncio
    async def test_transport_failure_is_swallowed(self):
        self.bus.fail_with = RuntimeError("bus unreachable")

        await self.publisher.publish_user_deleted("u1", "corr-4")

        assert self.bus.entries == []

    @pytest.mark.asyncio
    async def test_partial_failure_is_swallowed(self):
        self.bus.reject_with = ("ThrottlingException", "Rate exceeded")

        await self.publisher.publish_user_updated("u1", ["firstName"], "corr-5")

        assert self.bus.entries == []

    @pytest.mark.asyncio
    async def test_invalid_detail_is_swallowed(self):
        await self.publisher.publish(EventType.USER_CREATED, {"userId": "u1"}, "corr-6")

        assert self.bus.entries == []
