"""Domain events and their delivery."""

from .event_bus import EventBus, InMemoryEventBus, RedisStreamEventBus, get_event_bus
from .models import EventEntry, EventType, PutEventsResult
from .publisher import EventPublisher, create_event_publisher

__all__ = [
    "EventBus",
    "InMemoryEventBus",
    "RedisStreamEventBus",
    "get_event_bus",
    "EventEntry",
    "EventType",
    "PutEventsResult",
    "EventPublisher",
    "create_event_publisher",
]
