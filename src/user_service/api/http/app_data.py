from dataclasses import dataclass

from src.user_service.core.events.event_bus import EventBus
from src.user_service.core.events.publisher import EventPublisher
from src.user_service.core.services.redis_service import RedisService
from src.user_service.core.storage.table_storage import TableStorage
from src.user_service.entities.core.user.repository import UserRepository


@dataclass
class ApplicationDependencies:
    redis_service: RedisService
    table_storage: TableStorage
    event_bus: EventBus
    user_repository: UserRepository
    event_publisher: EventPublisher
