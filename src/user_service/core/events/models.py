"""Domain event types and payloads."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventType(StrEnum):
    USER_CREATED = "user.created"
    USER_UPDATED = "user.updated"
    USER_DELETED = "user.deleted"
    USER_SUSPENDED = "user.suspended"
    USER_REACTIVATED = "user.reactivated"
    EMAIL_ADDED = "email.added"
    EMAIL_VERIFIED = "email.verified"
    EMAIL_REMOVED = "email.removed"
    EMAIL_PRIMARY_CHANGED = "email.primary.changed"


class EventDetail(BaseModel):
    """Flat event-specific fields, serialized in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventMetadata(EventDetail):
    correlation_id: str
    environment: str
    timestamp: str


class UserCreatedDetail(EventDetail):
    user_id: str
    email: str


class UserUpdatedDetail(EventDetail):
    user_id: str
    changed_fields: list[str] = Field(default_factory=list)


class UserDeletedDetail(EventDetail):
    user_id: str


class UserSuspendedDetail(EventDetail):
    user_id: str
    reason: str | None = None


class UserReactivatedDetail(EventDetail):
    user_id: str


class EmailAddedDetail(EventDetail):
    user_id: str
    email_id: str
    email: str


class EmailVerifiedDetail(EventDetail):
    user_id: str
    email_id: str
    email: str


class EmailRemovedDetail(EventDetail):
    user_id: str
    email_id: str
    email: str


class EmailPrimaryChangedDetail(EventDetail):
    user_id: str
    old_email: str
    new_email: str


EVENT_DETAIL_TYPES: dict[EventType, type[EventDetail]] = {
    EventType.USER_CREATED: UserCreatedDetail,
    EventType.USER_UPDATED: UserUpdatedDetail,
    EventType.USER_DELETED: UserDeletedDetail,
    EventType.USER_SUSPENDED: UserSuspendedDetail,
    EventType.USER_REACTIVATED: UserReactivatedDetail,
    EventType.EMAIL_ADDED: EmailAddedDetail,
    EventType.EMAIL_VERIFIED: EmailVerifiedDetail,
    EventType.EMAIL_REMOVED: EmailRemovedDetail,
    EventType.EMAIL_PRIMARY_CHANGED: EmailPrimaryChangedDetail,
}


class EventEntry(BaseModel):
    """One event as handed to the bus."""

    source: str
    detail_type: str
    detail: str
    event_bus_name: str


class EntryResult(BaseModel):
    event_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None


class PutEventsResult(BaseModel):
    failed_entry_count: int = 0
    entries: list[EntryResult] = Field(default_factory=list)
