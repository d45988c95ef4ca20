from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Entity(BaseModel):
    """Base entity class.

    Fields are snake_case in Python and camelCase in storage and on the wire.
    Storage-only attributes such as ``PK``/``SK`` are ignored on validation.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_attributes(self) -> dict:
        """Dump to stored attribute names, dropping unset optional values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
