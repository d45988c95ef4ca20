"""User domain entity."""

import unicodedata
from enum import StrEnum
from typing import Annotated

from pydantic import AfterValidator, ConfigDict, Field, StringConstraints

from src.user_service.entities.core._base import Entity

PHONE_PATTERN = r"^\+[1-9]\d{1,14}$"


class UserStatus(StrEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


def _validate_name(value: str) -> str:
    for char in value:
        if char.isspace() or char in "'-":
            continue
        category = unicodedata.category(char)
        if not (category.startswith("L") or category.startswith("M")):
            raise ValueError("Invalid characters in name")
    return value


PersonName = Annotated[
    str,
    StringConstraints(min_length=1, max_length=100),
    AfterValidator(_validate_name),
]
PhoneNumber = Annotated[str, StringConstraints(pattern=PHONE_PATTERN)]


class User(Entity):
    """User entity representing an account in the system.

    ``version`` starts at 1 and grows by exactly one per successful mutation;
    writers must present the version they last read.
    """

    user_id: str = Field(description="Stable identifier from the identity provider")
    email: str = Field(description="Normalized primary email address")
    first_name: str | None = Field(default=None, description="User's first name")
    last_name: str | None = Field(default=None, description="User's last name")
    phone: str | None = Field(default=None, description="Phone number in E.164 format")
    status: UserStatus = Field(default=UserStatus.ACTIVE)
    version: int = Field(default=1, ge=1)
    created_at: str
    updated_at: str

    @property
    def is_deleted(self) -> bool:
        return self.status is UserStatus.DELETED


class UserPatch(Entity):
    """Partial profile update.

    Each field is in one of three states: omitted (left untouched), explicitly
    ``None`` (removed from the record) or set to a value. ``model_fields_set``
    tells omitted and ``None`` apart. Names cannot be nulled; the phone can.
    """

    model_config = ConfigDict(extra="forbid")

    first_name: PersonName = None  # type: ignore[assignment]
    last_name: PersonName = None  # type: ignore[assignment]
    phone: PhoneNumber | None = None

    @property
    def is_empty(self) -> bool:
        return not self.model_fields_set

    def changed_fields(self) -> list[str]:
        """Stored attribute names touched by this patch, in declaration order."""
        return [
            info.alias or name
            for name, info in type(self).model_fields.items()
            if name in self.model_fields_set
        ]
