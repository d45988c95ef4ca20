"""Email domain entity."""

from pydantic import Field

from src.user_service.entities.core._base import Entity


class Email(Entity):
    """An email address owned by a user.

    Normalized addresses are unique across the whole system; exactly one
    email per user is primary.
    """

    email_id: str = Field(description="Identifier generated at creation")
    user_id: str = Field(description="Owning user")
    email: str = Field(description="Normalized address")
    is_primary: bool = False
    is_verified: bool = False
    verified_at: str | None = None
    created_at: str
