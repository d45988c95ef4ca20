"""Stored representation of emails and their uniqueness guard."""

from src.user_service.core.storage.expressions import Item
from src.user_service.entities.core.email.entity import Email
from src.user_service.entities.core.keys import (
    email_guard_key,
    email_index_key,
    email_key,
)


def to_email_item(email: Email) -> Item:
    """Email item in the owner's partition, indexed by address."""
    return {
        **email_key(email.user_id, email.email_id),
        **email_index_key(email.email, email.user_id),
        **email.to_attributes(),
    }


def email_from_item(item: Item) -> Email:
    return Email.model_validate(item)


def to_email_guard_item(email: Email) -> Item:
    """Item that exists once per normalized address, naming its owner."""
    return {
        **email_guard_key(email.email),
        "userId": email.user_id,
        "emailId": email.email_id,
        "createdAt": email.created_at,
    }
