"""Single-table key schema.

All entity kinds share one table. Users and their emails live in the
``USER#<id>`` partition; the email secondary index (``GSI1``) is keyed by the
normalized address, and an email guard item keyed by the address alone makes
uniqueness enforceable inside a transaction.
"""

SEPARATOR = "#"

USER_PREFIX = "USER#"
EMAIL_PREFIX = "EMAIL#"
PROFILE_SK = "PROFILE"
GUARD_SK = "UNIQUE"


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address."""
    return email.strip().lower()


def _component(value: str, name: str) -> str:
    if not value:
        raise ValueError(f"{name} must not be empty")
    if SEPARATOR in value:
        raise ValueError(f"{name} must not contain '{SEPARATOR}'")
    return value


def _email_component(email: str) -> str:
    normalized = normalize_email(email)
    if not normalized:
        raise ValueError("email must not be empty")
    return normalized


def user_key(user_id: str) -> dict[str, str]:
    return {"PK": USER_PREFIX + _component(user_id, "user_id"), "SK": PROFILE_SK}


def email_key(user_id: str, email_id: str) -> dict[str, str]:
    return {
        "PK": USER_PREFIX + _component(user_id, "user_id"),
        "SK": EMAIL_PREFIX + _component(email_id, "email_id"),
    }


def email_index_key(email: str, user_id: str) -> dict[str, str]:
    """Index attributes written on an email item for the reverse lookup."""
    return {
        "GSI1PK": EMAIL_PREFIX + _email_component(email),
        "GSI1SK": USER_PREFIX + _component(user_id, "user_id"),
    }


def email_lookup_key(email: str) -> dict[str, str]:
    return {"GSI1PK": EMAIL_PREFIX + _email_component(email)}


def email_guard_key(email: str) -> dict[str, str]:
    return {"PK": EMAIL_PREFIX + _email_component(email), "SK": GUARD_SK}


def user_partition(user_id: str) -> str:
    return USER_PREFIX + _component(user_id, "user_id")
