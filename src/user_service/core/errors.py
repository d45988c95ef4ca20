"""Service error taxonomy.

Every failure the service reports is a ``ServiceError`` tagged with an
``ErrorKind``. The kind carries the HTTP status and the machine-readable code,
so turning an error into a response is a table lookup rather than dispatch
over a class hierarchy.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Error variants; each maps to an HTTP status and a response code."""

    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    EMAIL_ALREADY_EXISTS = "email_already_exists"
    VERSION_CONFLICT = "version_conflict"
    INTERNAL = "internal"

    @property
    def status_code(self) -> int:
        return _HTTP_MAPPING[self][0]

    @property
    def code(self) -> str:
        return _HTTP_MAPPING[self][1]


_HTTP_MAPPING: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.BAD_REQUEST: (400, "Bad Request"),
    ErrorKind.UNAUTHORIZED: (401, "Unauthorized"),
    ErrorKind.FORBIDDEN: (403, "Forbidden"),
    ErrorKind.NOT_FOUND: (404, "Not Found"),
    ErrorKind.EMAIL_ALREADY_EXISTS: (409, "Conflict"),
    ErrorKind.VERSION_CONFLICT: (409, "Conflict"),
    ErrorKind.INTERNAL: (500, "Internal Server Error"),
}


class ServiceError(Exception):
    """A classified service failure."""

    def __init__(
        self, kind: ErrorKind, message: str, details: Any | None = None
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    @property
    def code(self) -> str:
        return self.kind.code

    def __repr__(self) -> str:
        return f"ServiceError({self.kind.name}, {self.message!r})"

    @classmethod
    def bad_request(cls, message: str, details: Any | None = None) -> ServiceError:
        return cls(ErrorKind.BAD_REQUEST, message, details)

    @classmethod
    def unauthorized(cls, message: str = "Unauthorized") -> ServiceError:
        return cls(ErrorKind.UNAUTHORIZED, message)

    @classmethod
    def not_found(cls, user_id: str) -> ServiceError:
        return cls(ErrorKind.NOT_FOUND, f"User not found: {user_id}")

    @classmethod
    def email_already_exists(cls) -> ServiceError:
        return cls(ErrorKind.EMAIL_ALREADY_EXISTS, "Email address is not available")

    @classmethod
    def version_conflict(cls) -> ServiceError:
        return cls(
            ErrorKind.VERSION_CONFLICT,
            "Resource was modified. Please refresh and try again.",
        )

    @classmethod
    def internal(cls, message: str = "Internal server error") -> ServiceError:
        return cls(ErrorKind.INTERNAL, message)


def is_kind(error: BaseException, kind: ErrorKind) -> bool:
    """Return True if ``error`` is a ServiceError of the given kind."""
    return isinstance(error, ServiceError) and error.kind is kind


def error_response(error: BaseException) -> tuple[int, dict[str, Any]]:
    """Map any exception to ``(status_code, body)``.

    Unclassified exceptions are reported as ``INTERNAL`` without leaking
    their message.
    """
    if not isinstance(error, ServiceError):
        error = ServiceError.internal()

    body: dict[str, Any] = {
        "statusCode": error.status_code,
        "error": error.code,
        "message": error.message,
    }
    if error.details:
        body["details"] = error.details

    return error.status_code, body
