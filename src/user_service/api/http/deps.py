"""FastAPI dependency implementations."""

from __future__ import annotations

import uuid

from fastapi import Request

from src.user_service.api.http.app_data import ApplicationDependencies
from src.user_service.core.errors import ServiceError
from src.user_service.core.events.publisher import EventPublisher
from src.user_service.entities.core.user.repository import UserRepository
from src.user_service.runtime.context import get_config


def get_user_repository(request: Request) -> UserRepository:
    """Get the user repository instance."""
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    return app_deps.user_repository


def get_event_publisher(request: Request) -> EventPublisher:
    """Get the event publisher instance."""
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    return app_deps.event_publisher


def get_request_id(request: Request) -> str:
    """Request id assigned by the logging middleware."""
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def get_current_user_id(request: Request) -> str:
    """Caller identity, as asserted by the upstream authorizer.

    Tokens are verified before the request reaches this service; only the
    resulting subject is forwarded in a header.
    """
    header = get_config().app.user_id_header
    user_id = (request.headers.get(header) or "").strip()
    if not user_id:
        raise ServiceError.unauthorized("User ID not found in request context")
    return user_id
