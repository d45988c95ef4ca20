"""Current-user profile endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from src.user_service.api.http.deps import (
    get_current_user_id,
    get_event_publisher,
    get_request_id,
    get_user_repository,
)
from src.user_service.core.errors import ServiceError
from src.user_service.core.events.publisher import EventPublisher
from src.user_service.entities.core._base import utc_now_iso
from src.user_service.entities.core.user import User, UserPatch, UserRepository
from src.user_service.runtime.invocation import invocation_scope

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=User, response_model_exclude_none=True)
async def get_me(
    user_id: str = Depends(get_current_user_id),
    request_id: str = Depends(get_request_id),
    repository: UserRepository = Depends(get_user_repository),
) -> User:
    """Get the current user's profile."""
    with invocation_scope(request_id, user_id=user_id) as ctx:
        ctx.log.info("Getting user profile")
        return await repository.get_user_or_fail(user_id)


@router.put("/me", response_model=User, response_model_exclude_none=True)
async def update_me(
    patch: UserPatch | None = None,
    user_id: str = Depends(get_current_user_id),
    request_id: str = Depends(get_request_id),
    repository: UserRepository = Depends(get_user_repository),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> User:
    """Update the current user's profile.

    Fields left out of the body are untouched; ``"phone": null`` removes the
    phone number.
    """
    with invocation_scope(request_id, user_id=user_id) as ctx:
        if patch is None or patch.is_empty:
            raise ServiceError.bad_request("No fields to update")

        changed_fields = patch.changed_fields()
        ctx.log.bind(fields=changed_fields).info("Updating user profile")

        current = await repository.get_user_or_fail(user_id)
        updated = await repository.update_user(user_id, patch, current.version)

        await publisher.publish_user_updated(user_id, changed_fields, ctx.correlation_id)
        return updated


@router.delete("/me")
async def delete_me(
    user_id: str = Depends(get_current_user_id),
    request_id: str = Depends(get_request_id),
    repository: UserRepository = Depends(get_user_repository),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> dict[str, Any]:
    """Soft delete the current user's account."""
    with invocation_scope(request_id, user_id=user_id) as ctx:
        ctx.log.info("Soft deleting user")

        current = await repository.get_user_or_fail(user_id)
        await repository.soft_delete_user(user_id, current.version)

        await publisher.publish_user_deleted(user_id, ctx.correlation_id)
        return {"message": "Account scheduled for deletion", "deletedAt": utc_now_iso()}
