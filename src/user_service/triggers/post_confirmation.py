"""Post-confirmation signup trigger.

The identity provider calls this once a user confirms their signup. The user
is already confirmed upstream at that point, so the trigger must hand the
event back whatever happens here; a failed provisioning is logged for manual
follow-up instead of being raised.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from loguru import logger

from src.user_service.core.errors import ErrorKind, ServiceError
from src.user_service.core.events.event_bus import get_event_bus
from src.user_service.core.events.publisher import EventPublisher, create_event_publisher
from src.user_service.core.services.redis_service import RedisService
from src.user_service.core.storage.table_storage import get_table_storage
from src.user_service.entities.core.user.repository import UserRepository
from src.user_service.runtime.context import get_config
from src.user_service.runtime.invocation import invocation_scope

CONFIRM_SIGNUP = "PostConfirmation_ConfirmSignUp"


class SignupState(StrEnum):
    RECEIVED = "received"
    VALIDATING = "validating"
    PERSISTING = "persisting"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED_EXHAUSTED = "failed_exhausted"


@dataclass
class SignupOutcome:
    """How a single trigger invocation ended."""

    state: SignupState = SignupState.RECEIVED
    attempts: int = 0
    correlation_id: str | None = None
    created: bool = False
    last_error: str | None = None
    history: list[SignupState] = field(default_factory=lambda: [SignupState.RECEIVED])

    def advance(self, state: SignupState) -> None:
        self.state = state
        self.history.append(state)


def build_correlation_id(trigger_source: str, user_id: str) -> str:
    return f"cognito-{trigger_source}-{user_id}-{int(time.time() * 1000)}"


class SignupReconciler:
    """Provisions the user record for a confirmed signup.

    Creation is retried up to ``max_attempts`` times with exponential backoff
    (``base_backoff * 2 ** (attempt - 1)`` seconds between attempts). An
    existing email ends the run immediately and is not an error. A
    ``user.created`` event is published only after a successful write.
    """

    def __init__(
        self,
        repository: UserRepository,
        publisher: EventPublisher,
        max_attempts: int = 3,
        base_backoff: float = 0.1,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        confirm_trigger_source: str = CONFIRM_SIGNUP,
    ):
        self._repository = repository
        self._publisher = publisher
        self._max_attempts = max_attempts
        self._base_backoff = base_backoff
        self._sleep = sleep
        self._confirm_trigger_source = confirm_trigger_source
        self.last_outcome: SignupOutcome | None = None

    def backoff_for(self, attempt: int) -> float:
        return self._base_backoff * 2 ** (attempt - 1)

    async def handle(self, event: dict[str, Any]) -> dict[str, Any]:
        """Run the trigger. Always returns ``event`` unchanged."""
        outcome = SignupOutcome()
        self.last_outcome = outcome
        await self._run(event, outcome)
        return event

    async def _run(self, event: dict[str, Any], outcome: SignupOutcome) -> None:
        outcome.advance(SignupState.VALIDATING)

        request = event.get("request")
        attributes = request.get("userAttributes") if isinstance(request, dict) else None
        if not isinstance(attributes, dict):
            attributes = {}
        user_id = attributes.get("sub")
        email = attributes.get("email")
        trigger_source = event.get("triggerSource", "")

        if not user_id or not email:
            logger.bind(has_user_id=bool(user_id), has_email=bool(email)).error(
                "Missing required user attributes"
            )
            outcome.advance(SignupState.DONE)
            return

        outcome.correlation_id = build_correlation_id(trigger_source, user_id)

        with invocation_scope(outcome.correlation_id, user_id=user_id) as ctx:
            ctx.log.bind(
                trigger_source=trigger_source,
                user_pool_id=event.get("userPoolId"),
                email=email,
            ).info("Post-confirmation trigger invoked")

            if trigger_source != self._confirm_trigger_source:
                ctx.log.bind(trigger_source=trigger_source).info(
                    "Skipping non-signup confirmation"
                )
                outcome.advance(SignupState.DONE)
                return

            outcome.advance(SignupState.PERSISTING)
            user = None
            while outcome.attempts < self._max_attempts:
                outcome.attempts += 1
                attempt = outcome.attempts
                try:
                    user = await self._repository.create_user(
                        user_id, email, str(uuid.uuid4())
                    )
                    break
                except ServiceError as e:
                    if e.kind is ErrorKind.EMAIL_ALREADY_EXISTS:
                        ctx.log.bind(email=email).warning(
                            "Email already exists, user may already be created"
                        )
                        outcome.advance(SignupState.DONE)
                        return
                    outcome.last_error = str(e)
                except Exception as e:
                    outcome.last_error = str(e) or type(e).__name__

                ctx.log.bind(attempt=attempt, error=outcome.last_error).warning(
                    "User creation failed"
                )
                if attempt < self._max_attempts:
                    await self._sleep(self.backoff_for(attempt))

            if user is None:
                ctx.log.bind(
                    email=email,
                    max_attempts=self._max_attempts,
                    error=outcome.last_error,
                ).error("User creation failed after all retries")
                outcome.advance(SignupState.FAILED_EXHAUSTED)
                return

            outcome.created = True
            ctx.log.bind(attempt=outcome.attempts).info("User record created")

            outcome.advance(SignupState.PUBLISHING)
            await self._publisher.publish_user_created(
                user.user_id, user.email, outcome.correlation_id
            )

            ctx.log.info("User creation completed successfully")
            outcome.advance(SignupState.DONE)


# Shared across invocations of a warm process
_redis_service: RedisService | None = None


def get_redis_service() -> RedisService:
    global _redis_service

    if _redis_service is None:
        _redis_service = RedisService()

    return _redis_service


def _reset_redis_service() -> None:
    """Drop the shared Redis service (for testing)."""
    global _redis_service
    _redis_service = None


async def build_reconciler() -> SignupReconciler:
    """Assemble a reconciler from the process-wide configuration."""
    config = get_config()
    redis_client = get_redis_service().get_client()

    storage = await get_table_storage(redis_client)
    publisher = create_event_publisher(get_event_bus(redis_client))

    return SignupReconciler(
        UserRepository(storage),
        publisher,
        max_attempts=config.signup.max_attempts,
        base_backoff=config.signup.base_backoff_ms / 1000,
        confirm_trigger_source=config.signup.confirm_trigger_source,
    )


async def handler(event: dict[str, Any], context: Any = None) -> dict[str, Any]:
    """Trigger entry point. Hands ``event`` back even when setup fails."""
    try:
        reconciler = await build_reconciler()
    except Exception as e:
        logger.bind(error_type=type(e).__name__).exception(
            "Signup trigger setup failed, user record not provisioned"
        )
        return event
    return await reconciler.handle(event)
