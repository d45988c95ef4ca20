"""Data-access layer for users and their emails."""

from loguru import logger

from src.user_service.core.errors import ServiceError
from src.user_service.core.storage.expressions import Condition, ItemUpdate, Put
from src.user_service.core.storage.table_storage import (
    ConditionalCheckFailedError,
    TableStorage,
    TransactionCanceledError,
)
from src.user_service.entities.core._base import utc_now_iso
from src.user_service.entities.core.email.entity import Email
from src.user_service.entities.core.email.table import (
    email_from_item,
    to_email_guard_item,
    to_email_item,
)
from src.user_service.entities.core.keys import (
    EMAIL_PREFIX,
    email_lookup_key,
    normalize_email,
    user_key,
    user_partition,
)
from src.user_service.entities.core.user.entity import User, UserPatch, UserStatus
from src.user_service.entities.core.user.table import (
    build_user_update,
    to_user_item,
    user_from_item,
)


class UserRepository:
    """Domain operations over the single table.

    Owns the optimistic-locking and email-uniqueness protocols. Emails are
    normalized here, once, before any key is built or compared. Storage
    conditional failures are translated to ``ServiceError``; nothing is retried.
    """

    def __init__(self, storage: TableStorage) -> None:
        self._storage = storage

    @staticmethod
    def _user_key(user_id: str) -> dict[str, str]:
        try:
            return user_key(user_id)
        except ValueError as e:
            raise ServiceError.bad_request(str(e)) from e

    async def get_user(self, user_id: str) -> User | None:
        item = await self._storage.get(self._user_key(user_id))
        if item is None:
            return None
        return user_from_item(item)

    async def get_user_or_fail(self, user_id: str) -> User:
        user = await self.get_user(user_id)
        if user is None:
            raise ServiceError.not_found(user_id)
        return user

    async def create_user(self, user_id: str, email: str, email_id: str) -> User:
        """Create a user with its verified primary email.

        The index pre-check rejects known duplicates without writing. The
        transactional write then re-checks at the store: user, email and the
        email guard must all be absent, so a concurrent creation with the same
        address loses here and is reported as ``EmailAlreadyExists`` too.
        """
        if not user_id or not email or not email.strip():
            raise ServiceError.bad_request("user_id and email are required")

        normalized_email = normalize_email(email)

        if await self.email_exists(normalized_email):
            raise ServiceError.email_already_exists()

        now = utc_now_iso()
        user = User(
            user_id=user_id,
            email=normalized_email,
            status=UserStatus.ACTIVE,
            version=1,
            created_at=now,
            updated_at=now,
        )
        primary_email = Email(
            email_id=email_id,
            user_id=user_id,
            email=normalized_email,
            is_primary=True,
            is_verified=True,
            verified_at=now,
            created_at=now,
        )

        try:
            puts = [
                Put(to_user_item(user), Condition.absent()),
                Put(to_email_item(primary_email), Condition.absent()),
                Put(to_email_guard_item(primary_email), Condition.absent()),
            ]
        except ValueError as e:
            raise ServiceError.bad_request(str(e)) from e

        try:
            await self._storage.transact_write(puts)
        except TransactionCanceledError as e:
            logger.bind(user_id=user_id, reasons=e.reasons).warning(
                "User creation lost a uniqueness race"
            )
            raise ServiceError.email_already_exists() from e

        logger.bind(user_id=user_id, email=normalized_email).info("User created")
        return user

    async def update_user(
        self, user_id: str, patch: UserPatch, expected_version: int
    ) -> User:
        """Apply ``patch`` if the stored version is still ``expected_version``."""
        if patch.is_empty:
            raise ServiceError.bad_request("No fields to update")

        update = build_user_update(patch, utc_now_iso())
        item = await self._conditional_update(
            user_id, update, Condition.version(expected_version)
        )

        logger.bind(user_id=user_id, changed_fields=patch.changed_fields()).info(
            "User updated"
        )
        return user_from_item(item)

    async def soft_delete_user(self, user_id: str, expected_version: int) -> User:
        """Flip status to ``deleted``.

        Requires the expected version and a status other than ``deleted``, so
        neither a stale version nor a repeated delete can succeed.
        """
        update = ItemUpdate(
            set={"status": UserStatus.DELETED.value, "updatedAt": utc_now_iso()},
            add={"version": 1},
        )
        condition = Condition.version(expected_version).and_not_equal(
            "status", UserStatus.DELETED.value
        )
        item = await self._conditional_update(user_id, update, condition)

        logger.bind(user_id=user_id).info("User soft deleted")
        return user_from_item(item)

    async def _conditional_update(
        self, user_id: str, update: ItemUpdate, condition: Condition
    ):
        try:
            return await self._storage.update(self._user_key(user_id), update, condition)
        except ConditionalCheckFailedError as e:
            raise ServiceError.version_conflict() from e

    async def email_exists(self, email: str) -> bool:
        lookup = email_lookup_key(normalize_email(email))
        items = await self._storage.query_index(lookup["GSI1PK"], limit=1)
        return len(items) > 0

    async def get_user_by_email(self, email: str) -> User | None:
        lookup = email_lookup_key(normalize_email(email))
        items = await self._storage.query_index(lookup["GSI1PK"], limit=1)
        if not items:
            return None
        return await self.get_user(items[0]["userId"])

    async def get_user_emails(self, user_id: str) -> list[Email]:
        try:
            partition = user_partition(user_id)
        except ValueError as e:
            raise ServiceError.bad_request(str(e)) from e
        items = await self._storage.query_partition(partition, sk_prefix=EMAIL_PREFIX)
        return [email_from_item(item) for item in items]
