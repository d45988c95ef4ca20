"""Tests for the user repository against the in-memory table."""

import asyncio

import pytest

from src.user_service.core.errors import ErrorKind, ServiceError
from src.user_service.core.storage.table_storage import InMemoryTableStorage
from src.user_service.entities.core.user import UserPatch, UserRepository, UserStatus


class TestCreateUser:
    def setup_method(self):
        self.storage = InMemoryTableStorage()
        self.repository = UserRepository(self.storage)

    @pytest.mark.asyncio
    async def test_creates_user_with_verified_primary_email(self):
        user = await self.repository.create_user("u1", "Jane@Example.com", "e1")

        assert user.user_id == "u1"
        assert user.email == "jane@example.com"
        assert user.status is UserStatus.ACTIVE
        assert user.version == 1
        assert user.created_at == user.updated_at

        [email] = await self.repository.get_user_emails("u1")
        assert email.email_id == "e1"
        assert email.email == "jane@example.com"
        assert email.is_primary
        assert email.is_verified
        assert email.verified_at == user.created_at

        guard = await self.storage.get({"PK": "EMAIL#jane@example.com", "SK": "UNIQUE"})
        assert guard["userId"] == "u1"

    @pytest.mark.asyncio
    async def test_email_lookup_is_normalized(self):
        await self.repository.create_user("u1", "  Jane@Example.COM ", "e1")

        assert await self.repository.email_exists("JANE@example.com")
        found = await self.repository.get_user_by_email("jane@EXAMPLE.com ")
        assert found is not None and found.user_id == "u1"
        assert await self.repository.get_user_by_email("other@example.com") is None

    @pytest.mark.parametrize(
        ("user_id", "email"), [("", "jane@example.com"), ("u1", ""), ("u1", "   ")]
    )
    @pytest.mark.asyncio
    async def test_requires_inputs(self, user_id, email):
        with pytest.raises(ServiceError) as exc_info:
            await self.repository.create_user(user_id, email, "e1")
        assert exc_info.value.kind is ErrorKind.BAD_REQUEST

    @pytest.mark.asyncio
    async def test_duplicate_email_differing_in_case(self):
        await self.repository.create_user("u1", "jane@example.com", "e1")

        with pytest.raises(ServiceError) as exc_info:
            await self.repository.create_user("u2", "JANE@example.com", "e2")

        assert exc_info.value.kind is ErrorKind.EMAIL_ALREADY_EXISTS
        assert await self.repository.get_user("u2") is None

    @pytest.mark.asyncio
    async def test_concurrent_creation_with_same_email(self):
        results = await asyncio.gather(
            *(
                self.repository.create_user(f"u{i}", "race@example.com", f"e{i}")
                for i in range(5)
            ),
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, BaseException)]
        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(created) == 1
        assert len(failures) == 4
        assert all(
            isinstance(f, ServiceError) and f.kind is ErrorKind.EMAIL_ALREADY_EXISTS
            for f in failures
        )
        assert len(await self.storage.query_index("EMAIL#race@example.com")) == 1

    @pytest.mark.asyncio
    async def test_store_rejects_duplicate_when_precheck_is_stale(self, monkeypatch):
        await self.repository.create_user("u1", "jane@example.com", "e1")

        async def _stale_precheck(email: str) -> bool:
            return False

        monkeypatch.setattr(self.repository, "email_exists", _stale_precheck)

        with pytest.raises(ServiceError) as exc_info:
            await self.repository.create_user("u2", "jane@example.com", "e2")

        assert exc_info.value.kind is ErrorKind.EMAIL_ALREADY_EXISTS
        assert await self.repository.get_user("u2") is None
        assert await self.repository.get_user_emails("u2") == []


class TestUpdateUser:
    def setup_method(self):
        self.storage = InMemoryTableStorage()
        self.repository = UserRepository(self.storage)

    @pytest.mark.asyncio
    async def test_partial_update_leaves_other_fields(self):
        await self.repository.create_user("u1", "jane@example.com", "e1")
        await self.repository.update_user(
            "u1", UserPatch.model_validate({"firstName": "Jane", "lastName": "Doe"}), 1
        )

        updated = await self.repository.update_user(
            "u1", UserPatch.model_validate({"firstName": "Ana"}), 2
        )

        assert updated.first_name == "Ana"
        assert updated.last_name == "Doe"
        assert updated.version == 3

    @pytest.mark.asyncio
    async def test_null_phone_removes_it(self):
        await self.repository.create_user("u1", "jane@example.com", "e1")
        await self.repository.update_user(
            "u1", UserPatch.model_validate({"phone": "+15551234567"}), 1
        )

        updated = await self.repository.update_user(
            "u1", UserPatch.model_validate({"phone": None}), 2
        )

        assert updated.phone is None
        stored = await self.storage.get({"PK": "USER#u1", "SK": "PROFILE"})
        assert "phone" not in stored

    @pytest.mark.asyncio
    async def test_refreshes_updated_at(self):
        user = await self.repository.create_user("u1", "jane@example.com", "e1")
        await asyncio.sleep(0.002)

        updated = await self.repository.update_user(
            "u1", UserPatch.model_validate({"firstName": "Ana"}), 1
        )

        assert updated.updated_at > user.updated_at
        assert updated.created_at == user.created_at

    @pytest.mark.asyncio
    async def test_stale_version_conflicts(self):
        await self.repository.create_user("u1", "jane@example.com", "e1")
        patch = UserPatch.model_validate({"firstName": "Ana"})
        await self.repository.update_user("u1", patch, 1)

        with pytest.raises(ServiceError) as exc_info:
            await self.repository.update_user("u1", patch, 1)

        assert exc_info.value.kind is ErrorKind.VERSION_CONFLICT
        assert (await self.repository.get_user("u1")).version == 2

    @pytest.mark.asyncio
    async def test_second_delete_with_stale_version_conflicts(self):
        await self.repository.create_user("u1", "jane@example.com", "e1")
        await self.repository.soft_delete_user("u1", 1)

        with pytest.raises(ServiceError) as exc_info:
            await self.repository.soft_delete_user("u1", 1)

        assert exc_info.value.kind is ErrorKind.VERSION_CONFLICT
        assert (await self.repository.get_user("u1")).version == 2

    @pytest.mark.asyncio
    async def test_concurrent_updates_with_same_version(self):
        await self.repository.create_user("u1", "jane@example.com", "e1")

        results = await asyncio.gather(
            self.repository.update_user("u1", UserPatch.model_validate({"firstName": "A"}), 1),
            self.repository.update_user("u1", UserPatch.model_validate({"firstName": "B"}), 1),
            return_exceptions=True,
        )

        conflicts = [r for r in results if isinstance(r, ServiceError)]
        assert len(conflicts) == 1
        assert conflicts[0].kind is ErrorKind.VERSION_CONFLICT
        assert (await self.repository.get_user("u1")).version == 2

    @pytest.mark.asyncio
    async def test_missing_user_conflicts(self):
        with pytest.raises(ServiceError) as exc_info:
            await self.repository.update_user(
                "ghost", UserPatch.model_validate({"firstName": "Ana"}), 1
            )
        assert exc_info.value.kind is ErrorKind.VERSION_CONFLICT

    @pytest.mark.asyncio
    async def test_empty_patch_rejected(self):
        await self.repository.create_user("u1", "jane@example.com", "e1")

        with pytest.raises(ServiceError) as exc_info:
            await self.repository.update_user("u1", UserPatch(), 1)
        assert exc_info.value.kind is ErrorKind.BAD_REQUEST


class TestSoftDelete:
    def setup_method(self):
        self.storage = InMemoryTableStorage()
        self.repository = UserRepository(self.storage)

    @pytest.mark.asyncio
    async def test_marks_deleted_and_keeps_record(self):
        await self.repository.create_user("u1", "jane@example.com", "e1")

        deleted = await self.repository.soft_delete_user("u1", 1)

        assert deleted.is_deleted
        assert deleted.version == 2
        stored = await self.repository.get_user("u1")
        assert stored is not None and stored.status is UserStatus.DELETED

    @pytest.mark.asyncio
    async def test_second_delete_conflicts_even_with_current_version(self):
        await self.repository.create_user("u1", "jane@example.com", "e1")
        await self.repository.soft_delete_user("u1", 1)

        with pytest.raises(ServiceError) as exc_info:
            await self.repository.soft_delete_user("u1", 2)

        assert exc_info.value.kind is ErrorKind.VERSION_CONFLICT
        assert (await self.repository.get_user("u1")).version == 2


class TestReads:
    def setup_method(self):
        self.repository = UserRepository(InMemoryTableStorage())

    @pytest.mark.asyncio
    async def test_get_user_or_fail(self):
        with pytest.raises(ServiceError) as exc_info:
            await self.repository.get_user_or_fail("ghost")

        assert exc_info.value.kind is ErrorKind.NOT_FOUND
        assert exc_info.value.message == "User not found: ghost"

    @pytest.mark.parametrize("user_id", ["bad#id", ""])
    @pytest.mark.asyncio
    async def test_malformed_user_id_is_bad_request(self, user_id):
        for call in (
            lambda: self.repository.get_user(user_id),
            lambda: self.repository.soft_delete_user(user_id, 1),
            lambda: self.repository.get_user_emails(user_id),
        ):
            with pytest.raises(ServiceError) as exc_info:
                await call()

            assert exc_info.value.kind is ErrorKind.BAD_REQUEST
