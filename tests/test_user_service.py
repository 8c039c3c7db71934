"""
Digital Ledger Backend: User Store Tests
=========================================

What we test:
    ✅ Create and look up by id, email (case-insensitive) and external id
    ✅ Duplicate email raises ConflictError
    ✅ Partial updates; unknown user raises NotFoundError
    ✅ Driver errors surface as DatabaseError
"""

import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from ledger.exceptions import ConflictError, DatabaseError, NotFoundError
from ledger.services.user_service import UserService


class TestUserService:
    def setup_method(self):
        self.service = UserService()

    @pytest.mark.asyncio
    async def test_create_applies_defaults(self, db_session):
        user = await self.service.create_user(db_session, email="  Ada@Example.COM ")
        assert user.id is not None
        assert user.email == "ada@example.com"
        assert user.role == "subscriber"
        assert user.auth_provider == "local"
        assert user.is_active is True

    @pytest.mark.asyncio
    async def test_lookups(self, db_session):
        created = await self.service.create_user(
            db_session, email="grace@example.com", external_id="g-123", auth_provider="google"
        )
        assert await self.service.get_user_by_id(db_session, created.id) is created
        assert (await self.service.get_user_by_email(db_session, "GRACE@example.com")).id == created.id
        assert (await self.service.get_user_by_external_id(db_session, "g-123")).id == created.id

    @pytest.mark.asyncio
    async def test_missing_lookups_return_none(self, db_session):
        assert await self.service.get_user_by_id(db_session, uuid.uuid4()) is None
        assert await self.service.get_user_by_email(db_session, "nobody@example.com") is None
        assert await self.service.get_user_by_external_id(db_session, "nope") is None

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, db_session):
        await self.service.create_user(db_session, email="dup@example.com")
        with pytest.raises(ConflictError):
            await self.service.create_user(db_session, email="DUP@example.com")

    @pytest.mark.asyncio
    async def test_update_changes_only_given_fields(self, db_session):
        user = await self.service.create_user(db_session, email="lin@example.com", first_name="Lin")
        updated = await self.service.update_user(db_session, user.id, role="admin")
        assert updated.role == "admin"
        assert updated.first_name == "Lin"

    @pytest.mark.asyncio
    async def test_update_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            await self.service.update_user(db_session, uuid.uuid4(), role="admin")

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, db_session):
        with pytest.raises(ValueError):
            await self.service.create_user(db_session, email="x@example.com", nickname="x")

    @pytest.mark.asyncio
    async def test_driver_error_becomes_database_error(self):
        session = AsyncMock()
        session.execute = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("gone")))
        with pytest.raises(DatabaseError):
            await self.service.get_user_by_email(session, "x@example.com")
