"""
Digital Ledger Backend: User Store
===================================

What:  Persistence operations on users: lookups by id, external id and email,
       creation, and partial updates.
How:   Stateless service; every method receives the request's AsyncSession.
       Writes are flushed, not committed. get_db_session commits when the
       request succeeds.
Who:   The auth service, the OAuth account resolver and the tests.

Error translation:
    IntegrityError (duplicate email / external id) → ConflictError (409)
    Missing user on update                         → NotFoundError (404)
    Any other SQLAlchemyError                      → DatabaseError (500)
"""

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.exceptions import ConflictError, DatabaseError, NotFoundError
from ledger.models.user import User

logger = logging.getLogger(__name__)

# Columns callers may set through create_user / update_user.
WRITABLE_FIELDS = frozenset({
    "email",
    "external_id",
    "auth_provider",
    "password_hash",
    "first_name",
    "last_name",
    "profile_image_url",
    "role",
    "is_active",
})


def _check_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - WRITABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown user fields: {sorted(unknown)}")


class UserService:
    """
    CRUD for the users table.

    Emails are compared and stored lower-cased; callers may pass any case.
    """

    async def get_user_by_id(self, db: AsyncSession, user_id: uuid.UUID) -> Optional[User]:
        try:
            return await db.get(User, user_id)
        except SQLAlchemyError as e:
            logger.error("Failed to load user %s: %s", user_id, e)
            raise DatabaseError(context={"operation": "get_user_by_id"}) from e

    async def get_user_by_external_id(self, db: AsyncSession, external_id: str) -> Optional[User]:
        return await self._first(db, User.external_id == external_id, "get_user_by_external_id")

    async def get_user_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        return await self._first(db, User.email == email.strip().lower(), "get_user_by_email")

    async def create_user(self, db: AsyncSession, **fields: Any) -> User:
        """
        Insert a user and return it with its generated id.

        Raises:
            ConflictError: email or external id already taken
            DatabaseError: any other database failure
        """
        _check_fields(fields)
        if fields.get("email"):
            fields["email"] = fields["email"].strip().lower()

        user = User(**fields)
        db.add(user)
        try:
            await db.flush()
        except IntegrityError as e:
            logger.warning("User create rejected, duplicate identity: %s", fields.get("email"))
            raise ConflictError(
                "An account with this email already exists",
                context={"email": fields.get("email")},
            ) from e
        except SQLAlchemyError as e:
            logger.error("Failed to create user: %s", e)
            raise DatabaseError(context={"operation": "create_user"}) from e

        logger.info("User created: %s (provider=%s)", user.id, user.auth_provider)
        return user

    async def update_user(self, db: AsyncSession, user_id: uuid.UUID, **fields: Any) -> User:
        """Apply a partial update. Only the given fields change."""
        _check_fields(fields)
        user = await self.get_user_by_id(db, user_id)
        if user is None:
            raise NotFoundError("user", str(user_id))

        if fields.get("email"):
            fields["email"] = fields["email"].strip().lower()
        for name, value in fields.items():
            setattr(user, name, value)

        try:
            await db.flush()
        except IntegrityError as e:
            raise ConflictError(
                "An account with this email already exists",
                context={"user_id": str(user_id)},
            ) from e
        except SQLAlchemyError as e:
            logger.error("Failed to update user %s: %s", user_id, e)
            raise DatabaseError(context={"operation": "update_user"}) from e

        logger.info("User %s updated: %s", user_id, ", ".join(sorted(fields)))
        return user

    async def _first(self, db: AsyncSession, condition, operation: str) -> Optional[User]:
        try:
            result = await db.execute(select(User).where(condition).limit(1))
        except SQLAlchemyError as e:
            logger.error("User lookup failed (%s): %s", operation, e)
            raise DatabaseError(context={"operation": operation}) from e
        return result.scalar_one_or_none()


# Module-level singleton
user_service = UserService()
