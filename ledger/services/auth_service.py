"""
Digital Ledger Backend: Local Authentication Service
=====================================================

What:  Registration, credential checks and password changes for local
       (email + password) accounts.
How:   bcrypt hashes with a configurable cost factor. Hashing is CPU-bound,
       so it runs in Starlette's threadpool to keep the event loop free.
Who:   The /api/auth routes.

Credential failures all raise the same AuthenticationError so callers
cannot tell an unknown email from a wrong password.
"""

import logging
from typing import Optional

import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from ledger.config import settings
from ledger.exceptions import AuthenticationError, ConflictError
from ledger.models.user import AUTH_PROVIDER_LOCAL, DEFAULT_ROLE, User
from ledger.schemas.auth import ChangePasswordRequest, LoginRequest, RegisterRequest
from ledger.services.user_service import UserService, user_service

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes; newer releases raise past that.
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or settings.password_hash_rounds)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored password hash could not be parsed")
        return False


class AuthService:
    def __init__(self, users: UserService = user_service):
        self.users = users

    async def register(self, db: AsyncSession, request: RegisterRequest) -> User:
        """
        Create a local subscriber account.

        Raises:
            ConflictError: the email is already registered
        """
        if await self.users.get_user_by_email(db, request.email) is not None:
            raise ConflictError(
                "An account with this email already exists",
                context={"email": request.email},
            )
        password_hash = await run_in_threadpool(hash_password, request.password)
        return await self.users.create_user(
            db,
            email=request.email,
            password_hash=password_hash,
            auth_provider=AUTH_PROVIDER_LOCAL,
            first_name=request.first_name,
            last_name=request.last_name,
            role=DEFAULT_ROLE,
            is_active=True,
        )

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> User:
        user = await self.users.get_user_by_email(db, email)
        if user is None or not user.password_hash:
            logger.info("Login failed: no local credentials for %s", email)
            raise AuthenticationError()
        if not await run_in_threadpool(verify_password, password, user.password_hash):
            logger.info("Login failed: wrong password for user %s", user.id)
            raise AuthenticationError()
        if not user.is_active:
            logger.info("Login refused: user %s is deactivated", user.id)
            raise AuthenticationError("This account has been deactivated")
        return user

    async def login(self, db: AsyncSession, request: LoginRequest) -> User:
        user = await self.authenticate(db, request.email, request.password)
        logger.info("User %s logged in", user.id)
        return user

    async def change_password(self, db: AsyncSession, request: ChangePasswordRequest) -> User:
        user = await self.authenticate(db, request.email, request.current_password)
        password_hash = await run_in_threadpool(hash_password, request.new_password)
        user = await self.users.update_user(db, user.id, password_hash=password_hash)
        logger.info("Password changed for user %s", user.id)
        return user


auth_service = AuthService()
