"""
Digital Ledger Backend: Auth Route Handlers
============================================

What:  POST /api/auth/register, /api/auth/login, /api/auth/change-password.
How:   Thin handlers: bodies are sanitized by SanitizedRoute and validated by
       the schemas, then the work is delegated to AuthService.
Who:   The login, registration and settings pages of the frontend.

Rate limits (see ledger.security.rate_limit):
    register         3 per hour per client
    login            5 failed attempts per 15 minutes per client
    change-password  5 per 15 minutes per client
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ledger.database import get_db_session
from ledger.schemas.auth import (
    ChangePasswordRequest,
    ErrorResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserResponse,
)
from ledger.security.sanitizer import SanitizedRoute
from ledger.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"], route_class=SanitizedRoute)


@router.post(
    "/register",
    status_code=201,
    response_model=UserResponse,
    responses={
        400: {"description": "Validation failed", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
        429: {"description": "Too many accounts created", "model": ErrorResponse},
    },
    summary="Create a local account",
)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await auth_service.register(db, body)
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=UserResponse,
    responses={
        401: {"description": "Invalid credentials", "model": ErrorResponse},
        429: {"description": "Too many failed attempts", "model": ErrorResponse},
    },
    summary="Check local credentials",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    user = await auth_service.login(db, body)
    return UserResponse.model_validate(user)


@router.post(
    "/change-password",
    response_model=MessageResponse,
    responses={
        400: {"description": "New password too weak", "model": ErrorResponse},
        401: {"description": "Invalid credentials", "model": ErrorResponse},
    },
    summary="Replace the password of a local account",
)
async def change_password(
    body: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.change_password(db, body)
    return MessageResponse(message="Password updated successfully")
