"""
Digital Ledger Backend: Pydantic Request/Response Schemas
==========================================================

What:  The API contract for the auth and health endpoints.
How:   FastAPI validates request bodies against these models. Every failed
       field is collected into one RequestValidationError, which the error
       normalizer turns into `{"message": "Validation failed", "errors": [...]}`.

Validation rules:
    email            local@domain.tld, trimmed and lower-cased
    password         8-128 chars, one lowercase, one uppercase, one digit
    strong password  12-128 chars, also one of @$!%*?&

Field messages are raised as PydanticCustomError so they reach the client
verbatim (a plain ValueError would be prefixed with "Value error, ").
"""

import re
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_CLASSES = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
STRONG_PASSWORD_CLASSES = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])")


# ══════════════════════════════════════════════════════════════════════════
# Field rules
# ══════════════════════════════════════════════════════════════════════════


def normalize_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise PydanticCustomError("invalid_email", "Invalid email address")
    return value


def check_password(value: str) -> str:
    if not 8 <= len(value) <= 128:
        raise PydanticCustomError(
            "password_length", "Password must be between 8 and 128 characters"
        )
    if not PASSWORD_CLASSES.match(value):
        raise PydanticCustomError(
            "password_strength",
            "Password must contain at least one uppercase letter, one lowercase letter, and one number",
        )
    return value


def check_strong_password(value: str) -> str:
    if not 12 <= len(value) <= 128:
        raise PydanticCustomError(
            "password_length", "Password must be between 12 and 128 characters"
        )
    if not STRONG_PASSWORD_CLASSES.match(value):
        raise PydanticCustomError(
            "password_strength",
            "Password must contain at least one uppercase letter, one lowercase letter, "
            "one number, and one special character",
        )
    return value


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class RegisterRequest(BaseModel):
    """Body of POST /api/auth/register."""
    email: str = Field(description="Login email, stored lower-cased")
    password: str = Field(description="8-128 characters, mixed case and a digit")
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return check_password(v)


class LoginRequest(BaseModel):
    """
    Body of POST /api/auth/login.

    The password is only required to be present: strength rules apply when a
    password is chosen, not when it is presented.
    """
    email: str
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class ChangePasswordRequest(BaseModel):
    email: str
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(description="12-128 characters incl. a special character")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, v: str) -> str:
        return check_strong_password(v)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    """
    Public view of a user. password_hash and external_id are never exposed.
    """
    id: uuid.UUID
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    auth_provider: str
    role: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    message: str


class FieldError(BaseModel):
    type: str = "field"
    location: str
    path: str
    msg: str


class ErrorResponse(BaseModel):
    """
    Shape of every error body the API returns. `errors` is present on
    validation failures, `stack` only outside production.
    """
    message: str
    errors: Optional[List[FieldError]] = None
    stack: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = Field(description="healthy or unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    uptime_seconds: float
