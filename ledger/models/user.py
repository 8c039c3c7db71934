"""
Digital Ledger Backend: User SQLAlchemy Model
==============================================

What:  ORM model for the `users` table, the User Store's only entity.
How:   Inherits from Base; Alembic migration 001 creates the table.
Who:   UserService (CRUD), the OAuth account resolver and the auth service.

Table Design:
    - UUID primary key, generated in Python so SQLite and PostgreSQL agree
    - email: unique, stored lower-cased, nullable (an OAuth profile may
      arrive without one)
    - external_id: the OAuth provider's subject id, unique, nullable
    - password_hash: bcrypt hash, NULL for accounts that only sign in via OAuth
    - role: "subscriber" unless promoted by an administrator
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from ledger.database import Base

AUTH_PROVIDER_LOCAL = "local"
AUTH_PROVIDER_GOOGLE = "google"
DEFAULT_ROLE = "subscriber"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    A registered member of the ledger community.

    Lifecycle:
        1. Created by POST /api/auth/register (auth_provider='local') or by
           the OAuth account resolver (auth_provider='google')
        2. A local account is linked to OAuth on the first provider sign-in
           with the same email: external_id is set, auth_provider becomes 'google'
        3. Deactivated by clearing is_active; rows are never deleted
    """

    __tablename__ = "users"

    # ── Identity ──────────────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        comment="Lower-cased login email",
    )
    external_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
        comment="OAuth provider subject id",
    )
    auth_provider: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AUTH_PROVIDER_LOCAL,
        server_default=text("'local'"),
    )
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ── Profile ───────────────────────────────────────────────────────────
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    profile_image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Access ────────────────────────────────────────────────────────────
    role: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=DEFAULT_ROLE,
        server_default=text("'subscriber'"),
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    # ── Timestamps ────────────────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', provider='{self.auth_provider}')>"
