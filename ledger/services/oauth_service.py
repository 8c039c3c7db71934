"""
Digital Ledger Backend: OAuth Account Resolver
===============================================

What:  Maps a verified OAuth provider profile to a local user.
How:   Three steps, first match wins:
           1. a user with this external id        → return it unchanged
           2. a user with this email (lower-cased) → link the external id,
              switch auth_provider to "google", keep an existing profile image
           3. otherwise                           → create an active subscriber
Who:   The OAuth callback, once the provider handshake has produced a profile.

The provider handshake itself and the welcome email are outside this service.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ledger.models.user import AUTH_PROVIDER_GOOGLE, DEFAULT_ROLE, User
from ledger.services.user_service import UserService, user_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OAuthProfile:
    """The subset of a provider profile the resolver uses."""
    external_id: str
    email: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    @property
    def first_name(self) -> Optional[str]:
        if self.given_name:
            return self.given_name
        if self.display_name:
            return self.display_name.split(" ")[0]
        return None

    @property
    def last_name(self) -> Optional[str]:
        if self.family_name:
            return self.family_name
        if self.display_name:
            return " ".join(self.display_name.split(" ")[1:])
        return None


class OAuthAccountResolver:
    def __init__(self, users: UserService = user_service):
        self.users = users

    async def resolve(self, db: AsyncSession, profile: OAuthProfile) -> User:
        email = profile.email.strip().lower() if profile.email else None
        logger.info("OAuth sign-in for external id %s (email=%s)", profile.external_id, email)

        user = await self.users.get_user_by_external_id(db, profile.external_id)
        if user is not None:
            logger.info("Existing user found by external id: %s", user.id)
            return user

        if email:
            user = await self.users.get_user_by_email(db, email)
            if user is not None:
                logger.info("Linking OAuth account to existing user %s", user.id)
                return await self.users.update_user(
                    db,
                    user.id,
                    external_id=profile.external_id,
                    auth_provider=AUTH_PROVIDER_GOOGLE,
                    profile_image_url=user.profile_image_url or profile.photo_url,
                )

        user = await self.users.create_user(
            db,
            email=email,
            external_id=profile.external_id,
            auth_provider=AUTH_PROVIDER_GOOGLE,
            first_name=profile.first_name,
            last_name=profile.last_name,
            profile_image_url=profile.photo_url,
            password_hash=None,
            role=DEFAULT_ROLE,
            is_active=True,
        )
        logger.info("New OAuth user created: %s", user.id)
        return user


oauth_resolver = OAuthAccountResolver()
