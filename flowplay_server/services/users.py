# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Credential store: user accounts, password checks and session tokens."""

import logging
import re

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from flowplay_server.api.schemas import Preferences, ProfileUpdate
from flowplay_server.auth import hash_password, issue_token, validate_token, verify_password
from flowplay_server.config import Settings
from flowplay_server.errors import Conflict, NotFound, Unauthorized, ValidationError
from flowplay_server.models import User
from flowplay_server.models.timestamp import utcnow
from flowplay_server.models.user import DEFAULT_PREFERENCES

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6
MAX_USERNAME_LENGTH = 64
MAX_EMAIL_LENGTH = 255
MAX_DISPLAY_NAME_LENGTH = 128
INVALID_CREDENTIALS = "Invalid username or password"


class CredentialStore:
    """User records and credential checks, bound to one database session."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        display_name: str | None = None,
    ) -> tuple[User, str]:
        """Create a user and return it with a fresh session token."""
        username = (username or "").strip()
        email = (email or "").strip()
        if not username or not email or not password:
            raise ValidationError("Username, email and password are required")
        if len(username) > MAX_USERNAME_LENGTH:
            raise ValidationError(f"Username must be at most {MAX_USERNAME_LENGTH} characters")
        if "@" in username:
            raise ValidationError("Username cannot contain @")
        if len(email) > MAX_EMAIL_LENGTH:
            raise ValidationError(f"Email must be at most {MAX_EMAIL_LENGTH} characters")
        display_name = (display_name or "").strip() or username
        if len(display_name) > MAX_DISPLAY_NAME_LENGTH:
            raise ValidationError(f"Display name must be at most {MAX_DISPLAY_NAME_LENGTH} characters")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if not EMAIL_RE.match(email):
            raise ValidationError("Invalid email address")

        username_key = username.lower()
        email_key = email.lower()
        result = await self.db.execute(
            select(User).where(or_(User.username == username_key, User.email == email_key))
        )
        existing = result.scalars().first()
        if existing:
            field = "Username" if existing.username == username_key else "Email"
            raise Conflict(f"{field} already registered")

        now = utcnow()
        user = User(
            username=username_key,
            email=email_key,
            password_hash=hash_password(password, self.settings.bcrypt_rounds),
            display_name=display_name,
            preferences=dict(DEFAULT_PREFERENCES),
            last_login=now,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            await self.db.rollback()
            raise Conflict("Username or email already registered")
        logger.info("Registered user %s (%s)", user.username, user.id)
        return user, issue_token(user, self.settings)

    async def login(self, username_or_email: str, password: str) -> tuple[User, str]:
        """Check credentials; on success stamp last_login and issue a new token."""
        key = (username_or_email or "").strip().lower()
        if not key or not password:
            raise Unauthorized(INVALID_CREDENTIALS)
        # Usernames never contain @, so a key with one is an email
        column = User.email if "@" in key else User.username
        user = await self.db.scalar(select(User).where(column == key))
        if not user or not user.is_active or not verify_password(password, user.password_hash):
            logger.info("Failed login for %r", key)
            raise Unauthorized(INVALID_CREDENTIALS)
        user.last_login = utcnow()
        await self.db.commit()
        logger.info("User %s logged in", user.username)
        return user, issue_token(user, self.settings)

    def validate_token(self, token: str | None) -> str:
        """Resolve a token to a user id without touching the database."""
        return validate_token(token, self.settings)

    async def get(self, user_id: str) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFound("User not found")
        return user

    async def update_profile(self, user_id: str, data: ProfileUpdate) -> User:
        """Partial update; preferences are merged key by key."""
        user = await self.get(user_id)
        if data.display_name is not None:
            display_name = data.display_name.strip()
            if not display_name:
                raise ValidationError("Display name cannot be empty")
            user.display_name = display_name
        if data.avatar is not None:
            user.avatar = data.avatar
        if data.preferences is not None:
            changes = data.preferences.model_dump(exclude_unset=True, exclude_none=True)
            merged = {**DEFAULT_PREFERENCES, **(user.preferences or {}), **changes}
            # Re-validate the merged dict so stored legacy values stay in range
            user.preferences = Preferences.model_validate(merged).model_dump()
        user.updated_at = utcnow()
        await self.db.commit()
        logger.info("Updated profile for %s", user.username)
        return user
