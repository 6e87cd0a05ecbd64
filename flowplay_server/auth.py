# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Authentication: JWT and password hashing."""

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from flowplay_server.config import Settings
from flowplay_server.errors import Unauthorized
from flowplay_server.models import User

bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache
def _password_context(rounds: int) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash a password for storage."""
    return _password_context(rounds).hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a password against its hash (the cost is read from the hash)."""
    return _password_context(12).verify(plain, hashed)


def create_access_token(
    data: dict[str, Any],
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token."""
    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode.update({
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes)),
    })
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def issue_token(user: User, settings: Settings) -> str:
    """Session token for a user: {sub, username, iat, exp}."""
    return create_access_token({"sub": user.id, "username": user.username}, settings)


def decode_token(token: str, settings: Settings) -> dict[str, Any] | None:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def validate_token(token: str | None, settings: Settings) -> str:
    """Resolve a bearer token to a user id. Raises Unauthorized for any bad token."""
    if not token:
        raise Unauthorized("Not authenticated")
    payload = decode_token(token, settings)
    if not payload:
        raise Unauthorized("Invalid or expired token")
    user_id = payload.get("sub")
    if not user_id or not isinstance(user_id, str):
        raise Unauthorized("Invalid token")
    return user_id


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> str:
    """Extract and validate user ID from the Bearer header. Raises 401 if invalid."""
    return validate_token(credentials.credentials if credentials else None, settings)


async def get_optional_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> str | None:
    """Extract user ID from JWT if present. Returns None if no/invalid token."""
    if not credentials:
        return None
    payload = decode_token(credentials.credentials, settings)
    if not payload:
        return None
    user_id = payload.get("sub")
    return user_id if isinstance(user_id, str) and user_id else None


async def get_optional_user_id_for_stream(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> str | None:
    """Like get_optional_user_id but also accepts ?token= (audio elements cannot send headers)."""
    token = credentials.credentials if credentials else request.query_params.get("token")
    if not token:
        return None
    payload = decode_token(token, settings)
    if not payload:
        return None
    user_id = payload.get("sub")
    return user_id if isinstance(user_id, str) and user_id else None
