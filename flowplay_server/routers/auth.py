# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Authentication API routes."""

from fastapi import APIRouter, Depends, status

from flowplay_server.api.dependencies import get_credential_store
from flowplay_server.api.schemas import AuthResponse, UserCreate, UserLogin, UserResponse
from flowplay_server.rate_limit import rate_limit_auth_dep
from flowplay_server.services.users import CredentialStore

router = APIRouter(prefix="/auth", tags=["auth"], dependencies=[Depends(rate_limit_auth_dep)])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: UserCreate,
    users: CredentialStore = Depends(get_credential_store),
) -> AuthResponse:
    """Create a new user account and sign it in."""
    user, token = await users.register(data.username, data.email, data.password, data.display_name)
    return AuthResponse(token=token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse)
async def login(
    data: UserLogin,
    users: CredentialStore = Depends(get_credential_store),
) -> AuthResponse:
    """Authenticate with username or email and return a JWT."""
    user, token = await users.login(data.username, data.password)
    return AuthResponse(token=token, user=UserResponse.model_validate(user))
