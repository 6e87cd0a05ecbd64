# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""User profile API routes."""

from fastapi import APIRouter, Depends

from flowplay_server.api.dependencies import get_credential_store, get_track_store
from flowplay_server.api.schemas import ProfileResponse, ProfileUpdate, UserResponse
from flowplay_server.auth import get_current_user_id
from flowplay_server.services.tracks import TrackStore
from flowplay_server.services.users import CredentialStore

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    users: CredentialStore = Depends(get_credential_store),
    tracks: TrackStore = Depends(get_track_store),
) -> ProfileResponse:
    """Current user's profile. trackCount is counted from the track table."""
    user = await users.get(user_id)
    response = UserResponse.model_validate(user)
    response.track_count = await tracks.count_owned(user_id)
    return ProfileResponse(user=response)


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    data: ProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    users: CredentialStore = Depends(get_credential_store),
) -> ProfileResponse:
    """Update displayName / avatar; preferences are merged, not replaced."""
    user = await users.update_profile(user_id, data)
    return ProfileResponse(user=UserResponse.model_validate(user))
