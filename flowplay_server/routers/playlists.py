# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Playlist API routes."""

from fastapi import APIRouter, Depends, status

from flowplay_server.api.dependencies import get_playlist_store
from flowplay_server.api.schemas import (
    PlaylistCreate,
    PlaylistResponse,
    PlaylistTrackAdd,
    PlaylistUpdate,
    TrackResponse,
)
from flowplay_server.auth import get_current_user_id, get_optional_user_id
from flowplay_server.models import Playlist
from flowplay_server.routers.tracks import track_response
from flowplay_server.services.playlists import PlaylistStore

router = APIRouter(prefix="/playlists", tags=["playlists"])


def _playlist_response(playlist: Playlist, track_count: int) -> PlaylistResponse:
    response = PlaylistResponse.model_validate(playlist)
    response.track_count = track_count
    return response


@router.get("", response_model=list[PlaylistResponse])
async def list_playlists(
    user_id: str = Depends(get_current_user_id),
    playlists: PlaylistStore = Depends(get_playlist_store),
) -> list[PlaylistResponse]:
    """List current user's playlists."""
    return [_playlist_response(p, cnt) for p, cnt in await playlists.list_owned(user_id)]


@router.post("", response_model=PlaylistResponse, status_code=status.HTTP_201_CREATED)
async def create_playlist(
    data: PlaylistCreate,
    user_id: str = Depends(get_current_user_id),
    playlists: PlaylistStore = Depends(get_playlist_store),
) -> PlaylistResponse:
    """Create a new playlist."""
    playlist = await playlists.create(user_id, data)
    return _playlist_response(playlist, 0)


@router.get("/{playlist_id}", response_model=PlaylistResponse)
async def get_playlist(
    playlist_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    playlists: PlaylistStore = Depends(get_playlist_store),
) -> PlaylistResponse:
    """Get playlist by ID (owner, or anyone when public)."""
    playlist = await playlists.get(playlist_id, user_id)
    return _playlist_response(playlist, await playlists.track_count(playlist_id))


@router.put("/{playlist_id}", response_model=PlaylistResponse)
async def update_playlist(
    playlist_id: str,
    data: PlaylistUpdate,
    user_id: str = Depends(get_current_user_id),
    playlists: PlaylistStore = Depends(get_playlist_store),
) -> PlaylistResponse:
    playlist = await playlists.update(playlist_id, user_id, data)
    return _playlist_response(playlist, await playlists.track_count(playlist_id))


@router.delete("/{playlist_id}")
async def delete_playlist(
    playlist_id: str,
    user_id: str = Depends(get_current_user_id),
    playlists: PlaylistStore = Depends(get_playlist_store),
) -> dict:
    await playlists.delete(playlist_id, user_id)
    return {"deletedId": playlist_id}


@router.get("/{playlist_id}/tracks", response_model=list[TrackResponse])
async def get_playlist_tracks(
    playlist_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    playlists: PlaylistStore = Depends(get_playlist_store),
) -> list[TrackResponse]:
    """Get tracks in a playlist, in order."""
    return [track_response(t, u) for t, u in await playlists.tracks(playlist_id, user_id)]


@router.post("/{playlist_id}/tracks", status_code=status.HTTP_201_CREATED)
async def add_track_to_playlist(
    playlist_id: str,
    data: PlaylistTrackAdd,
    user_id: str = Depends(get_current_user_id),
    playlists: PlaylistStore = Depends(get_playlist_store),
) -> dict:
    """Add a track to a playlist."""
    pt = await playlists.add_track(playlist_id, user_id, data.track_id, data.position)
    return {"status": "ok", "position": pt.position}


@router.delete("/{playlist_id}/tracks/{track_id}")
async def remove_track_from_playlist(
    playlist_id: str,
    track_id: str,
    user_id: str = Depends(get_current_user_id),
    playlists: PlaylistStore = Depends(get_playlist_store),
) -> dict:
    """Remove a track from a playlist."""
    await playlists.remove_track(playlist_id, user_id, track_id)
    return {"status": "ok"}
