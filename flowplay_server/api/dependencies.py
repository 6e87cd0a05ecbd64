# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""FastAPI providers for the stores, built per request from app state."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from flowplay_server.auth import get_settings
from flowplay_server.config import Settings
from flowplay_server.database import get_db
from flowplay_server.services.playlists import PlaylistStore
from flowplay_server.services.storage import LocalObjectStorage
from flowplay_server.services.tracks import TrackStore
from flowplay_server.services.users import CredentialStore


def get_storage(request: Request) -> LocalObjectStorage:
    return request.app.state.storage


def get_credential_store(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CredentialStore:
    return CredentialStore(db, settings)


def get_track_store(
    db: AsyncSession = Depends(get_db),
    storage: LocalObjectStorage = Depends(get_storage),
) -> TrackStore:
    return TrackStore(db, storage)


def get_playlist_store(db: AsyncSession = Depends(get_db)) -> PlaylistStore:
    return PlaylistStore(db)
