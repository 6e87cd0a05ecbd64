# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Database models."""

from flowplay_server.models.base import Base
from flowplay_server.models.user import User
from flowplay_server.models.track import Track
from flowplay_server.models.playlist import Playlist, PlaylistTrack

__all__ = [
    "Base",
    "User",
    "Track",
    "Playlist",
    "PlaylistTrack",
]
