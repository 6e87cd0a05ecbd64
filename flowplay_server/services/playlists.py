# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Playlist store."""

import logging

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from flowplay_server.api.schemas import PlaylistCreate, PlaylistUpdate
from flowplay_server.errors import Conflict, NotFound
from flowplay_server.models import Playlist, PlaylistTrack, Track, User
from flowplay_server.models.timestamp import utcnow

logger = logging.getLogger(__name__)


class PlaylistStore:
    """User playlists. Private playlists look missing to everyone but their owner."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _owned(self, playlist_id: str, owner_id: str) -> Playlist:
        result = await self.db.execute(
            select(Playlist).where(Playlist.id == playlist_id, Playlist.owner_id == owner_id)
        )
        playlist = result.scalar_one_or_none()
        if not playlist:
            raise NotFound("Playlist not found")
        return playlist

    async def track_count(self, playlist_id: str) -> int:
        return await self.db.scalar(
            select(func.count()).select_from(PlaylistTrack).where(PlaylistTrack.playlist_id == playlist_id)
        ) or 0

    async def list_owned(self, owner_id: str) -> list[tuple[Playlist, int]]:
        """Owner's playlists by name, with track counts."""
        counts = (
            select(PlaylistTrack.playlist_id, func.count().label("cnt"))
            .group_by(PlaylistTrack.playlist_id)
            .subquery()
        )
        result = await self.db.execute(
            select(Playlist, func.coalesce(counts.c.cnt, 0))
            .outerjoin(counts, counts.c.playlist_id == Playlist.id)
            .where(Playlist.owner_id == owner_id)
            .order_by(Playlist.name)
        )
        return [(p, cnt) for p, cnt in result.all()]

    async def create(self, owner_id: str, data: PlaylistCreate) -> Playlist:
        playlist = Playlist(
            owner_id=owner_id,
            name=data.name.strip(),
            description=data.description,
            is_public=data.is_public,
            thumbnail=data.thumbnail,
        )
        self.db.add(playlist)
        await self.db.commit()
        logger.info("Created playlist %s for %s", playlist.id, owner_id)
        return playlist

    async def get(self, playlist_id: str, requester_id: str | None) -> Playlist:
        """Owner or anyone for a public playlist."""
        playlist = await self.db.get(Playlist, playlist_id)
        if not playlist or (playlist.owner_id != requester_id and not playlist.is_public):
            raise NotFound("Playlist not found")
        return playlist

    async def update(self, playlist_id: str, owner_id: str, data: PlaylistUpdate) -> Playlist:
        playlist = await self._owned(playlist_id, owner_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        for key, value in changes.items():
            setattr(playlist, key, value.strip() if key == "name" else value)
        playlist.updated_at = utcnow()
        await self.db.commit()
        return playlist

    async def delete(self, playlist_id: str, owner_id: str) -> None:
        playlist = await self._owned(playlist_id, owner_id)
        await self.db.execute(delete(PlaylistTrack).where(PlaylistTrack.playlist_id == playlist_id))
        await self.db.delete(playlist)
        await self.db.commit()
        logger.info("Deleted playlist %s", playlist_id)

    async def tracks(self, playlist_id: str, requester_id: str | None) -> list[tuple[Track, User]]:
        """Tracks in position order, limited to those the requester may see."""
        await self.get(playlist_id, requester_id)
        visible = Track.is_public.is_(True)
        if requester_id is not None:
            visible = or_(visible, Track.owner_id == requester_id)
        result = await self.db.execute(
            select(Track, User)
            .join(PlaylistTrack, PlaylistTrack.track_id == Track.id)
            .join(User, Track.owner_id == User.id)
            .where(PlaylistTrack.playlist_id == playlist_id, visible)
            .order_by(PlaylistTrack.position, PlaylistTrack.added_at)
        )
        return [(t, u) for t, u in result.all()]

    async def add_track(
        self,
        playlist_id: str,
        owner_id: str,
        track_id: str,
        position: int | None = None,
    ) -> PlaylistTrack:
        playlist = await self._owned(playlist_id, owner_id)
        track = await self.db.get(Track, track_id)
        if not track or (track.owner_id != owner_id and not track.is_public):
            raise NotFound("Track not found")
        existing = await self.db.get(PlaylistTrack, (playlist_id, track_id))
        if existing:
            raise Conflict("Track already in playlist")

        max_pos = await self.db.scalar(
            select(func.max(PlaylistTrack.position)).where(PlaylistTrack.playlist_id == playlist_id)
        )
        pt = PlaylistTrack(
            playlist_id=playlist_id,
            track_id=track_id,
            position=position if position is not None else (max_pos or 0) + 1,
        )
        self.db.add(pt)
        playlist.updated_at = utcnow()
        await self.db.commit()
        return pt

    async def remove_track(self, playlist_id: str, owner_id: str, track_id: str) -> None:
        playlist = await self._owned(playlist_id, owner_id)
        result = await self.db.execute(
            delete(PlaylistTrack).where(
                PlaylistTrack.playlist_id == playlist_id,
                PlaylistTrack.track_id == track_id,
            )
        )
        if not result.rowcount:
            raise NotFound("Track not in playlist")
        playlist.updated_at = utcnow()
        await self.db.commit()
