# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Track store: metadata, ownership, visibility and audio access."""

import base64
import binascii
import logging
import math
from collections.abc import AsyncIterator
from dataclasses import dataclass

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer

from flowplay_server.api.schemas import TrackCreate
from flowplay_server.errors import Forbidden, NotFound, RangeNotSatisfiable, Unauthorized, ValidationError
from flowplay_server.models import PlaylistTrack, Track, User
from flowplay_server.models.track import STORAGE_EXTERNAL, STORAGE_INLINE, STORAGE_OBJECT
from flowplay_server.services.storage import LocalObjectStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageRef:
    """Where a new track's audio lives."""

    storage_type: str | None
    audio_data: str | None = None
    storage_key: str | None = None
    source_url: str | None = None
    size: int | None = None

    @classmethod
    def inline(cls, data: bytes) -> "StorageRef":
        return cls(STORAGE_INLINE, audio_data=base64.b64encode(data).decode("ascii"), size=len(data))

    @classmethod
    def stored(cls, key: str, size: int) -> "StorageRef":
        return cls(STORAGE_OBJECT, storage_key=key, size=size)

    @classmethod
    def external(cls, url: str) -> "StorageRef":
        return cls(STORAGE_EXTERNAL, source_url=url)

    @classmethod
    def none(cls) -> "StorageRef":
        return cls(None)


@dataclass
class Page:
    rows: list[tuple[Track, User]]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


@dataclass
class AudioStream:
    """Resolved audio for a stream request. Either redirect_url is set or bytes can be read."""

    track: Track
    size: int
    redirect_url: str | None = None
    inline_data: bytes | None = None
    storage: LocalObjectStorage | None = None
    storage_key: str | None = None

    async def iter_bytes(self, start: int, end: int) -> AsyncIterator[bytes]:
        if self.inline_data is not None:
            yield self.inline_data[start:end + 1]
            return
        async for chunk in self.storage.iter_range(self.storage_key, start, end):
            yield chunk


def decode_audio_data(value: str) -> tuple[bytes, str | None]:
    """Decode base64 audio, accepting a ``data:<mime>;base64,`` prefix. Returns (bytes, mime)."""
    mime = None
    if value.startswith("data:"):
        header, _, value = value.partition(",")
        mime = header[5:].split(";")[0] or None
    try:
        return base64.b64decode(value, validate=True), mime
    except (binascii.Error, ValueError):
        raise ValidationError("audioData is not valid base64")


def parse_range(header: str, size: int) -> tuple[int, int]:
    """Parse ``Range: bytes=start-end`` against a resource size.

    Supports ``start-end``, open ``start-`` and suffix ``-N`` forms for a
    single range. Returns an inclusive (start, end) pair clamped to the size.
    """
    unit, _, spec = header.strip().partition("=")
    if unit.strip().lower() != "bytes" or not spec or "," in spec:
        raise ValidationError("Invalid Range header")
    start_str, sep, end_str = spec.strip().partition("-")
    if not sep:
        raise ValidationError("Invalid Range header")
    try:
        if start_str:
            start = int(start_str)
            end = int(end_str) if end_str else size - 1
        else:
            suffix = int(end_str)
            if suffix <= 0:
                raise RangeNotSatisfiable(size)
            start = max(size - suffix, 0)
            end = size - 1
    except ValueError:
        raise ValidationError("Invalid Range header")
    if start < 0 or end < start:
        raise ValidationError("Invalid Range header")
    if start >= size:
        raise RangeNotSatisfiable(size)
    return start, min(end, size - 1)


def _like(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class TrackStore:
    """Track records and ownership rules, bound to one database session."""

    def __init__(self, db: AsyncSession, storage: LocalObjectStorage):
        self.db = db
        self.storage = storage

    async def create(self, owner_id: str, metadata: TrackCreate, storage_ref: StorageRef) -> Track:
        track = Track(
            owner_id=owner_id,
            title=metadata.title,
            artist=metadata.artist,
            album=metadata.album,
            genre=metadata.genre,
            duration=metadata.duration,
            file_name=metadata.file_name,
            mime_type=metadata.mime_type,
            thumbnail=metadata.thumbnail,
            source_type=metadata.source_type,
            is_public=metadata.is_public,
            storage_type=storage_ref.storage_type,
            audio_data=storage_ref.audio_data,
            storage_key=storage_ref.storage_key,
            source_url=storage_ref.source_url,
            file_size=storage_ref.size,
            play_count=0,
            like_count=0,
        )
        self.db.add(track)
        await self.db.commit()
        logger.info("Created track %s %r for %s (%s)", track.id, track.title, owner_id, track.storage_type)
        return track

    async def get(self, track_id: str) -> Track:
        """Fetch a track regardless of visibility."""
        track = await self.db.get(Track, track_id)
        if not track:
            raise NotFound("Track not found")
        return track

    async def get_visible(self, track_id: str, requester_id: str | None) -> tuple[Track, User]:
        """Fetch a track with its owner; hidden tracks look missing to non-owners."""
        result = await self.db.execute(
            select(Track, User).join(User, Track.owner_id == User.id).where(Track.id == track_id)
        )
        row = result.one_or_none()
        if not row:
            raise NotFound("Track not found")
        track, owner = row
        if track.owner_id != requester_id and not track.is_public:
            raise NotFound("Track not found")
        return track, owner

    async def _page(self, where: list, page: int, limit: int) -> Page:
        total = await self.db.scalar(select(func.count()).select_from(Track).where(*where))
        total = total or 0
        if (page - 1) * limit >= total:
            return Page(rows=[], page=page, limit=limit, total=total)
        result = await self.db.execute(
            select(Track, User)
            .join(User, Track.owner_id == User.id)
            .where(*where)
            .order_by(Track.created_at.desc(), Track.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return Page(rows=[(t, u) for t, u in result.all()], page=page, limit=limit, total=total)

    async def list_owned(self, owner_id: str, page: int = 1, limit: int = 20) -> Page:
        """Owner's tracks, newest first. Inline audio is never loaded."""
        return await self._page([Track.owner_id == owner_id], page, limit)

    async def list_public(
        self,
        genre: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page:
        """Public tracks, optionally filtered by genre and title/artist text (ANDed)."""
        where = [Track.is_public.is_(True)]
        if genre and genre.strip():
            where.append(Track.genre.ilike(_like(genre.strip()), escape="\\"))
        if search and search.strip():
            pattern = _like(search.strip())
            where.append(or_(
                Track.title.ilike(pattern, escape="\\"),
                Track.artist.ilike(pattern, escape="\\"),
            ))
        return await self._page(where, page, limit)

    async def count_owned(self, owner_id: str) -> int:
        return await self.db.scalar(
            select(func.count()).select_from(Track).where(Track.owner_id == owner_id)
        ) or 0

    async def delete(self, track_id: str, requester_id: str) -> Track:
        """Delete an owned track; blob cleanup is best effort."""
        track = await self.get(track_id)
        if track.owner_id != requester_id:
            raise Forbidden("You can only delete your own tracks")
        storage_key = track.storage_key
        await self.db.execute(delete(PlaylistTrack).where(PlaylistTrack.track_id == track_id))
        await self.db.delete(track)
        await self.db.commit()
        logger.info("Deleted track %s %r", track_id, track.title)
        if storage_key:
            try:
                await self.storage.delete(storage_key)
            except Exception as e:
                logger.warning("Failed to delete blob %s for track %s: %s", storage_key, track_id, e)
        return track

    async def increment_play_count(self, track_id: str) -> None:
        """Fire-and-forget +1; failures are logged, never raised."""
        try:
            await self.db.execute(
                update(Track).where(Track.id == track_id).values(play_count=Track.play_count + 1)
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.warning("Could not increment play count for %s: %s", track_id, e)

    async def stream(self, track_id: str, requester_id: str | None) -> AudioStream:
        """Authorize (owner or public) and resolve the track's audio."""
        result = await self.db.execute(
            select(Track).options(undefer(Track.audio_data)).where(Track.id == track_id)
        )
        track = result.scalar_one_or_none()
        if not track:
            raise NotFound("Track not found")
        if track.owner_id != requester_id and not track.is_public:
            if requester_id is None:
                raise Unauthorized("Authentication required for this track")
            raise Forbidden("Access denied")

        if track.storage_type == STORAGE_EXTERNAL and track.source_url:
            return AudioStream(track=track, size=0, redirect_url=track.source_url)
        if track.storage_type == STORAGE_INLINE and track.audio_data:
            data, _ = decode_audio_data(track.audio_data)
            return AudioStream(track=track, size=len(data), inline_data=data)
        if track.storage_type == STORAGE_OBJECT and track.storage_key:
            size = await self.storage.size(track.storage_key)
            return AudioStream(
                track=track, size=size, storage=self.storage, storage_key=track.storage_key,
            )
        raise NotFound("No audio stored for this track")
