# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Track model."""

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from flowplay_server.models.base import Base
from flowplay_server.models.timestamp import TimestampMixin, new_id

# Where a track's audio lives; exactly one of audio_data / storage_key / source_url is set.
STORAGE_INLINE = "inline"
STORAGE_OBJECT = "object"
STORAGE_EXTERNAL = "external"


class Track(Base, TimestampMixin):
    """Uploaded or linked track owned by one user."""

    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    artist: Mapped[str] = mapped_column(String(255), nullable=False)
    album: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    genre: Mapped[str] = mapped_column(String(64), default="", nullable=False)
    duration: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)  # seconds
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    thumbnail: Mapped[str] = mapped_column(Text, default="", nullable=False)
    source_type: Mapped[str] = mapped_column(String(16), default="upload", nullable=False)

    storage_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    # Base64 audio, only loaded when streaming
    audio_data: Mapped[str | None] = mapped_column(Text, nullable=True, deferred=True)
    storage_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    # NULL on legacy rows; treated as private
    is_public: Mapped[bool | None] = mapped_column(Boolean, default=False, nullable=True, index=True)
    play_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    like_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
