# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pydantic schemas for API request/response.

Field names are camelCase on the wire (displayName, isPublic, uploadedBy)
to match the web client; snake_case names are accepted as well.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RequestModel(CamelModel):
    model_config = ConfigDict(extra="forbid")


# Auth
class UserCreate(RequestModel):
    username: str = Field(max_length=64)
    email: str = Field(max_length=255)
    password: str = Field(max_length=1024)
    display_name: str | None = Field(None, max_length=128)


class UserLogin(RequestModel):
    # Username or email
    username: str
    password: str


class Preferences(CamelModel):
    theme: str = "dark"
    volume: float = Field(0.8, ge=0, le=1)
    repeat: Literal["none", "one", "all"] = "none"
    shuffle: bool = False


class PreferencesUpdate(RequestModel):
    theme: str | None = None
    volume: float | None = Field(None, ge=0, le=1)
    repeat: Literal["none", "one", "all"] | None = None
    shuffle: bool | None = None


class ProfileUpdate(RequestModel):
    display_name: str | None = Field(None, max_length=128)
    avatar: str | None = None
    preferences: PreferencesUpdate | None = None


class UserResponse(CamelModel):
    id: str
    username: str
    email: str
    display_name: str
    avatar: str = ""
    preferences: Preferences
    created_at: datetime
    last_login: datetime | None = None
    track_count: int | None = None


class AuthResponse(CamelModel):
    token: str
    user: UserResponse


class ProfileResponse(CamelModel):
    user: UserResponse


# Tracks
SourceType = Literal["upload", "url", "youtube", "freemium"]


class TrackCreate(RequestModel):
    """Track metadata; audio is either inline base64 (audioData) or a link (sourceUrl)."""

    title: str = Field(min_length=1, max_length=255)
    artist: str = Field(min_length=1, max_length=255)
    album: str = Field("", max_length=255)
    genre: str = Field("", max_length=64)
    duration: float = Field(0, ge=0)
    is_public: bool = False
    thumbnail: str = ""
    file_name: str | None = Field(None, max_length=255)
    mime_type: str | None = Field(None, max_length=64)
    source_type: SourceType = "upload"
    audio_data: str | None = None
    source_url: str | None = Field(None, max_length=2048)

    @field_validator("title", "artist", "album", "genre")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def _one_audio_source(self) -> "TrackCreate":
        if self.audio_data and self.source_url:
            raise ValueError("audioData and sourceUrl are mutually exclusive")
        if self.source_url and not self.source_url.startswith(("http://", "https://")):
            raise ValueError("sourceUrl must be an http(s) URL")
        return self


class TrackOwner(CamelModel):
    id: str
    username: str
    display_name: str


class TrackResponse(CamelModel):
    id: str
    title: str
    artist: str
    album: str = ""
    genre: str = ""
    duration: float = 0
    file_name: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    thumbnail: str = ""
    source_type: str = "upload"
    source_url: str | None = None
    storage_type: str | None = None
    is_public: bool = False
    play_count: int = 0
    like_count: int = 0
    owner_id: str
    uploaded_by: TrackOwner | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("is_public", mode="before")
    @classmethod
    def _legacy_private(cls, v: bool | None) -> bool:
        return bool(v)


class Pagination(CamelModel):
    page: int
    limit: int
    pages: int
    total: int


class TrackListResponse(CamelModel):
    tracks: list[TrackResponse]
    pagination: Pagination


class TrackEnvelope(CamelModel):
    track: TrackResponse


class TrackDeleted(CamelModel):
    deleted_id: str
    message: str = "Track deleted successfully"


# Playlist
class PlaylistCreate(RequestModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    is_public: bool = False
    thumbnail: str = ""


class PlaylistUpdate(RequestModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    is_public: bool | None = None
    thumbnail: str | None = None


class PlaylistResponse(CamelModel):
    id: str
    owner_id: str
    name: str
    description: str = ""
    is_public: bool
    thumbnail: str = ""
    created_at: datetime
    updated_at: datetime
    track_count: int = 0


class PlaylistTrackAdd(RequestModel):
    track_id: str
    position: int | None = Field(None, ge=1)


class HealthResponse(CamelModel):
    status: Literal["ok", "degraded"]
    database: Literal["connected", "error"]
    storage: Literal["ok", "error"]
    version: str
