# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Track API routes - discovery, my tracks, upload, delete."""

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import ValidationError as PydanticValidationError
from starlette.datastructures import UploadFile

from flowplay_server.api.dependencies import get_storage, get_track_store
from flowplay_server.api.schemas import (
    Pagination,
    TrackCreate,
    TrackDeleted,
    TrackEnvelope,
    TrackListResponse,
    TrackOwner,
    TrackResponse,
)
from flowplay_server.auth import get_current_user_id, get_optional_user_id, get_settings
from flowplay_server.config import Settings
from flowplay_server.errors import PayloadTooLarge, ValidationError
from flowplay_server.models import Track, User
from flowplay_server.models.timestamp import new_id
from flowplay_server.services.metadata import extract_metadata
from flowplay_server.services.storage import LocalObjectStorage
from flowplay_server.services.tracks import Page, StorageRef, TrackStore, decode_audio_data

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tracks", tags=["tracks"])

# Multipart boundaries and text fields on top of the file itself
FORM_OVERHEAD = 64 * 1024

# Form field name -> TrackCreate field
FORM_FIELDS = {
    "title": "title",
    "artist": "artist",
    "album": "album",
    "genre": "genre",
    "duration": "duration",
    "isPublic": "is_public",
    "is_public": "is_public",
    "thumbnail": "thumbnail",
}


def track_response(track: Track, owner: User | None = None) -> TrackResponse:
    response = TrackResponse.model_validate(track)
    if owner is not None:
        response.uploaded_by = TrackOwner.model_validate(owner)
    return response


def _page_response(page: Page) -> TrackListResponse:
    return TrackListResponse(
        tracks=[track_response(t, u) for t, u in page.rows],
        pagination=Pagination(page=page.page, limit=page.limit, pages=page.pages, total=page.total),
    )


def _parse_metadata(payload: dict[str, Any]) -> TrackCreate:
    try:
        return TrackCreate.model_validate(payload)
    except PydanticValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(p) for p in err["loc"])
        raise ValidationError(f"{field}: {err['msg']}" if field else err["msg"])


def _check_audio(data: bytes, mime_type: str | None, settings: Settings) -> None:
    if len(data) > settings.max_upload_bytes:
        raise PayloadTooLarge(f"File exceeds the {settings.max_upload_bytes // (1024 * 1024)}MB limit")
    if not mime_type or mime_type.lower() not in settings.allowed_audio_types:
        raise ValidationError("Invalid file type. Only audio files are allowed.")


def _object_key(owner_id: str, file_name: str | None) -> str:
    suffix = Path(file_name or "").suffix.lower()
    if not (1 < len(suffix) <= 6 and suffix[1:].isalnum()):
        suffix = ""
    return f"{owner_id}/{new_id()}{suffix}"


async def _save_audio(
    owner_id: str,
    metadata: TrackCreate,
    data: bytes,
    tracks: TrackStore,
    storage: LocalObjectStorage,
    settings: Settings,
) -> Track:
    """Store audio per UPLOAD_STORAGE and create the track row."""
    if settings.upload_storage == "inline":
        return await tracks.create(owner_id, metadata, StorageRef.inline(data))

    key = _object_key(owner_id, metadata.file_name)
    await storage.put(key, data)
    try:
        return await tracks.create(owner_id, metadata, StorageRef.stored(key, len(data)))
    except Exception:
        try:
            await storage.delete(key)
        except OSError as e:
            logger.warning("Could not remove orphaned blob %s: %s", key, e)
        raise


async def _upload_form(
    request: Request,
    owner_id: str,
    tracks: TrackStore,
    storage: LocalObjectStorage,
    settings: Settings,
) -> Track:
    form = await request.form()
    upload = form.get("file") or form.get("audio")
    if not isinstance(upload, UploadFile):
        raise ValidationError("No audio file uploaded")
    data = await upload.read(settings.max_upload_bytes + 1)
    _check_audio(data, upload.content_type, settings)

    payload: dict[str, Any] = {}
    for key, field in FORM_FIELDS.items():
        value = form.get(key)
        if isinstance(value, str) and value.strip():
            payload[field] = value.strip()
    tags = extract_metadata(data, upload.filename)
    payload.setdefault("title", tags.get("title") or Path(upload.filename or "").stem or "Untitled")
    payload.setdefault("artist", tags.get("artist") or "Unknown Artist")
    for field in ("album", "genre", "duration"):
        if field in tags:
            payload.setdefault(field, tags[field])
    payload["file_name"] = upload.filename
    payload["mime_type"] = upload.content_type
    metadata = _parse_metadata(payload)
    return await _save_audio(owner_id, metadata, data, tracks, storage, settings)


async def _upload_json(
    request: Request,
    owner_id: str,
    tracks: TrackStore,
    storage: LocalObjectStorage,
    settings: Settings,
) -> Track:
    try:
        body = await request.json()
    except ValueError:
        raise ValidationError("Request body must be JSON or multipart/form-data")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    metadata = _parse_metadata(body)

    if metadata.audio_data:
        data, uri_mime = decode_audio_data(metadata.audio_data)
        mime_type = metadata.mime_type or uri_mime
        _check_audio(data, mime_type, settings)
        changes: dict[str, Any] = {"audio_data": None, "mime_type": mime_type}
        if not metadata.duration:
            changes["duration"] = extract_metadata(data, metadata.file_name).get("duration", 0.0)
        return await _save_audio(owner_id, metadata.model_copy(update=changes), data, tracks, storage, settings)

    if metadata.source_url:
        if metadata.source_type == "upload":
            metadata = metadata.model_copy(update={"source_type": "url"})
        return await tracks.create(owner_id, metadata, StorageRef.external(metadata.source_url))

    return await tracks.create(owner_id, metadata, StorageRef.none())


@router.get("/public", response_model=TrackListResponse)
async def list_public_tracks(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    genre: str | None = Query(None),
    search: str | None = Query(None),
    tracks: TrackStore = Depends(get_track_store),
) -> TrackListResponse:
    """Discovery feed: public tracks, newest first."""
    return _page_response(await tracks.list_public(genre=genre, search=search, page=page, limit=limit))


@router.get("/my", response_model=TrackListResponse)
async def list_my_tracks(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    tracks: TrackStore = Depends(get_track_store),
) -> TrackListResponse:
    """Current user's tracks, newest first."""
    return _page_response(await tracks.list_owned(user_id, page=page, limit=limit))


@router.post("/upload", response_model=TrackEnvelope, status_code=status.HTTP_201_CREATED)
async def upload_track(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    tracks: TrackStore = Depends(get_track_store),
    storage: LocalObjectStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> TrackEnvelope:
    """Upload a track as multipart (file + fields) or as JSON metadata.

    JSON bodies may carry inline base64 audio (audioData) or a link (sourceUrl).
    """
    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > settings.max_upload_bytes + FORM_OVERHEAD:
        raise PayloadTooLarge(f"File exceeds the {settings.max_upload_bytes // (1024 * 1024)}MB limit")

    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        track = await _upload_form(request, user_id, tracks, storage, settings)
    else:
        track = await _upload_json(request, user_id, tracks, storage, settings)
    return TrackEnvelope(track=track_response(track))


@router.get("/{track_id}", response_model=TrackEnvelope)
async def get_track(
    track_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    tracks: TrackStore = Depends(get_track_store),
) -> TrackEnvelope:
    """Track metadata; private tracks are only visible to their owner."""
    track, owner = await tracks.get_visible(track_id, user_id)
    return TrackEnvelope(track=track_response(track, owner))


@router.delete("/{track_id}", response_model=TrackDeleted)
async def delete_track(
    track_id: str,
    user_id: str = Depends(get_current_user_id),
    tracks: TrackStore = Depends(get_track_store),
) -> TrackDeleted:
    """Delete an owned track and its stored audio."""
    await tracks.delete(track_id, user_id)
    return TrackDeleted(deleted_id=track_id)
