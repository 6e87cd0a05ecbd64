# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Streaming API - serves audio with HTTP range request support."""

import mimetypes
from pathlib import Path

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import RedirectResponse, StreamingResponse

from flowplay_server.api.dependencies import get_track_store
from flowplay_server.auth import get_optional_user_id_for_stream
from flowplay_server.services.tracks import TrackStore, parse_range

router = APIRouter(prefix="/tracks", tags=["streaming"])

EXT_MIME = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "flac": "audio/flac",
    "m4a": "audio/mp4",
    "aac": "audio/aac",
    "ogg": "audio/ogg",
    "oga": "audio/ogg",
    "opus": "audio/opus",
    "webm": "audio/webm",
}


def get_mime(file_name: str | None, stored: str | None = None) -> str:
    """MIME type for a track: the one recorded at upload, else guessed from the file name."""
    if stored:
        return stored
    path = Path(file_name or "")
    ext = path.suffix.lower().lstrip(".")
    return EXT_MIME.get(ext) or mimetypes.guess_type(path.name)[0] or "application/octet-stream"


@router.get("/{track_id}/stream")
async def stream_track(
    track_id: str,
    request: Request,
    user_id: str | None = Depends(get_optional_user_id_for_stream),
    tracks: TrackStore = Depends(get_track_store),
) -> Response:
    """
    Stream a track with HTTP Range request support for seeking.
    Clients send Range: bytes=start-end for partial content.
    Public tracks need no auth; private ones need the owner's token
    (Bearer header or ?token=). Counts a play when playback starts at byte 0.
    """
    audio = await tracks.stream(track_id, user_id)
    mime = get_mime(audio.track.file_name, audio.track.mime_type)
    if audio.redirect_url:
        await tracks.increment_play_count(track_id)
        return RedirectResponse(audio.redirect_url, status_code=307)

    range_header = request.headers.get("range")
    if not range_header:
        await tracks.increment_play_count(track_id)
        return StreamingResponse(
            audio.iter_bytes(0, audio.size - 1),
            media_type=mime,
            headers={
                "Accept-Ranges": "bytes",
                "Content-Length": str(audio.size),
            },
        )

    start, end = parse_range(range_header, audio.size)
    if start == 0:
        await tracks.increment_play_count(track_id)
    return StreamingResponse(
        audio.iter_bytes(start, end),
        status_code=206,
        media_type=mime,
        headers={
            "Accept-Ranges": "bytes",
            "Content-Range": f"bytes {start}-{end}/{audio.size}",
            "Content-Length": str(end - start + 1),
        },
    )
