# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Audio tag extraction for uploads using Mutagen."""

import io
import logging
from typing import Any

from mutagen import File as MutagenFile

logger = logging.getLogger(__name__)


def extract_metadata(data: bytes, file_name: str | None = None) -> dict[str, Any]:
    """Read duration and basic tags from an uploaded file.

    Returns an empty dict when the payload is not an audio format Mutagen
    understands; uploads are still accepted in that case.
    """
    fileobj = io.BytesIO(data)
    if file_name:
        fileobj.name = file_name
    try:
        audio = MutagenFile(fileobj)
    except Exception as e:
        logger.debug("Could not parse audio metadata for %s: %s", file_name, e)
        return {}
    if audio is None:
        return {}

    info: dict[str, Any] = {
        "duration": float(getattr(audio.info, "length", 0) or 0),
    }
    tags = getattr(audio, "tags", None)
    if tags:
        info["title"] = _get_tag(tags, ["\xa9nam", "TIT2", "title", "TITLE"])
        info["artist"] = _get_tag(tags, ["\xa9ART", "TPE1", "artist", "ARTIST"]) or _get_tag(
            tags, ["aART", "TPE2", "albumartist", "ALBUMARTIST"]
        )
        info["album"] = _get_tag(tags, ["\xa9alb", "TALB", "album", "ALBUM"])
        info["genre"] = _get_tag(tags, ["\xa9gen", "TCON", "genre", "GENRE"])
    return {k: v for k, v in info.items() if v}


def _get_tag(tags: Any, keys: list[str]) -> str | None:
    """Get first available tag value from a list of possible keys."""
    for key in keys:
        try:
            val = tags.get(key)
            if val is not None:
                if hasattr(val, "text"):
                    val = val.text
                if isinstance(val, (list, tuple)):
                    val = val[0] if val else None
                if isinstance(val, bytes):
                    val = val.decode("utf-8", errors="replace")
                if val:
                    return str(val).strip()
        except (KeyError, IndexError, TypeError, ValueError):
            continue
    return None
