# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Object storage for uploaded audio blobs."""

import logging
import os
from collections.abc import AsyncIterator
from pathlib import Path

import aiofiles
import aiofiles.os

from flowplay_server.errors import Internal, NotFound, ValidationError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 256 * 1024


class LocalObjectStorage:
    """Blob store rooted at a directory. Keys are relative paths such as ``<owner>/<id>.mp3``."""

    def __init__(self, root: Path):
        self.root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root) or path == self.root:
            raise ValidationError("Invalid storage key")
        return path

    async def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            logger.error("Could not write blob %s: %s", key, e)
            raise Internal("Could not store audio")
        logger.info("Stored blob %s (%d bytes)", key, len(data))

    async def size(self, key: str) -> int:
        try:
            stat = await aiofiles.os.stat(self._path(key))
        except FileNotFoundError:
            raise NotFound("Audio file not found")
        return stat.st_size

    async def iter_range(self, key: str, start: int, end: int) -> AsyncIterator[bytes]:
        """Yield bytes start..end (inclusive) in chunks."""
        async with aiofiles.open(self._path(key), "rb") as f:
            await f.seek(start)
            remaining = end - start + 1
            while remaining > 0:
                data = await f.read(min(CHUNK_SIZE, remaining))
                if not data:
                    break
                remaining -= len(data)
                yield data

    async def read(self, key: str, start: int, end: int) -> bytes:
        return b"".join([chunk async for chunk in self.iter_range(key, start, end)])

    async def delete(self, key: str) -> None:
        await aiofiles.os.remove(self._path(key))
        logger.info("Deleted blob %s", key)

    async def ping(self) -> bool:
        """True when the storage root exists (or can be created) and is writable."""
        try:
            await aiofiles.os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            logger.warning("Storage root %s unavailable: %s", self.root, e)
            return False
        return os.access(self.root, os.W_OK)
