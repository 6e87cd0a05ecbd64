# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""LocalObjectStorage tests."""

import pytest

from flowplay_server.errors import NotFound, ValidationError
from flowplay_server.services.storage import CHUNK_SIZE, LocalObjectStorage

pytestmark = pytest.mark.anyio


async def test_put_read_delete(tmp_path):
    storage = LocalObjectStorage(tmp_path)
    await storage.put("owner/abc.mp3", b"0123456789")

    assert await storage.size("owner/abc.mp3") == 10
    assert await storage.read("owner/abc.mp3", 2, 5) == b"2345"
    assert await storage.read("owner/abc.mp3", 8, 100) == b"89"

    await storage.delete("owner/abc.mp3")
    with pytest.raises(NotFound):
        await storage.size("owner/abc.mp3")


async def test_iter_range_chunks(tmp_path):
    storage = LocalObjectStorage(tmp_path)
    data = b"x" * (CHUNK_SIZE + 10)
    await storage.put("big.bin", data)

    chunks = [c async for c in storage.iter_range("big.bin", 0, len(data) - 1)]
    assert [len(c) for c in chunks] == [CHUNK_SIZE, 10]


@pytest.mark.parametrize("key", ["../escape.mp3", "a/../../escape.mp3", "", "."])
async def test_rejects_keys_outside_root(tmp_path, key):
    storage = LocalObjectStorage(tmp_path / "blobs")
    with pytest.raises(ValidationError):
        await storage.put(key, b"data")


async def test_ping(tmp_path):
    assert await LocalObjectStorage(tmp_path / "new").ping()
    assert (tmp_path / "new").is_dir()
