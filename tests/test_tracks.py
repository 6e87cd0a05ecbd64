# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Track listing, upload and delete tests."""

import base64

import pytest
from httpx import AsyncClient

from flowplay_server.errors import NotFound
from flowplay_server.models import Track
from flowplay_server.services.tracks import TrackStore

pytestmark = pytest.mark.anyio


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _blobs(settings, pattern: str = "*.mp3") -> list:
    if not settings.storage_path.exists():
        return []
    return list(settings.storage_path.rglob(pattern))


async def test_public_listing_is_anonymous(client: AsyncClient, register, upload):
    alice = await register("alice", display_name="Alice")
    await upload(alice["token"], title="Test", isPublic=True)

    r = await client.get("/api/tracks/public")
    assert r.status_code == 200
    data = r.json()
    assert [t["title"] for t in data["tracks"]] == ["Test"]
    owner = data["tracks"][0]["uploadedBy"]
    assert owner["username"] == "alice"
    assert owner["displayName"] == "Alice"
    assert data["pagination"] == {"page": 1, "limit": 20, "pages": 1, "total": 1}


async def test_private_track_hidden_from_public(client: AsyncClient, register, upload):
    bob = await register("bob")
    await upload(bob["token"], title="Secret", isPublic=False)
    await upload(bob["token"], title="Shared", isPublic=True)

    r = await client.get("/api/tracks/public")
    assert [t["title"] for t in r.json()["tracks"]] == ["Shared"]

    r = await client.get("/api/tracks/my", headers=_auth(bob["token"]))
    assert r.status_code == 200
    assert [t["title"] for t in r.json()["tracks"]] == ["Shared", "Secret"]


async def test_my_tracks_only_own(client: AsyncClient, register, upload):
    alice = await register("alice")
    bob = await register("bob")
    await upload(alice["token"], title="Alice Song", isPublic=True)
    await upload(bob["token"], title="Bob Song", isPublic=True)

    r = await client.get("/api/tracks/my", headers=_auth(alice["token"]))
    assert [t["title"] for t in r.json()["tracks"]] == ["Alice Song"]


async def test_my_tracks_requires_auth(client: AsyncClient):
    r = await client.get("/api/tracks/my")
    assert r.status_code == 401


async def test_public_filters(client: AsyncClient, register, upload):
    alice = await register("alice")
    await upload(alice["token"], title="Rock Anthem", artist="Band", genre="Rock", isPublic=True)
    await upload(alice["token"], title="Quiet", artist="Rockwell", genre="Jazz", isPublic=True)
    await upload(alice["token"], title="Other", artist="Band", genre="rock", isPublic=True)

    r = await client.get("/api/tracks/public", params={"genre": "rock"})
    assert {t["title"] for t in r.json()["tracks"]} == {"Rock Anthem", "Other"}

    r = await client.get("/api/tracks/public", params={"search": "rock"})
    assert {t["title"] for t in r.json()["tracks"]} == {"Rock Anthem", "Quiet"}

    r = await client.get("/api/tracks/public", params={"genre": "rock", "search": "anthem"})
    assert [t["title"] for t in r.json()["tracks"]] == ["Rock Anthem"]

    r = await client.get("/api/tracks/public", params={"search": "100%"})
    assert r.json()["tracks"] == []


async def test_pagination_past_end(client: AsyncClient, register, upload):
    alice = await register("alice")
    for i in range(5):
        await upload(alice["token"], title=f"Song {i}", isPublic=True)

    r = await client.get("/api/tracks/public", params={"page": 2, "limit": 10})
    data = r.json()
    assert data["tracks"] == []
    assert data["pagination"] == {"page": 2, "limit": 10, "pages": 1, "total": 5}

    r = await client.get("/api/tracks/public", params={"page": 2, "limit": 2})
    data = r.json()
    assert [t["title"] for t in data["tracks"]] == ["Song 2", "Song 1"]
    assert data["pagination"]["pages"] == 3


async def test_huge_page_number_is_empty(client: AsyncClient, register, upload):
    alice = await register("alice")
    await upload(alice["token"], isPublic=True)

    r = await client.get("/api/tracks/public", params={"page": 10**17, "limit": 100})
    assert r.status_code == 200
    assert r.json()["tracks"] == []
    assert r.json()["pagination"]["total"] == 1

    r = await client.get("/api/tracks/my", params={"page": 10**17}, headers=_auth(alice["token"]))
    assert r.status_code == 200
    assert r.json()["tracks"] == []


@pytest.mark.parametrize("params", [{"limit": 101}, {"limit": 0}, {"page": 0}])
async def test_pagination_bounds(client: AsyncClient, params):
    r = await client.get("/api/tracks/public", params=params)
    assert r.status_code == 400


async def test_get_track(client: AsyncClient, register, upload):
    alice = await register("alice")
    bob = await register("bob")
    public = await upload(alice["token"], title="Open", isPublic=True)
    private = await upload(alice["token"], title="Closed")

    r = await client.get(f"/api/tracks/{public['id']}")
    assert r.status_code == 200
    assert r.json()["track"]["uploadedBy"]["username"] == "alice"

    r = await client.get(f"/api/tracks/{private['id']}", headers=_auth(bob["token"]))
    assert r.status_code == 404
    r = await client.get(f"/api/tracks/{private['id']}", headers=_auth(alice["token"]))
    assert r.status_code == 200

    r = await client.get("/api/tracks/does-not-exist")
    assert r.status_code == 404


async def test_upload_json_metadata(client: AsyncClient, register):
    alice = await register("alice")
    r = await client.post(
        "/api/tracks/upload",
        json={"title": "  Song  ", "artist": "Artist", "genre": "Pop", "duration": 180},
        headers=_auth(alice["token"]),
    )
    assert r.status_code == 201
    track = r.json()["track"]
    assert track["title"] == "Song"
    assert track["ownerId"] == alice["user"]["id"]
    assert track["isPublic"] is False
    assert track["playCount"] == 0
    assert track["storageType"] is None


async def test_upload_requires_auth(client: AsyncClient):
    r = await client.post("/api/tracks/upload", json={"title": "Song", "artist": "Artist"})
    assert r.status_code == 401


@pytest.mark.parametrize(
    "body",
    [
        {"artist": "Artist"},
        {"title": "", "artist": "Artist"},
        {"title": "Song", "artist": "Artist", "sourceUrl": "ftp://example.com/a.mp3"},
        {"title": "Song", "artist": "Artist", "audioData": "!!!", "mimeType": "audio/mpeg"},
        {"title": "Song", "artist": "Artist", "ownerId": "someone-else"},
    ],
)
async def test_upload_json_validation(client: AsyncClient, register, body):
    alice = await register("alice")
    r = await client.post("/api/tracks/upload", json=body, headers=_auth(alice["token"]))
    assert r.status_code == 400


async def test_upload_inline_base64(client: AsyncClient, register, settings):
    alice = await register("alice")
    audio = b"\x00\x01" * 500
    r = await client.post(
        "/api/tracks/upload",
        json={
            "title": "Encoded",
            "artist": "Artist",
            "fileName": "encoded.mp3",
            "audioData": "data:audio/mpeg;base64," + base64.b64encode(audio).decode(),
        },
        headers=_auth(alice["token"]),
    )
    assert r.status_code == 201
    track = r.json()["track"]
    assert track["mimeType"] == "audio/mpeg"
    assert track["fileSize"] == 1000
    assert track["storageType"] == "object"
    assert "audioData" not in track
    assert len(_blobs(settings)) == 1


async def test_upload_source_url(client: AsyncClient, register):
    alice = await register("alice")
    r = await client.post(
        "/api/tracks/upload",
        json={"title": "Linked", "artist": "Artist", "sourceUrl": "https://cdn.example.com/a.mp3"},
        headers=_auth(alice["token"]),
    )
    track = r.json()["track"]
    assert track["storageType"] == "external"
    assert track["sourceType"] == "url"
    assert track["sourceUrl"] == "https://cdn.example.com/a.mp3"


async def test_upload_multipart(client: AsyncClient, register, settings):
    alice = await register("alice")
    r = await client.post(
        "/api/tracks/upload",
        files={"file": ("my song.mp3", b"\xff" * 2048, "audio/mpeg")},
        data={"genre": "Pop", "isPublic": "true"},
        headers=_auth(alice["token"]),
    )
    assert r.status_code == 201, r.text
    track = r.json()["track"]
    assert track["title"] == "my song"
    assert track["artist"] == "Unknown Artist"
    assert track["genre"] == "Pop"
    assert track["isPublic"] is True
    assert track["fileName"] == "my song.mp3"
    assert track["fileSize"] == 2048
    assert track["storageType"] == "object"
    blobs = _blobs(settings)
    assert len(blobs) == 1
    assert blobs[0].parent.name == alice["user"]["id"]


async def test_upload_multipart_inline_mode(app, client: AsyncClient, register, settings):
    app.state.settings = settings.model_copy(update={"upload_storage": "inline"})
    alice = await register("alice")
    r = await client.post(
        "/api/tracks/upload",
        files={"audio": ("a.wav", b"RIFF" + b"\x00" * 96, "audio/wav")},
        data={"title": "Inline", "artist": "Me"},
        headers=_auth(alice["token"]),
    )
    assert r.status_code == 201
    assert r.json()["track"]["storageType"] == "inline"
    assert _blobs(settings, "*.wav") == []


async def test_upload_rejects_non_audio(client: AsyncClient, register):
    alice = await register("alice")
    r = await client.post(
        "/api/tracks/upload",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=_auth(alice["token"]),
    )
    assert r.status_code == 400
    assert "audio" in r.json()["detail"]


async def test_upload_missing_file(client: AsyncClient, register):
    alice = await register("alice")
    r = await client.post(
        "/api/tracks/upload",
        files={"cover": ("c.mp3", b"\xff", "audio/mpeg")},
        headers=_auth(alice["token"]),
    )
    assert r.status_code == 400


async def test_upload_too_large(app, client: AsyncClient, register, settings):
    app.state.settings = settings.model_copy(update={"max_upload_bytes": 1000})
    alice = await register("alice")
    r = await client.post(
        "/api/tracks/upload",
        files={"file": ("big.mp3", b"\xff" * 2000, "audio/mpeg")},
        headers=_auth(alice["token"]),
    )
    assert r.status_code == 413
    assert _blobs(settings) == []


async def test_delete_requires_owner(client: AsyncClient, register, upload):
    alice = await register("alice")
    bob = await register("bob")
    track = await upload(alice["token"], isPublic=True)

    r = await client.delete(f"/api/tracks/{track['id']}", headers=_auth(bob["token"]))
    assert r.status_code == 403
    r = await client.get(f"/api/tracks/{track['id']}")
    assert r.status_code == 200

    r = await client.delete(f"/api/tracks/{track['id']}", headers=_auth(alice["token"]))
    assert r.status_code == 200
    assert r.json() == {"deletedId": track["id"], "message": "Track deleted successfully"}
    r = await client.get(f"/api/tracks/{track['id']}")
    assert r.status_code == 404

    r = await client.delete(f"/api/tracks/{track['id']}", headers=_auth(alice["token"]))
    assert r.status_code == 404


async def test_delete_removes_blob(client: AsyncClient, register, settings):
    alice = await register("alice")
    r = await client.post(
        "/api/tracks/upload",
        files={"file": ("a.mp3", b"\xff" * 100, "audio/mpeg")},
        headers=_auth(alice["token"]),
    )
    track_id = r.json()["track"]["id"]
    assert len(_blobs(settings)) == 1

    r = await client.delete(f"/api/tracks/{track_id}", headers=_auth(alice["token"]))
    assert r.status_code == 200
    assert _blobs(settings) == []


async def test_delete_survives_blob_failure(app, client: AsyncClient, register, monkeypatch):
    """A failing blob delete is logged; the track is still removed."""
    alice = await register("alice")
    r = await client.post(
        "/api/tracks/upload",
        files={"file": ("a.mp3", b"\xff" * 100, "audio/mpeg")},
        headers=_auth(alice["token"]),
    )
    track_id = r.json()["track"]["id"]

    async def broken_delete(key):
        raise OSError("disk on fire")

    monkeypatch.setattr(app.state.storage, "delete", broken_delete)
    r = await client.delete(f"/api/tracks/{track_id}", headers=_auth(alice["token"]))
    assert r.status_code == 200
    r = await client.get(f"/api/tracks/{track_id}", headers=_auth(alice["token"]))
    assert r.status_code == 404


async def test_legacy_null_visibility_is_private(app, register):
    """Rows written before isPublic existed are treated as private."""
    alice = await register("alice")
    owner_id = alice["user"]["id"]
    async with app.state.db.session() as session:
        session.add(Track(id="legacy", owner_id=owner_id, title="Old", artist="A", is_public=None))
        await session.commit()

        store = TrackStore(session, app.state.storage)
        page = await store.list_public()
        assert page.total == 0
        with pytest.raises(NotFound):
            await store.get_visible("legacy", None)
        track, owner = await store.get_visible("legacy", owner_id)
        assert track.title == "Old"
        assert owner.username == "alice"
        mine = await store.list_owned(owner_id)
        assert [t.id for t, _ in mine.rows] == ["legacy"]
