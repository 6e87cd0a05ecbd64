# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest fixtures. Each test gets its own SQLite database and upload directory."""

import pytest
from httpx import ASGITransport, AsyncClient

from flowplay_server.config import Settings
from flowplay_server.main import create_app


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'flowplay.db'}",
        jwt_secret="test-secret",
        storage_path=tmp_path / "uploads",
        bcrypt_rounds=10,
        rate_limit_enabled=False,
        log_level="WARNING",
    )


@pytest.fixture
async def app(settings):
    app = create_app(settings)
    await app.state.db.init_models()
    yield app
    await app.state.db.dispose()


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def register(client):
    """Register a user and return the {token, user} body."""

    async def _register(username: str, email: str | None = None, password: str = "secret1", **extra):
        r = await client.post(
            "/api/auth/register",
            json={"username": username, "email": email or f"{username}@example.com", "password": password, **extra},
        )
        assert r.status_code == 201, r.text
        return r.json()

    return _register


@pytest.fixture
def upload(client):
    """Create a track through the JSON upload endpoint and return it."""

    async def _upload(token: str, title: str = "Song", artist: str = "Artist", **fields):
        r = await client.post(
            "/api/tracks/upload",
            json={"title": title, "artist": artist, **fields},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert r.status_code == 201, r.text
        return r.json()["track"]

    return _upload
