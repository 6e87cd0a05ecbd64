# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Profile endpoint tests."""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.anyio


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def test_get_profile(client: AsyncClient, register, upload):
    alice = await register("alice", display_name="Alice A.")
    await upload(alice["token"], title="One")
    await upload(alice["token"], title="Two", isPublic=True)

    r = await client.get("/api/user/profile", headers=_auth(alice["token"]))
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["id"] == alice["user"]["id"]
    assert user["displayName"] == "Alice A."
    assert user["trackCount"] == 2
    assert "password" not in user
    assert "passwordHash" not in user


async def test_profile_track_count_ignores_other_users(client: AsyncClient, register, upload):
    alice = await register("alice")
    bob = await register("bob")
    await upload(bob["token"], isPublic=True)

    r = await client.get("/api/user/profile", headers=_auth(alice["token"]))
    assert r.json()["user"]["trackCount"] == 0


async def test_update_profile_merges_preferences(client: AsyncClient, register):
    alice = await register("alice")
    r = await client.put(
        "/api/user/profile",
        json={"displayName": "  Ally ", "preferences": {"volume": 0.5}},
        headers=_auth(alice["token"]),
    )
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["displayName"] == "Ally"
    assert user["preferences"] == {"theme": "dark", "volume": 0.5, "repeat": "none", "shuffle": False}

    r = await client.put(
        "/api/user/profile",
        json={"preferences": {"theme": "light", "shuffle": True}},
        headers=_auth(alice["token"]),
    )
    assert r.json()["user"]["preferences"] == {"theme": "light", "volume": 0.5, "repeat": "none", "shuffle": True}


async def test_update_profile_validation(client: AsyncClient, register):
    alice = await register("alice")
    for body in (
        {"preferences": {"volume": 2}},
        {"preferences": {"repeat": "forever"}},
        {"displayName": "   "},
        {"username": "mallory"},
    ):
        r = await client.put("/api/user/profile", json=body, headers=_auth(alice["token"]))
        assert r.status_code == 400, body


async def test_update_profile_requires_auth(client: AsyncClient):
    r = await client.put("/api/user/profile", json={"displayName": "x"})
    assert r.status_code == 401
