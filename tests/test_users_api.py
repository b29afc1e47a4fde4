"""Profile API tests — cache-aside reads and invalidating writes."""

import pytest

from conftest import auth_headers
from tnkr.cache import ONE_HOUR_TTL
from tnkr.cache import client as cache_client


@pytest.mark.asyncio
async def test_profile_cold_read_populates_cache(client, customer, fake_redis):
    r = await client.get("/api/v1/users/profile", headers=auth_headers(customer))

    assert r.status_code == 200
    assert r.json()["email"] == customer.email
    assert r.json()["firstName"] == customer.first_name
    key = f"profile:{customer.id}"
    assert key in fake_redis.store
    assert ("set", key, ONE_HOUR_TTL) in fake_redis.ops


@pytest.mark.asyncio
async def test_profile_served_from_cache(client, customer, fake_redis):
    headers = auth_headers(customer)
    await client.get("/api/v1/users/profile", headers=headers)
    sets_before = [op for op in fake_redis.ops if op[0] == "set" and op[1].startswith("profile:")]

    r = await client.get("/api/v1/users/profile", headers=headers)

    sets_after = [op for op in fake_redis.ops if op[0] == "set" and op[1].startswith("profile:")]
    assert r.status_code == 200
    assert len(sets_after) == len(sets_before)


@pytest.mark.asyncio
async def test_update_invalidates_profile(client, customer, fake_redis):
    headers = auth_headers(customer)
    await client.get("/api/v1/users/profile", headers=headers)

    r = await client.patch(
        "/api/v1/users/profile", json={"firstName": "Grace", "phone": "555-0199"}, headers=headers
    )
    assert r.status_code == 200
    assert r.json()["firstName"] == "Grace"
    assert f"profile:{customer.id}" not in fake_redis.store

    fresh = await client.get("/api/v1/users/profile", headers=headers)
    assert fresh.json()["firstName"] == "Grace"
    assert fresh.json()["phone"] == "555-0199"
    assert fresh.json()["lastName"] == customer.last_name


@pytest.mark.asyncio
async def test_update_rejects_blank_name(client, customer):
    r = await client.patch(
        "/api/v1/users/profile", json={"firstName": ""}, headers=auth_headers(customer)
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_picture_upload_invalidates(client, customer, storage, fake_redis):
    headers = auth_headers(customer)
    await client.get("/api/v1/users/profile", headers=headers)

    r = await client.put(
        "/api/v1/users/profile/picture",
        files={"picture": ("avatar.jpg", b"jpeg-bytes", "image/jpeg")},
        headers=headers,
    )

    assert r.status_code == 200
    assert r.json()["profilePictureUrl"].endswith(f"profile-pictures/{customer.id}.jpg")
    assert storage.objects[f"profile-pictures/{customer.id}.jpg"] == b"jpeg-bytes"
    fresh = await client.get("/api/v1/users/profile", headers=headers)
    assert fresh.json()["profilePictureUrl"] == r.json()["profilePictureUrl"]


@pytest.mark.asyncio
async def test_profile_requires_auth(client):
    r = await client.get("/api/v1/users/profile")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_profile_works_without_redis(client, customer, monkeypatch):
    monkeypatch.setattr(cache_client, "_redis", None)
    r = await client.get("/api/v1/users/profile", headers=auth_headers(customer))
    assert r.status_code == 200
