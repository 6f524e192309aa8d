"""
User endpoint tests: create, read, update (with and without a password
change), delete, and credential verification.
"""
import pytest
from httpx import AsyncClient


def _user_payload(**overrides) -> dict:
    data = {
        "name": "Linus",
        "email": "linus@example.com",
        "role": "author",
        "password": "kernel-hacker",
        "password_confirmation": "kernel-hacker",
    }
    data.update(overrides)
    return data


async def _create_user(client: AsyncClient, **overrides) -> dict:
    resp = await client.post("/api/v1/users", json=_user_payload(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()["user"]


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_user(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/users", json=_user_payload())
    assert resp.status_code == 201
    data = resp.json()
    assert data["ok"] is True
    assert data["message"] == "User created successfully"
    assert data["user"]["email"] == "linus@example.com"
    assert data["user"]["role"] == "author"
    assert "password" not in data["user"]
    assert "password_hash" not in data["user"]


@pytest.mark.asyncio
async def test_create_user_password_mismatch(async_client: AsyncClient):
    resp = await async_client.post(
        "/api/v1/users", json=_user_payload(password_confirmation="kernel-hackers")
    )
    assert resp.status_code == 422
    assert resp.json() == {
        "ok": False,
        "user": None,
        "message": "Invalid input",
        "errors": {"password_confirmation": ["Passwords do not match"]},
    }

    listed = await async_client.get("/api/v1/users")
    assert listed.json()["users"] == []


@pytest.mark.asyncio
async def test_create_user_invalid_email(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/users", json=_user_payload(email="nope"))
    assert resp.status_code == 422
    assert "email" in resp.json()["errors"]


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_user(async_client: AsyncClient):
    user = await _create_user(async_client)
    resp = await async_client.get(f"/api/v1/users/{user['id']}")
    assert resp.status_code == 200
    assert resp.json()["user"]["name"] == "Linus"


@pytest.mark.asyncio
async def test_get_user_not_found(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/users/99999")
    assert resp.status_code == 404
    assert resp.json() == {"ok": False, "user": None, "message": "User not found with id: 99999"}


@pytest.mark.asyncio
async def test_get_user_by_email(async_client: AsyncClient):
    user = await _create_user(async_client)
    resp = await async_client.get("/api/v1/users/by-email/linus@example.com")
    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == user["id"]


@pytest.mark.asyncio
async def test_list_users(async_client: AsyncClient):
    await _create_user(async_client, email="a@example.com")
    await _create_user(async_client, email="b@example.com")
    resp = await async_client.get("/api/v1/users")
    assert resp.status_code == 200
    assert {u["email"] for u in resp.json()["users"]} == {"a@example.com", "b@example.com"}


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_user_without_password_change(async_client: AsyncClient):
    user = await _create_user(async_client)
    resp = await async_client.put(
        f"/api/v1/users/{user['id']}",
        json=_user_payload(name="Linus T.", password="", password_confirmation=""),
    )
    assert resp.status_code == 200
    assert resp.json()["user"]["name"] == "Linus T."

    still_valid = await async_client.post("/api/v1/users/verify-credentials", json={
        "email": "linus@example.com", "password": "kernel-hacker",
    })
    assert still_valid.status_code == 200


@pytest.mark.asyncio
async def test_update_user_changes_password(async_client: AsyncClient):
    user = await _create_user(async_client)
    resp = await async_client.put(
        f"/api/v1/users/{user['id']}",
        json=_user_payload(password="new-secret-1", password_confirmation="new-secret-1"),
    )
    assert resp.status_code == 200

    old = await async_client.post("/api/v1/users/verify-credentials", json={
        "email": "linus@example.com", "password": "kernel-hacker",
    })
    assert old.status_code == 422
    new = await async_client.post("/api/v1/users/verify-credentials", json={
        "email": "linus@example.com", "password": "new-secret-1",
    })
    assert new.status_code == 200


@pytest.mark.asyncio
async def test_update_user_half_password_pair(async_client: AsyncClient):
    user = await _create_user(async_client)
    resp = await async_client.put(
        f"/api/v1/users/{user['id']}",
        json=_user_payload(password="new-secret-1", password_confirmation=""),
    )
    assert resp.status_code == 422
    assert resp.json()["errors"] == {"password_confirmation": ["Please confirm the new password"]}


@pytest.mark.asyncio
async def test_update_user_not_found(async_client: AsyncClient):
    resp = await async_client.put("/api/v1/users/99999", json=_user_payload())
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Delete / credentials
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_user(async_client: AsyncClient):
    user = await _create_user(async_client)
    resp = await async_client.delete(f"/api/v1/users/{user['id']}")
    assert resp.status_code == 200
    assert resp.json()["message"] == "User deleted successfully"

    gone = await async_client.get(f"/api/v1/users/{user['id']}")
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_delete_user_not_found(async_client: AsyncClient):
    resp = await async_client.delete("/api/v1/users/99999")
    assert resp.status_code == 404
    assert resp.json()["message"] == "User not found with id: 99999"


@pytest.mark.asyncio
async def test_verify_credentials_unknown_email(async_client: AsyncClient):
    resp = await async_client.post("/api/v1/users/verify-credentials", json={
        "email": "ghost@example.com", "password": "whatever-1",
    })
    assert resp.status_code == 422
    assert resp.json()["message"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_verify_credentials_overlong_password(async_client: AsyncClient):
    await _create_user(async_client)
    resp = await async_client.post("/api/v1/users/verify-credentials", json={
        "email": "linus@example.com", "password": "x" * 100,
    })
    assert resp.status_code == 422
    assert resp.json()["message"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_create_user_multibyte_password_too_long(async_client: AsyncClient):
    long_password = "é" * 40
    resp = await async_client.post("/api/v1/users", json=_user_payload(
        password=long_password, password_confirmation=long_password,
    ))
    assert resp.status_code == 422
    assert "password" in resp.json()["errors"]


@pytest.mark.asyncio
async def test_get_user_by_email_domain_case(async_client: AsyncClient):
    user = await _create_user(async_client)
    resp = await async_client.get("/api/v1/users/by-email/linus@EXAMPLE.com")
    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == user["id"]
