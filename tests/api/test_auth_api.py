import uuid

import pytest

from services.collect.auth import hash_password
from shared.auth_middleware import create_access_token


def user_row(**overrides):
    row = {
        "id": uuid.uuid4(),
        "username": "ops",
        "email": "ops@example.com",
        "role": "admin",
        "is_active": True,
        "password_hash": hash_password("secret123"),
    }
    row.update(overrides)
    return row


@pytest.mark.api
@pytest.mark.asyncio
async def test_health_needs_no_auth(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.api
@pytest.mark.asyncio
async def test_missing_token_is_401(client):
    response = await client.get("/apps")

    assert response.status_code == 401
    assert response.json() == {"error": "No token provided"}


@pytest.mark.api
@pytest.mark.asyncio
async def test_garbage_token_is_401(client):
    response = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"


@pytest.mark.api
@pytest.mark.asyncio
async def test_token_without_live_session_is_401(client, settings):
    token, _, _ = create_access_token(settings, str(uuid.uuid4()), "admin")

    response = await client.get("/auth/me", headers={"x-auth-token": token})

    assert response.status_code == 401
    assert response.json()["error"] == "Session expired or revoked"


@pytest.mark.api
@pytest.mark.asyncio
async def test_login_me_logout(client, fake_db):
    row = user_row()
    fake_db.on("FROM users", row)

    login = await client.post("/auth/login", json={"username": "ops", "password": "secret123"})

    assert login.status_code == 200
    body = login.json()
    assert body["success"] is True
    assert body["user"] == {
        "id": str(row["id"]),
        "username": "ops",
        "email": "ops@example.com",
        "role": "admin",
    }
    headers = {"Authorization": f"Bearer {body['token']}"}

    me = await client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["user"]["username"] == "ops"

    logout = await client.post("/auth/logout", headers=headers)
    assert logout.status_code == 200

    after = await client.get("/auth/me", headers=headers)
    assert after.status_code == 401


@pytest.mark.api
@pytest.mark.asyncio
async def test_login_accepts_email(client, fake_db):
    fake_db.on("WHERE email = $1", user_row())

    response = await client.post(
        "/auth/login", json={"email": "ops@example.com", "password": "secret123"}
    )

    assert response.status_code == 200
    lookups = [args for query, args in fake_db.queries("FROM users")]
    assert lookups == [("ops@example.com",), ("ops@example.com",)]


@pytest.mark.api
@pytest.mark.asyncio
async def test_username_match_wins_over_email_match(client, fake_db):
    by_username = user_row(username="ops@example.com", email="first@example.com")
    fake_db.on("WHERE username = $1", by_username)
    fake_db.on("WHERE email = $1", user_row(username="ops"))

    response = await client.post(
        "/auth/login", json={"username": "ops@example.com", "password": "secret123"}
    )

    assert response.status_code == 200
    assert response.json()["user"]["id"] == str(by_username["id"])
    assert fake_db.queries("WHERE email = $1") == []


@pytest.mark.api
@pytest.mark.asyncio
async def test_wrong_password_is_401(client, fake_db):
    fake_db.on("FROM users", user_row())

    response = await client.post("/auth/login", json={"username": "ops", "password": "nope"})

    assert response.status_code == 401
    assert response.json() == {"error": "Invalid credentials"}


@pytest.mark.api
@pytest.mark.asyncio
async def test_inactive_user_cannot_log_in(client, fake_db):
    fake_db.on("FROM users", user_row(is_active=False))

    response = await client.post("/auth/login", json={"username": "ops", "password": "secret123"})

    assert response.status_code == 401


@pytest.mark.api
@pytest.mark.asyncio
async def test_deactivated_user_loses_an_open_session(client, fake_db, fake_redis, settings):
    from services.collect.auth import SessionStore

    row = user_row(is_active=False)
    fake_db.on("FROM users", row)
    token = await SessionStore(fake_redis).open(settings, str(row["id"]), "admin")

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid or inactive user"


@pytest.mark.api
@pytest.mark.asyncio
async def test_login_without_password_lists_the_field(client):
    response = await client.post("/auth/login", json={"username": "ops"})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing or invalid fields", "fields": ["password"]}
