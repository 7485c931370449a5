from datetime import datetime, timedelta, timezone

import jwt
import pytest
from starlette.requests import Request

from services.collect.auth import SessionStore, hash_password, verify_password
from shared.auth_middleware import create_access_token, extract_token, verify_token
from shared.errors import AuthError


def request_with(headers: dict) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return Request({"type": "http", "headers": raw})


def test_issued_token_verifies(settings):
    token, claims, ttl = create_access_token(settings, "user-1", "admin")

    decoded = verify_token(token, settings)

    assert decoded == claims
    assert ttl == settings.access_token_expire_hours * 3600


def test_expired_token_is_rejected(settings):
    token = jwt.encode(
        {"sub": "user-1", "jti": "abc", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.jwt_secret_key,
        algorithm="HS256",
    )

    with pytest.raises(AuthError, match="Token has expired"):
        verify_token(token, settings)


def test_token_signed_elsewhere_is_rejected(settings):
    token = jwt.encode({"sub": "user-1", "jti": "abc"}, "some-other-key", algorithm="HS256")

    with pytest.raises(AuthError, match="Invalid token"):
        verify_token(token, settings)


def test_token_without_jti_is_rejected(settings):
    token = jwt.encode({"sub": "user-1"}, settings.jwt_secret_key, algorithm="HS256")

    with pytest.raises(AuthError, match="missing claims"):
        verify_token(token, settings)


def test_token_is_read_from_either_header():
    assert extract_token(request_with({"Authorization": "Bearer abc.def"})) == "abc.def"
    assert extract_token(request_with({"x-auth-token": "abc.def"})) == "abc.def"
    assert extract_token(request_with({"Authorization": "Basic xyz"})) is None
    assert extract_token(request_with({})) is None


def test_password_hash_round_trip():
    hashed = hash_password("correct horse")

    assert verify_password("correct horse", hashed)
    assert not verify_password("battery staple", hashed)


@pytest.mark.asyncio
async def test_session_is_open_until_closed(settings, fake_redis):
    store = SessionStore(fake_redis)

    token = await store.open(settings, "user-1", "admin")
    claims = verify_token(token, settings)

    assert await store.is_open(claims)
    assert f"session:{claims.jti}" in fake_redis.store

    await store.close(claims.jti)
    assert not await store.is_open(claims)
