# shared/auth_middleware.py
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request
from pydantic import BaseModel

from shared.config import Settings
from shared.errors import AuthError
from shared.uuid_utils import generate_uuid7


class TokenData(BaseModel):
    user_id: str
    role: str
    jti: str


def extract_token(request: Request) -> Optional[str]:
    """Read the JWT from `Authorization: Bearer` or the `x-auth-token` header"""
    authorization = request.headers.get("authorization")
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    token = request.headers.get("x-auth-token")
    return token.strip() if token and token.strip() else None


def create_access_token(settings: Settings, user_id: str, role: str) -> tuple[str, TokenData, int]:
    """
    Create a signed access token.

    Returns:
        (encoded token, its claims, lifetime in seconds)
    """
    ttl_seconds = settings.access_token_expire_hours * 3600
    claims = TokenData(user_id=user_id, role=role, jti=generate_uuid7().hex)
    payload = {
        "sub": claims.user_id,
        "role": claims.role,
        "jti": claims.jti,
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds),
    }
    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return token, claims, ttl_seconds


def verify_token(token: str, settings: Settings) -> TokenData:
    """Verify and decode JWT token"""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token has expired")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token")

    user_id = payload.get("sub")
    jti = payload.get("jti")
    if not user_id or not jti:
        raise AuthError("Invalid token: missing claims")

    return TokenData(user_id=str(user_id), role=payload.get("role", ""), jti=str(jti))
