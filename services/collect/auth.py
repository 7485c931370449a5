# services/collect/auth.py
import logging
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, Request
from passlib.context import CryptContext
from pydantic import BaseModel

from shared.auth_middleware import TokenData, create_access_token, extract_token, verify_token
from shared.config import Settings
from shared.database import Database, get_db
from shared.errors import AuthError, ForbiddenError
from shared.redis_client import RedisCache, get_redis

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class CurrentUser(BaseModel):
    id: str
    username: str
    email: str
    role: str
    jti: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def public(self) -> dict:
        return {"id": self.id, "username": self.username, "email": self.email, "role": self.role}


class SessionStore:
    """
    Issued tokens registered in Redis by jti.

    A token is only honoured while its session key exists, so logout (or an
    operator deleting session:* keys) revokes it before `exp`.
    """

    def __init__(self, redis_client: redis.Redis):
        self.cache = RedisCache(redis_client, prefix="session")

    async def open(self, settings: Settings, user_id: str, role: str) -> str:
        token, claims, ttl_seconds = create_access_token(settings, user_id, role)
        await self.cache.set(claims.jti, claims.user_id, ttl=ttl_seconds)
        return token

    async def is_open(self, claims: TokenData) -> bool:
        return await self.cache.get(claims.jti) == claims.user_id

    async def close(self, jti: str) -> None:
        await self.cache.delete(jti)


def get_settings(request: Request) -> Settings:
    """Dependency to get the Settings loaded during startup"""
    return request.app.state.settings


async def authenticate_token(
    token: str, settings: Settings, db: Database, redis_client: redis.Redis
) -> CurrentUser:
    claims = verify_token(token, settings)

    if not await SessionStore(redis_client).is_open(claims):
        raise AuthError("Session expired or revoked")

    user = await db.fetch_one(
        "SELECT id, username, email, role, is_active FROM users WHERE id = $1",
        claims.user_id,
    )
    if not user or not user["is_active"]:
        logger.info(f"Rejected token for missing or inactive user {claims.user_id}")
        raise AuthError("Invalid or inactive user")

    return CurrentUser(
        id=str(user["id"]),
        username=user["username"],
        email=user["email"],
        role=user["role"],
        jti=claims.jti,
    )


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings),
    db: Database = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
) -> CurrentUser:
    token = extract_token(request)
    if not token:
        raise AuthError("No token provided")
    return await authenticate_token(token, settings, db, redis_client)


async def get_optional_user(
    request: Request,
    settings: Settings = Depends(get_settings),
    db: Database = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
) -> Optional[CurrentUser]:
    """Like get_current_user, but anonymous callers get None; a bad token is still a 401"""
    token = extract_token(request)
    if not token:
        return None
    return await authenticate_token(token, settings, db, redis_client)


async def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user
