# services/collect/routes/auth.py
import logging

import redis.asyncio as redis
from fastapi import APIRouter, Depends

from services.collect.auth import (
    CurrentUser,
    SessionStore,
    get_current_user,
    get_settings,
    verify_password,
)
from services.collect.models import LoginRequest
from shared.config import Settings
from shared.database import Database, get_db
from shared.errors import AuthError
from shared.redis_client import get_redis

logger = logging.getLogger(__name__)

auth_router = APIRouter()

LOGIN_COLUMNS = "id, username, email, role, is_active, password_hash"


@auth_router.post("/login")
async def login(
    credentials: LoginRequest,
    settings: Settings = Depends(get_settings),
    db: Database = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    """Exchange username (or email) and password for a bearer token"""
    identifier = credentials.identifier
    # An exact username wins over another account whose email is the same string
    user = await db.fetch_one(f"SELECT {LOGIN_COLUMNS} FROM users WHERE username = $1", identifier)
    if not user:
        user = await db.fetch_one(f"SELECT {LOGIN_COLUMNS} FROM users WHERE email = $1", identifier)

    if not user or not user["is_active"] or not verify_password(
        credentials.password, user["password_hash"]
    ):
        logger.info(f"Failed login for {identifier}")
        raise AuthError("Invalid credentials")

    token = await SessionStore(redis_client).open(settings, str(user["id"]), user["role"])
    logger.info(f"User {user['username']} logged in")

    return {
        "success": True,
        "token": token,
        "user": {
            "id": str(user["id"]),
            "username": user["username"],
            "email": user["email"],
            "role": user["role"],
        },
    }


@auth_router.get("/me")
async def me(current_user: CurrentUser = Depends(get_current_user)):
    return {"success": True, "user": current_user.public()}


@auth_router.post("/logout")
async def logout(
    current_user: CurrentUser = Depends(get_current_user),
    redis_client: redis.Redis = Depends(get_redis),
):
    await SessionStore(redis_client).close(current_user.jti)
    logger.info(f"User {current_user.username} logged out")
    return {"success": True, "message": "Logged out"}
