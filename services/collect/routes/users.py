# services/collect/routes/users.py
import logging
from typing import Optional
from uuid import UUID

import asyncpg
from fastapi import APIRouter, Depends, status

from services.collect.access import granted_app_ids
from services.collect.auth import CurrentUser, hash_password, require_admin
from services.collect.models import AssignApps, UserCreate, UserRole, UserUpdate
from services.collect.routes.common import listing
from shared.database import Database, get_db
from shared.errors import ConflictError, NotFoundError, ValidationError
from shared.json_utils import serialize_record, serialize_records
from shared.uuid_utils import generate_uuid7, is_valid_uuid

logger = logging.getLogger(__name__)

# Every user-management endpoint is admin only
users_router = APIRouter(dependencies=[Depends(require_admin)])

USER_COLUMNS = "id, username, email, role, is_active, created_at, updated_at"


async def replace_app_access(conn: asyncpg.Connection, user_id: str, app_ids: list[str]) -> None:
    """Replace a user's grants; ids of apps that do not exist are ignored"""
    await conn.execute("DELETE FROM user_app_access WHERE user_id = $1", user_id)
    if app_ids:
        await conn.execute(
            """
            INSERT INTO user_app_access (user_id, app_id)
            SELECT $1, app_id FROM apps WHERE app_id = ANY($2::text[])
            ON CONFLICT DO NOTHING
            """,
            user_id,
            app_ids,
        )


def canonical_user_id(user_id: str) -> str:
    """Lower-case hyphenated form, so any spelling of an id compares equal"""
    if not is_valid_uuid(user_id):
        raise NotFoundError("User not found")
    return str(UUID(user_id))


async def load_user(db: Database, user_id: str) -> dict:
    user = await db.fetch_one(
        f"SELECT {USER_COLUMNS} FROM users WHERE id = $1", canonical_user_id(user_id)
    )
    if not user:
        raise NotFoundError("User not found")
    return user


@users_router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    admin_user: CurrentUser = Depends(require_admin),
    db: Database = Depends(get_db),
):
    user_id = str(generate_uuid7())
    try:
        async with db.transaction() as conn:
            user = await conn.fetchrow(
                f"""
                INSERT INTO users (id, username, email, password_hash, role)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING {USER_COLUMNS}
                """,
                user_id,
                user_data.username,
                user_data.email,
                hash_password(user_data.password),
                user_data.role.value,
            )
            if user_data.role == UserRole.CHILD_ADMIN:
                await replace_app_access(conn, user_id, user_data.app_ids)
    except asyncpg.UniqueViolationError:
        raise ConflictError("Username or email already exists")

    logger.info(f"User {user_data.username} ({user_data.role.value}) created by {admin_user.username}")
    return {"success": True, "data": serialize_record(dict(user))}


@users_router.get("")
async def list_users(db: Database = Depends(get_db)):
    users = await db.fetch_all(f"SELECT {USER_COLUMNS} FROM users ORDER BY created_at DESC")
    return listing(serialize_records(users))


@users_router.get("/{user_id}")
async def get_user(user_id: str, db: Database = Depends(get_db)):
    user = await load_user(db, user_id)
    app_access = []
    if user["role"] == UserRole.CHILD_ADMIN.value:
        app_access = await granted_app_ids(db, user_id)
    return {"data": {**serialize_record(user), "appAccess": app_access}}


@users_router.put("/{user_id}")
async def update_user(
    user_id: str,
    user_data: UserUpdate,
    admin_user: CurrentUser = Depends(require_admin),
    db: Database = Depends(get_db),
):
    user_id = canonical_user_id(user_id)
    user = await load_user(db, user_id)

    if user_id == admin_user.id:
        if user_data.role == UserRole.CHILD_ADMIN:
            raise ValidationError("Cannot remove your own admin privileges", fields=["role"])
        if user_data.is_active is False:
            raise ValidationError("Cannot deactivate your own account", fields=["isActive"])

    updates = []
    params = []
    param_count = 1

    for column, value in (
        ("username", user_data.username),
        ("email", user_data.email),
        ("role", user_data.role.value if user_data.role else None),
        ("is_active", user_data.is_active),
        ("password_hash", hash_password(user_data.password) if user_data.password else None),
    ):
        if value is not None:
            updates.append(f"{column} = ${param_count}")
            params.append(value)
            param_count += 1

    role: Optional[str] = user_data.role.value if user_data.role else user["role"]

    try:
        async with db.transaction() as conn:
            if updates:
                updates.append("updated_at = CURRENT_TIMESTAMP")
                params.append(user_id)
                await conn.execute(
                    f"UPDATE users SET {', '.join(updates)} WHERE id = ${param_count}",
                    *params,
                )
            if role == UserRole.ADMIN.value:
                await conn.execute("DELETE FROM user_app_access WHERE user_id = $1", user_id)
            elif user_data.app_ids is not None:
                await replace_app_access(conn, user_id, user_data.app_ids)
    except asyncpg.UniqueViolationError:
        raise ConflictError("Username or email already exists")

    updated = await load_user(db, user_id)
    logger.info(f"User {updated['username']} updated by {admin_user.username}")
    return {"success": True, "data": serialize_record(updated)}


@users_router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    admin_user: CurrentUser = Depends(require_admin),
    db: Database = Depends(get_db),
):
    user_id = canonical_user_id(user_id)
    if user_id == admin_user.id:
        raise ValidationError("Cannot delete your own account")
    user = await load_user(db, user_id)
    # user_app_access rows go with the user (ON DELETE CASCADE)
    await db.execute("DELETE FROM users WHERE id = $1", user_id)
    logger.info(f"User {user['username']} deleted by {admin_user.username}")
    return {"success": True, "message": "User deleted successfully"}


@users_router.put("/{user_id}/assign-apps")
async def assign_apps(
    user_id: str,
    assignment: AssignApps,
    admin_user: CurrentUser = Depends(require_admin),
    db: Database = Depends(get_db),
):
    user = await load_user(db, user_id)
    if user["role"] != UserRole.CHILD_ADMIN.value:
        raise ValidationError("Can only assign apps to child_admin users")

    async with db.transaction() as conn:
        await replace_app_access(conn, user_id, assignment.app_ids)

    app_access = await granted_app_ids(db, user_id)
    logger.info(f"Apps {app_access} assigned to {user['username']} by {admin_user.username}")
    return {"success": True, "message": "Apps assigned successfully", "appAccess": app_access}
