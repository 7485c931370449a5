# services/collect/routes/apps.py
import logging
import random

from fastapi import APIRouter, Depends, status

from services.collect.access import AppScope, get_app_scope
from services.collect.auth import CurrentUser, require_admin
from services.collect.models import AppCreate, AppUpdate
from services.collect.routes.common import listing
from shared.database import Database, get_db
from shared.errors import InternalError, NotFoundError
from shared.json_utils import serialize_record, serialize_records

logger = logging.getLogger(__name__)

apps_router = APIRouter()

APP_ID_ATTEMPTS = 100


def random_app_id() -> str:
    return str(random.randint(10000, 99999))


async def insert_app(db: Database, app_name: str, app_logo_url: str) -> dict:
    """Insert under a fresh random 5-digit id, retrying on collision"""
    for _ in range(APP_ID_ATTEMPTS):
        app = await db.fetch_one(
            """
            INSERT INTO apps (app_id, app_name, app_logo_url)
            VALUES ($1, $2, $3)
            ON CONFLICT (app_id) DO NOTHING
            RETURNING *
            """,
            random_app_id(),
            app_name,
            app_logo_url,
        )
        if app:
            return app
    logger.error(f"No free appId after {APP_ID_ATTEMPTS} attempts")
    raise InternalError("Failed to generate unique appId after multiple attempts")


@apps_router.post("", status_code=status.HTTP_201_CREATED)
async def create_app(
    app_data: AppCreate,
    admin_user: CurrentUser = Depends(require_admin),
    db: Database = Depends(get_db),
):
    app = await insert_app(db, app_data.app_name, app_data.app_logo_url)
    logger.info(f"App {app['app_id']} ({app['app_name']}) created by {admin_user.username}")
    return {"success": True, "data": serialize_record(app)}


@apps_router.get("")
async def list_apps(
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    app_ids = scope.app_filter()
    if app_ids is None:
        apps = await db.fetch_all("SELECT * FROM apps ORDER BY created_at DESC")
    elif not app_ids:
        apps = []
    else:
        apps = await db.fetch_all(
            "SELECT * FROM apps WHERE app_id = ANY($1::text[]) ORDER BY created_at DESC", app_ids
        )
    return listing(serialize_records(apps))


@apps_router.get("/{app_id}")
async def get_app(
    app_id: str,
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    scope.require(app_id)
    app = await db.fetch_one("SELECT * FROM apps WHERE app_id = $1", app_id)
    if not app:
        raise NotFoundError("App not found")
    return {"data": serialize_record(app)}


@apps_router.put("/{app_id}")
async def update_app(
    app_id: str,
    app_data: AppUpdate,
    admin_user: CurrentUser = Depends(require_admin),
    db: Database = Depends(get_db),
):
    app = await db.fetch_one(
        """
        UPDATE apps
        SET app_name = COALESCE($2, app_name),
            app_logo_url = COALESCE($3, app_logo_url),
            updated_at = CURRENT_TIMESTAMP
        WHERE app_id = $1
        RETURNING *
        """,
        app_id,
        app_data.app_name,
        app_data.app_logo_url,
    )
    if not app:
        raise NotFoundError("App not found")
    logger.info(f"App {app_id} updated by {admin_user.username}")
    return {"success": True, "data": serialize_record(app)}


@apps_router.delete("/{app_id}")
async def delete_app(
    app_id: str,
    admin_user: CurrentUser = Depends(require_admin),
    db: Database = Depends(get_db),
):
    app = await db.fetch_one("DELETE FROM apps WHERE app_id = $1 RETURNING *", app_id)
    if not app:
        raise NotFoundError("App not found")
    logger.info(f"App {app_id} deleted by {admin_user.username}")
    return {"success": True, "message": "App deleted successfully", "data": serialize_record(app)}
