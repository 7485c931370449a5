# services/collect/routes/collections.py
import logging
from typing import Any, Optional

import asyncpg
from fastapi import APIRouter, Depends, Query, status

from services.collect.access import AppScope, get_app_scope, resolve_scope
from services.collect.auth import CurrentUser, get_optional_user
from services.collect.collection_selector import ROUTE_TAGS, TAGS, CollectionSelector
from services.collect.models import CollectionBatch, CollectionTag
from services.collect.queries import SqlFilter
from services.collect.routes.common import listing
from shared.database import Database, get_db
from shared.errors import NotFoundError, ValidationError
from shared.json_utils import serialize_record, serialize_records
from shared.uuid_utils import generate_uuid7

logger = logging.getLogger(__name__)

collections_router = APIRouter()

COLLECTION_ID_MAX_LENGTH = 255


def validate_item(item: Any) -> tuple[str, str]:
    """Return (collection_id, tag) for a batch item or raise ValidationError"""
    if not isinstance(item, dict):
        raise ValidationError("Invalid or missing collectionId")
    collection_id = item.get("collectionId")
    if not isinstance(collection_id, str) or not collection_id.strip():
        raise ValidationError("Invalid or missing collectionId")
    if len(collection_id.strip()) > COLLECTION_ID_MAX_LENGTH:
        raise ValidationError(f"collectionId must be at most {COLLECTION_ID_MAX_LENGTH} characters")
    tag = item.get("tag")
    if not isinstance(tag, str) or tag.strip() not in TAGS:
        raise ValidationError(f"tag must be one of: {', '.join(TAGS)}")
    return collection_id.strip(), tag.strip()


@collections_router.post("", status_code=status.HTTP_201_CREATED)
async def upsert_collections(
    batch: CollectionBatch,
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    """
    Create or re-tag a batch of collection ids for one app.

    Items are stored independently: a bad item is reported in `errors` while
    the rest of the batch is still committed.
    """
    scope.require(batch.app_id)

    results = []
    errors = []
    for item in batch.collections:
        try:
            collection_id, tag = validate_item(item)
        except ValidationError as e:
            label = item.get("collectionId") if isinstance(item, dict) else None
            errors.append({"collectionId": label or "missing", "error": e.message})
            continue

        try:
            collection = await db.fetch_one(
                """
                INSERT INTO collections (id, app_id, collection_id, tag)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (app_id, collection_id) DO UPDATE SET
                    tag = EXCLUDED.tag,
                    updated_at = CURRENT_TIMESTAMP
                RETURNING *
                """,
                generate_uuid7(),
                batch.app_id,
                collection_id,
                tag,
            )
        except asyncpg.PostgresError as e:
            logger.warning(f"Collection {collection_id} for app {batch.app_id} not stored: {e}")
            errors.append({"collectionId": collection_id, "error": str(e)})
            continue
        results.append(serialize_record(collection))

    logger.info(
        f"Collections batch for app {batch.app_id}: {len(results)} stored, {len(errors)} rejected"
    )
    body = {
        "success": True,
        "created": len(results),
        "failed": len(errors),
        "data": results,
    }
    if errors:
        body["errors"] = errors
    return body


@collections_router.get("")
async def list_collections(
    app_id: Optional[str] = Query(None, alias="appId"),
    tag: Optional[CollectionTag] = Query(None),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    app_ids = scope.app_filter(app_id.strip() if app_id else None)
    if app_ids == []:
        return listing([])

    sql_filter = SqlFilter()
    if app_ids is not None:
        sql_filter.add("app_id = ANY({}::text[])", app_ids)
    if tag:
        sql_filter.add("tag = {}", tag.value)

    collections = await db.fetch_all(
        f"SELECT * FROM collections{sql_filter.where()} ORDER BY app_id, tag, created_at DESC",
        *sql_filter.params,
    )
    return listing(serialize_records(collections))


async def pick_for_route(
    route: str,
    app_id: Optional[str],
    current_user: Optional[CurrentUser],
    db: Database,
) -> dict:
    if not app_id or not app_id.strip():
        raise ValidationError("appId is required", fields=["appId"])
    app_id = app_id.strip()

    # Anonymous callers are allowed; signed-in callers are held to their scope
    if current_user is not None:
        scope = await resolve_scope(db, current_user)
        scope.require(app_id)

    collection = await CollectionSelector(db).select(app_id, ROUTE_TAGS[route])
    return {
        "data": {
            "appId": collection["app_id"],
            "collectionId": collection["collection_id"],
            "tag": collection["tag"],
        }
    }


@collections_router.get("/sc")
async def random_success_collection(
    app_id: Optional[str] = Query(None, alias="appId"),
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    """A random collection tagged primary"""
    return await pick_for_route("success", app_id, current_user, db)


@collections_router.get("/rt")
async def random_retry_collection(
    app_id: Optional[str] = Query(None, alias="appId"),
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    """A random collection tagged retry"""
    return await pick_for_route("retry", app_id, current_user, db)


@collections_router.get("/app/{app_id}")
async def collections_for_app(
    app_id: str,
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    app_id = scope.require(app_id.strip())
    collections = await db.fetch_all(
        "SELECT * FROM collections WHERE app_id = $1 ORDER BY tag, created_at DESC", app_id
    )
    return listing(serialize_records(collections))


@collections_router.delete("/{collection_id}")
async def delete_collection(
    collection_id: str,
    app_id: Optional[str] = Query(None, alias="appId"),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    if not app_id or not app_id.strip():
        raise ValidationError("collectionId and appId are required", fields=["appId"])
    app_id = scope.require(app_id.strip())

    collection = await db.fetch_one(
        "DELETE FROM collections WHERE app_id = $1 AND collection_id = $2 RETURNING *",
        app_id,
        collection_id.strip(),
    )
    if not collection:
        raise NotFoundError("Collection not found")

    logger.info(f"Collection {collection_id} removed from app {app_id}")
    return {
        "success": True,
        "message": "Collection deleted successfully",
        "data": serialize_record(collection),
    }
