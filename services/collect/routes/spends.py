# services/collect/routes/spends.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from services.collect.access import AppScope, get_app_scope
from services.collect.auth import CurrentUser, get_current_user
from services.collect.models import SpendUpsert
from services.collect.queries import spend_filter
from services.collect.routes.common import ReportWindow, listing, report_window
from shared.database import Database, get_db
from shared.errors import NotFoundError
from shared.json_utils import serialize_record, serialize_records
from shared.uuid_utils import generate_uuid7, is_valid_uuid

logger = logging.getLogger(__name__)

spends_router = APIRouter()


async def load_spend(db: Database, spend_id: str, scope: AppScope) -> dict:
    if not is_valid_uuid(spend_id):
        raise NotFoundError("Spend not found")
    spend = await db.fetch_one("SELECT * FROM spends WHERE id = $1", spend_id)
    if not spend:
        raise NotFoundError("Spend not found")
    scope.require(spend["app_id"])
    return spend


@spends_router.post("", status_code=status.HTTP_201_CREATED)
async def upsert_spend(
    spend_data: SpendUpsert,
    current_user: CurrentUser = Depends(get_current_user),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    """
    Record the spend of one app on one day.

    A second post for the same (appId, date) updates that row; omitted fields
    keep their stored values.
    """
    scope.require(spend_data.app_id)

    spend = await db.fetch_one(
        """
        INSERT INTO spends (id, app_id, date, spend_amount, settlement)
        VALUES ($1, $2, $3, COALESCE($4::numeric, 0), COALESCE($5::varchar, 'no'))
        ON CONFLICT (app_id, date) DO UPDATE SET
            spend_amount = COALESCE($4::numeric, spends.spend_amount),
            settlement = COALESCE($5::varchar, spends.settlement),
            updated_at = CURRENT_TIMESTAMP
        RETURNING *
        """,
        generate_uuid7(),
        spend_data.app_id,
        spend_data.date,
        spend_data.spend_amount,
        spend_data.settlement.value if spend_data.settlement else None,
    )

    logger.info(
        f"Spend for app {spend_data.app_id} on {spend_data.date} set to "
        f"{spend['spend_amount']} by {current_user.username}"
    )
    return {"success": True, "data": serialize_record(spend)}


@spends_router.get("")
async def list_spends(
    app_id: Optional[str] = Query(None, alias="appId"),
    window: ReportWindow = Depends(report_window("last_7_days")),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    app_ids = scope.app_filter(app_id)
    if app_ids == []:
        return listing([])

    sql_filter = spend_filter(app_ids, window.date_range, window.tz)
    spends = await db.fetch_all(
        f"SELECT * FROM spends{sql_filter.where()} ORDER BY date DESC, app_id",
        *sql_filter.params,
    )
    return listing(serialize_records(spends))


@spends_router.get("/{spend_id}")
async def get_spend(
    spend_id: str,
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    return {"data": serialize_record(await load_spend(db, spend_id, scope))}


@spends_router.delete("/{spend_id}")
async def delete_spend(
    spend_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    spend = await load_spend(db, spend_id, scope)
    await db.execute("DELETE FROM spends WHERE id = $1", spend_id)
    logger.info(f"Spend {spend_id} for app {spend['app_id']} deleted by {current_user.username}")
    return {"success": True, "message": "Spend deleted successfully"}
