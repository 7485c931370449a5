# services/collect/routes/payments.py
import hmac
import logging
from typing import Optional

import pytz
from fastapi import APIRouter, Depends, Query, Request, status

from services.collect.access import AppScope, get_app_scope
from services.collect.aggregation import storable_amount, summarize
from services.collect.auth import get_settings
from services.collect.date_ranges import Granularity, bucket_labels
from services.collect.models import PaymentStatus, PaymentWebhook
from services.collect.queries import payment_filter, payment_groups
from services.collect.routes.common import ReportWindow, listing, report_window
from shared.config import Settings
from shared.database import Database, get_db
from shared.errors import AuthError, NotFoundError
from shared.json_utils import serialize_record, serialize_records
from shared.uuid_utils import generate_uuid7

logger = logging.getLogger(__name__)

# Mounted at both /coinCollect and /payments
payments_router = APIRouter()

ANT_MAX_LENGTH = 64


def check_webhook_secret(request: Request, settings: Settings = Depends(get_settings)) -> None:
    """Require the shared secret header when one is configured"""
    if not settings.webhook_secret:
        return
    supplied = request.headers.get("x-webhook-secret", "")
    if not hmac.compare_digest(supplied.encode(), settings.webhook_secret.encode()):
        raise AuthError("Invalid webhook secret")


@payments_router.post(
    "", status_code=status.HTTP_201_CREATED, dependencies=[Depends(check_webhook_secret)]
)
async def receive_payment(payment: PaymentWebhook, db: Database = Depends(get_db)):
    """
    Record a payment attempt from the gateway.

    Re-delivery of a known uuid updates the existing row in place. Fields the
    gateway leaves out on a re-delivery (amount, ant, transactionDate) keep
    their stored values.
    """
    raw_amount = payment.raw_amount
    amount = storable_amount(raw_amount) if raw_amount is not None else None
    ant = str(payment.ant)[:ANT_MAX_LENGTH] if payment.ant is not None else None

    transaction_date = payment.transaction_date
    if transaction_date is not None and transaction_date.tzinfo is None:
        transaction_date = pytz.utc.localize(transaction_date)

    record = await db.fetch_one(
        """
        INSERT INTO payments (
            id, uuid, app_id, pt_status, collection_id, ant, amount, transaction_date
        )
        VALUES (
            $1, $2, $3, $4, $5, $6::varchar,
            COALESCE($7::numeric, 0),
            COALESCE($8::timestamptz, CURRENT_TIMESTAMP)
        )
        ON CONFLICT (uuid) DO UPDATE SET
            app_id = EXCLUDED.app_id,
            pt_status = EXCLUDED.pt_status,
            collection_id = EXCLUDED.collection_id,
            ant = COALESCE($6::varchar, payments.ant),
            amount = COALESCE($7::numeric, payments.amount),
            transaction_date = COALESCE($8::timestamptz, payments.transaction_date),
            updated_at = CURRENT_TIMESTAMP
        RETURNING *
        """,
        generate_uuid7(),
        payment.uuid,
        payment.app_id,
        payment.pt_status.value,
        payment.collection_id,
        ant,
        amount,
        transaction_date,
    )

    logger.info(
        f"Payment {payment.uuid} for app {payment.app_id}: {payment.pt_status.value} "
        f"(amount {record['amount']})"
    )
    return {"success": True, "data": serialize_record(record, exclude=("id",))}


@payments_router.get("")
async def list_payments(
    app_id: Optional[str] = Query(None, alias="appId"),
    pt_status: Optional[PaymentStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    app_ids = scope.app_filter(app_id)
    if app_ids == []:
        return listing([])

    sql_filter = payment_filter(app_ids, status=pt_status.value if pt_status else None)
    payments = await db.fetch_all(
        f"""
        SELECT * FROM payments{sql_filter.where()}
        ORDER BY transaction_date DESC
        LIMIT {limit} OFFSET {offset}
        """,
        *sql_filter.params,
    )
    return listing(serialize_records(payments, exclude=("id",)))


@payments_router.get("/stats")
async def payment_stats(
    app_id: Optional[str] = Query(None, alias="appId"),
    window: ReportWindow = Depends(report_window("all_time")),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    """Totals and status breakdown over the filtered window"""
    app_ids = scope.app_filter(app_id)
    if app_ids == []:
        return summarize([])

    groups = await payment_groups(
        db,
        payment_filter(app_ids, window.date_range),
        window.date_range.granularity if window.date_range else Granularity.DAY,
        window.tz_name,
    )
    buckets = bucket_labels(window.date_range, window.tz) if window.date_range else None
    return summarize(groups, buckets)


@payments_router.get("/{payment_uuid}")
async def get_payment(
    payment_uuid: str,
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    payment = await db.fetch_one("SELECT * FROM payments WHERE uuid = $1", payment_uuid)
    if not payment:
        raise NotFoundError()
    scope.require(payment["app_id"])
    return {"data": serialize_record(payment, exclude=("id",))}
