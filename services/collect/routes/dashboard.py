# services/collect/routes/dashboard.py
import logging
from datetime import date, datetime
from typing import Optional

import pytz
from fastapi import APIRouter, Depends, Query

from services.collect.access import AppScope, get_app_scope
from services.collect.aggregation import ZERO, as_money, coerce_amount, summarize
from services.collect.date_ranges import Granularity, bucket_labels, day_bounds, local_today
from services.collect.models import PaymentStatus
from services.collect.queries import (
    payment_filter,
    payment_groups,
    spend_filter,
    successful_payments_by_day,
)
from services.collect.reconciler import compute_roi, reconcile, totals
from services.collect.routes.common import ReportWindow, report_timezone, report_window
from shared.database import Database, get_db
from shared.json_utils import serialize_records

logger = logging.getLogger(__name__)

dashboard_router = APIRouter()


def _overview_body(window: ReportWindow, stats: dict) -> dict:
    return {
        "filter": window.filter_name,
        "granularity": window.date_range.granularity.value if window.date_range else Granularity.DAY.value,
        "totalTransactions": stats["totalTransactions"],
        "totalAmount": stats["totalAmount"],
        "totalAmountReceived": stats["totalAmountReceived"],
        "successCount": stats["successCount"],
        "failedCount": stats["failedCount"],
        "retryCount": stats["retryCount"],
        "charts": {
            "sales": stats["series"],
            "statusDistribution": stats["statusDistribution"],
        },
    }


@dashboard_router.get("/overview")
async def overview(
    app_id: Optional[str] = Query(None, alias="appId"),
    window: ReportWindow = Depends(report_window("all_time")),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    """Headline numbers plus a sales series bucketed to the filter's granularity"""
    app_ids = scope.app_filter(app_id)
    if app_ids == []:
        return _overview_body(window, summarize([]))

    granularity = window.date_range.granularity if window.date_range else Granularity.DAY
    groups = await payment_groups(
        db, payment_filter(app_ids, window.date_range), granularity, window.tz_name
    )
    buckets = bucket_labels(window.date_range, window.tz) if window.date_range else None
    return _overview_body(window, summarize(groups, buckets))


@dashboard_router.get("/transactions")
async def transactions(
    app_id: Optional[str] = Query(None, alias="appId"),
    pt_status: Optional[PaymentStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    window: ReportWindow = Depends(report_window("all_time")),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    app_ids = scope.app_filter(app_id)
    if app_ids == []:
        return {"count": 0, "total": 0, "page": page, "totalPages": 0, "data": []}

    sql_filter = payment_filter(
        app_ids, window.date_range, status=pt_status.value if pt_status else None
    )
    offset = (page - 1) * limit

    rows = await db.fetch_all(
        f"""
        SELECT uuid, app_id, pt_status, collection_id, amount, transaction_date, created_at
        FROM payments{sql_filter.where()}
        ORDER BY transaction_date DESC
        LIMIT {limit} OFFSET {offset}
        """,
        *sql_filter.params,
    )
    total = await db.fetch_val(f"SELECT COUNT(*) FROM payments{sql_filter.where()}", *sql_filter.params)
    total = total or 0

    return {
        "count": len(rows),
        "total": total,
        "page": page,
        "totalPages": (total + limit - 1) // limit,
        "data": serialize_records(rows),
    }


@dashboard_router.get("/daily-sales")
async def daily_sales(
    day: date = Query(..., alias="date"),
    app_id: Optional[str] = Query(None, alias="appId"),
    tz: pytz.BaseTzInfo = Depends(report_timezone),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    """Per-app sales and spend for one local calendar day"""
    label = day.isoformat()
    app_ids = scope.app_filter(app_id)
    if app_ids == []:
        return {"date": label, "data": []}

    bounds = day_bounds(day, tz)
    sql_filter = payment_filter(app_ids, bounds)
    payment_rows = await db.fetch_all(
        f"""
        SELECT uuid, app_id, pt_status, amount, transaction_date
        FROM payments{sql_filter.where()}
        ORDER BY transaction_date DESC
        """,
        *sql_filter.params,
    )
    sql_filter = spend_filter(app_ids, bounds, tz)
    spend_rows = await db.fetch_all(
        f"SELECT app_id, spend_amount, settlement FROM spends{sql_filter.where()}",
        *sql_filter.params,
    )

    apps: dict[str, dict] = {}

    def entry(aid: str) -> dict:
        if aid not in apps:
            apps[aid] = {"payments": [], "spend": None, "total": ZERO, "success": ZERO}
        return apps[aid]

    for payment in payment_rows:
        group = entry(payment["app_id"])
        amount = coerce_amount(payment["amount"])
        group["payments"].append({"id": payment["uuid"], "status": payment["pt_status"]})
        group["total"] += amount
        if payment["pt_status"] == PaymentStatus.SUCCESS.value:
            group["success"] += amount

    for spend in spend_rows:
        entry(spend["app_id"])["spend"] = spend

    data = []
    for aid in sorted(apps):
        group = apps[aid]
        spend = group["spend"]
        spend_amount = coerce_amount(spend["spend_amount"]) if spend else None
        data.append(
            {
                "appId": aid,
                "date": label,
                "totalTransactions": len(group["payments"]),
                "totalSales": as_money(group["total"]),
                "successSales": as_money(group["success"]),
                "spend": {
                    "amount": as_money(spend_amount),
                    "settlement": spend["settlement"],
                    "roi": compute_roi(spend_amount, group["success"]),
                }
                if spend
                else None,
                "payments": group["payments"],
            }
        )

    return {"date": label, "data": data}


@dashboard_router.get("/performance")
async def performance(
    app_id: Optional[str] = Query(None, alias="appId"),
    window: ReportWindow = Depends(report_window("last_7_days")),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    """Daily spend against successful payments, one row per app per day"""
    app_ids = scope.app_filter(app_id)
    if app_ids == []:
        return {"filter": window.filter_name, "count": 0, "data": [], "totals": totals([])}

    sql_filter = spend_filter(app_ids, window.date_range, window.tz)
    spends = await db.fetch_all(
        f"SELECT app_id, date, spend_amount, settlement FROM spends{sql_filter.where()}",
        *sql_filter.params,
    )
    received = await successful_payments_by_day(db, app_ids, window.date_range, window.tz_name)

    rows = reconcile(spends, received)
    return {"filter": window.filter_name, "count": len(rows), "data": rows, "totals": totals(rows)}


@dashboard_router.get("/performance/hourly")
async def performance_hourly(
    day: Optional[date] = Query(None, alias="date"),
    app_id: Optional[str] = Query(None, alias="appId"),
    tz: pytz.BaseTzInfo = Depends(report_timezone),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    """Hour-by-hour activity for one local day (today by default)"""
    day = day or local_today(datetime.now(pytz.utc), tz)
    bounds = day_bounds(day, tz)
    buckets = bucket_labels(bounds, tz)

    app_ids = scope.app_filter(app_id)
    groups = []
    if app_ids != []:
        groups = await payment_groups(
            db, payment_filter(app_ids, bounds), Granularity.HOUR, tz.zone
        )

    stats = summarize(groups, buckets)
    return {
        "date": day.isoformat(),
        "totalTransactions": stats["totalTransactions"],
        "totalAmount": stats["totalAmount"],
        "totalAmountReceived": stats["totalAmountReceived"],
        "data": stats["series"],
    }
