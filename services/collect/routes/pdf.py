# services/collect/routes/pdf.py
import logging
from datetime import datetime
from typing import Optional

import pytz
from fastapi import APIRouter, Depends, Query
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from services.collect.access import AppScope, get_app_scope
from services.collect.aggregation import summarize
from services.collect.date_ranges import Granularity
from services.collect.pdf_report import MAX_REPORT_ROWS, build_payments_report
from services.collect.queries import payment_filter, payment_groups
from services.collect.routes.common import ReportWindow, report_window
from shared.database import Database, get_db
from shared.errors import InternalError

logger = logging.getLogger(__name__)

pdf_router = APIRouter()


@pdf_router.get("/payments")
async def payments_pdf(
    app_id: Optional[str] = Query(None, alias="appId"),
    window: ReportWindow = Depends(report_window("all_time")),
    scope: AppScope = Depends(get_app_scope),
    db: Database = Depends(get_db),
):
    """Download the payments overview as a PDF"""
    app_ids = scope.app_filter(app_id)

    groups = []
    payments = []
    # A caller without any granted app gets an empty report
    if app_ids != []:
        sql_filter = payment_filter(app_ids, window.date_range)
        groups = await payment_groups(db, sql_filter, Granularity.DAY, window.tz_name)
        payments = await db.fetch_all(
            f"""
            SELECT uuid, app_id, pt_status, amount, transaction_date
            FROM payments{sql_filter.where()}
            ORDER BY transaction_date DESC
            LIMIT {MAX_REPORT_ROWS}
            """,
            *sql_filter.params,
        )

    generated_at = datetime.now(pytz.utc)
    try:
        content = await run_in_threadpool(
            build_payments_report,
            summarize(groups),
            payments,
            window.tz,
            window.describe(),
            generated_at,
        )
    except Exception as e:
        logger.error(f"PDF generation failed: {e}", exc_info=True)
        raise InternalError("PDF generation failed", details=str(e))

    filename = f"payments-overview-{generated_at.astimezone(window.tz).strftime('%Y%m%d_%H%M%S')}.pdf"
    logger.info(f"Payments PDF with {len(payments)} rows generated ({window.filter_name})")
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
