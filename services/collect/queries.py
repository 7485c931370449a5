# services/collect/queries.py
"""
SQL building blocks shared by the payment, dashboard, spend and PDF routes.

Filters are assembled with positional asyncpg parameters ($1, $2, ...) in the
order conditions are added; values are never interpolated into the SQL text.
"""

from datetime import date
from typing import Any, Optional

import pytz

from services.collect.date_ranges import SQL_LABEL_FORMATS, DateRange, Granularity
from shared.database import Database


class SqlFilter:
    def __init__(self):
        self.conditions: list[str] = []
        self.params: list[Any] = []

    def param(self, value: Any) -> str:
        """Register a value and return its placeholder"""
        self.params.append(value)
        return f"${len(self.params)}"

    def add(self, condition: str, *values: Any) -> "SqlFilter":
        """Add a condition whose `{}` slots are filled with placeholders for values"""
        self.conditions.append(condition.format(*(self.param(v) for v in values)))
        return self

    def copy(self) -> "SqlFilter":
        clone = SqlFilter()
        clone.conditions = list(self.conditions)
        clone.params = list(self.params)
        return clone

    def where(self) -> str:
        if not self.conditions:
            return ""
        return " WHERE " + " AND ".join(self.conditions)


def payment_filter(
    app_ids: Optional[list[str]],
    date_range: Optional[DateRange] = None,
    status: Optional[str] = None,
) -> SqlFilter:
    sql_filter = SqlFilter()
    if app_ids is not None:
        sql_filter.add("app_id = ANY({}::text[])", app_ids)
    if date_range is not None:
        sql_filter.add("transaction_date >= {}", date_range.start)
        sql_filter.add("transaction_date <= {}", date_range.end)
    if status:
        sql_filter.add("pt_status = {}", status)
    return sql_filter


def local_days(date_range: Optional[DateRange], tz: pytz.BaseTzInfo) -> Optional[tuple[date, date]]:
    """Calendar days in tz covered by an instant window"""
    if date_range is None:
        return None
    return date_range.start.astimezone(tz).date(), date_range.end.astimezone(tz).date()


def spend_filter(
    app_ids: Optional[list[str]],
    date_range: Optional[DateRange],
    tz: pytz.BaseTzInfo,
) -> SqlFilter:
    sql_filter = SqlFilter()
    if app_ids is not None:
        sql_filter.add("app_id = ANY({}::text[])", app_ids)
    days = local_days(date_range, tz)
    if days is not None:
        sql_filter.add("date >= {}", days[0])
        sql_filter.add("date <= {}", days[1])
    return sql_filter


async def payment_groups(
    db: Database,
    sql_filter: SqlFilter,
    granularity: Granularity,
    tz_name: str,
) -> list[dict[str, Any]]:
    """Payments grouped by (local bucket label, pt_status) with count and amount"""
    sql_filter = sql_filter.copy()
    tz_param = sql_filter.param(tz_name)
    format_param = sql_filter.param(SQL_LABEL_FORMATS[granularity])
    return await db.fetch_all(
        f"""
        SELECT to_char(transaction_date AT TIME ZONE {tz_param}::text, {format_param}::text) AS bucket,
               pt_status,
               COUNT(*) AS count,
               COALESCE(SUM(amount), 0) AS amount
        FROM payments{sql_filter.where()}
        GROUP BY 1, 2
        """,
        *sql_filter.params,
    )


async def successful_payments_by_day(
    db: Database,
    app_ids: Optional[list[str]],
    date_range: Optional[DateRange],
    tz_name: str,
) -> list[dict[str, Any]]:
    """Daily sums of successful payment amounts per app, keyed by local day"""
    sql_filter = payment_filter(app_ids, date_range, status="success")
    tz_param = sql_filter.param(tz_name)
    return await db.fetch_all(
        f"""
        SELECT app_id,
               to_char(transaction_date AT TIME ZONE {tz_param}::text, 'YYYY-MM-DD') AS day,
               COALESCE(SUM(amount), 0) AS amount
        FROM payments{sql_filter.where()}
        GROUP BY 1, 2
        """,
        *sql_filter.params,
    )
