# services/collect/reconciler.py
from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from services.collect.aggregation import ZERO, as_money, coerce_amount


def _day_key(value: Any) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]


def compute_roi(spend: Decimal, received: Decimal) -> Optional[float]:
    """Return on spend in percent, None when nothing was spent"""
    if spend <= 0:
        return None
    return round(float((received - spend) / spend * 100), 2)


def reconcile(
    spends: Iterable[dict[str, Any]],
    received: Iterable[dict[str, Any]],
) -> list[dict[str, Any]]:
    """
    Full outer join of daily spend with daily successful payments.

    Args:
        spends: rows with `app_id`, `date` (local calendar day), `spend_amount`, `settlement`
        received: rows with `app_id`, `day` (local YYYY-MM-DD) and `amount`

    Returns:
        One row per (day, app) present on either side, newest day first. Missing
        spend defaults to 0 with settlement 'no'; missing payments to 0.
    """
    rows: dict[tuple[str, str], dict[str, Any]] = {}

    def row_for(day: str, app_id: str) -> dict[str, Any]:
        key = (day, app_id)
        if key not in rows:
            rows[key] = {
                "date": day,
                "appId": app_id,
                "spendAmount": ZERO,
                "settlement": "no",
                "receivedAmount": ZERO,
            }
        return rows[key]

    for spend in spends:
        row = row_for(_day_key(spend["date"]), spend["app_id"])
        row["spendAmount"] += coerce_amount(spend.get("spend_amount"))
        row["settlement"] = spend.get("settlement") or "no"

    for payment_day in received:
        row = row_for(_day_key(payment_day["day"]), payment_day["app_id"])
        row["receivedAmount"] += coerce_amount(payment_day.get("amount"))

    result = []
    for row in rows.values():
        spend_amount = row["spendAmount"]
        received_amount = row["receivedAmount"]
        result.append(
            {
                **row,
                "spendAmount": as_money(spend_amount),
                "receivedAmount": as_money(received_amount),
                "roi": compute_roi(spend_amount, received_amount),
            }
        )

    result.sort(key=lambda r: r["appId"])
    result.sort(key=lambda r: r["date"], reverse=True)
    return result


def totals(rows: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """Period totals over reconciled rows"""
    spend = ZERO
    received = ZERO
    for row in rows:
        spend += coerce_amount(row["spendAmount"])
        received += coerce_amount(row["receivedAmount"])
    return {
        "spendAmount": as_money(spend),
        "receivedAmount": as_money(received),
        "roi": compute_roi(spend, received),
    }
