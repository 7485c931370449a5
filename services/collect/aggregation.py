# services/collect/aggregation.py
"""
Folding of grouped payment rows into dashboard statistics.

The storage layer groups payments by (bucket label, pt_status) and returns one
row per group with a count and an amount sum; summarize() turns those rows into
totals, a status breakdown and a bucketed series.
"""

import logging
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

logger = logging.getLogger(__name__)

STATUSES = ("success", "failed", "retry")
UNKNOWN_STATUS = "unknown"

ZERO = Decimal("0")
CENT = Decimal("0.01")
# Largest value of a NUMERIC(14, 2) column
MAX_STORED_AMOUNT = Decimal("999999999999.99")


def coerce_amount(value: Any) -> Decimal:
    """
    Parse an amount, or fall back to zero.

    Accepts ints, floats, Decimals and numeric strings ("120", " 99.50 ").
    Anything else (None, "", "abc", booleans, NaN, infinities) becomes 0; a bad
    amount never fails a request.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            logger.debug(f"Unparseable amount {value!r}, using 0")
            return ZERO
    if not amount.is_finite():
        return ZERO
    return amount


def storable_amount(value: Any) -> Decimal:
    """coerce_amount, rounded to cents; amounts too large to store also become 0"""
    amount = coerce_amount(value)
    if abs(amount) > MAX_STORED_AMOUNT or abs(amount.quantize(CENT)) > MAX_STORED_AMOUNT:
        logger.warning(f"Amount {value!r} is out of range, using 0")
        return ZERO
    return amount.quantize(CENT)


def as_money(value: Decimal) -> float:
    return float(value.quantize(CENT))


def _new_bucket(label: str) -> dict[str, Any]:
    return {"label": label, "transactions": 0, "amount": ZERO, "successAmount": ZERO}


def summarize(
    groups: Iterable[dict[str, Any]], buckets: Optional[list[str]] = None
) -> dict[str, Any]:
    """
    Build overview statistics from grouped rows.

    Args:
        groups: rows with `bucket`, `pt_status`, `count` and `amount`
        buckets: every label of the window, in order; missing ones are zero-filled.
            When None only buckets present in the rows appear, sorted by label.

    Returns:
        totals, per-status counts, `series` and `statusDistribution`
    """
    status_counts: dict[str, int] = {}
    series: dict[str, dict[str, Any]] = {}
    if buckets:
        for label in buckets:
            series[label] = _new_bucket(label)

    total_count = 0
    total_amount = ZERO
    success_amount = ZERO

    for group in groups:
        status = group.get("pt_status") or UNKNOWN_STATUS
        count = int(group.get("count") or 0)
        amount = coerce_amount(group.get("amount"))

        total_count += count
        total_amount += amount
        status_counts[status] = status_counts.get(status, 0) + count
        if status == "success":
            success_amount += amount

        label = group.get("bucket")
        if label is None:
            continue
        bucket = series.get(label)
        if bucket is None:
            bucket = series[label] = _new_bucket(label)
        bucket["transactions"] += count
        bucket["amount"] += amount
        if status == "success":
            bucket["successAmount"] += amount

    ordered = [series[label] for label in buckets] if buckets else [series[k] for k in sorted(series)]
    # Rows outside the supplied labels (clock skew at the edges) are appended rather than dropped
    if buckets:
        known = set(buckets)
        ordered.extend(series[k] for k in sorted(series) if k not in known)

    return {
        "totalTransactions": total_count,
        "totalAmount": as_money(total_amount),
        "totalAmountReceived": as_money(success_amount),
        "successCount": status_counts.get("success", 0),
        "failedCount": status_counts.get("failed", 0),
        "retryCount": status_counts.get("retry", 0),
        "series": [
            {
                "label": b["label"],
                "transactions": b["transactions"],
                "amount": as_money(b["amount"]),
                "successAmount": as_money(b["successAmount"]),
            }
            for b in ordered
        ],
        "statusDistribution": [
            {"status": status, "count": count} for status, count in sorted(status_counts.items())
        ],
    }
