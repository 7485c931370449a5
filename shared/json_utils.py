# shared/json_utils.py
"""
JSON serialization helpers for database rows.

asyncpg hands back UUID, Decimal, date and datetime values and snake_case
column names; the API speaks camelCase JSON with ISO-8601 timestamps.
"""

from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic.alias_generators import to_camel


def serialize_value(value: Any) -> Any:
    """Convert a database value into something json.dumps accepts"""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value


def serialize_record(
    record: Optional[dict[str, Any]], exclude: Iterable[str] = ()
) -> Optional[dict[str, Any]]:
    """
    Serialize a single row with camelCase keys.

    Args:
        record: Row from Database.fetch_one / fetch_all
        exclude: Column names to drop (e.g. password_hash)

    Returns:
        JSON-ready dict, or None when the row is None
    """
    if record is None:
        return None
    skipped = set(exclude)
    return {to_camel(k): serialize_value(v) for k, v in record.items() if k not in skipped}


def serialize_records(
    records: Iterable[dict[str, Any]], exclude: Iterable[str] = ()
) -> list[dict[str, Any]]:
    """Serialize many rows, see serialize_record"""
    skipped = tuple(exclude)
    return [serialize_record(r, skipped) for r in records]
