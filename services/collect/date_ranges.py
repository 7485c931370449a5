# services/collect/date_ranges.py
"""
Named dashboard date filters.

Every calendar boundary (midnight, first of month, first of year) is computed on
the report timezone's wall clock and only then converted to a UTC instant, so
"today" always means the local calendar day rather than the UTC one. Ends are
inclusive, down to the millisecond (23:59:59.999); queries compare with <=.
"""

from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import NamedTuple, Optional, Union

import pytz

from shared.errors import ValidationError

DEFAULT_TIMEZONE = "Asia/Kolkata"

# Bucket enumeration is skipped past this many buckets (e.g. a multi-year date_range)
MAX_FILLED_BUCKETS = 1500

END_OF_DAY = time(23, 59, 59, 999000)


class Granularity(str, Enum):
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    MONTH = "month"


LABEL_FORMATS = {
    Granularity.MINUTE: "%Y-%m-%d %H:%M",
    Granularity.HOUR: "%Y-%m-%d %H:00",
    Granularity.DAY: "%Y-%m-%d",
    Granularity.MONTH: "%Y-%m",
}

# Same labels rendered by PostgreSQL's to_char
SQL_LABEL_FORMATS = {
    Granularity.MINUTE: "YYYY-MM-DD HH24:MI",
    Granularity.HOUR: "YYYY-MM-DD HH24:00",
    Granularity.DAY: "YYYY-MM-DD",
    Granularity.MONTH: "YYYY-MM",
}

ROLLING_HOURS = {"last_8_hours": 8, "last_12_hours": 12, "last_24_hours": 24}
ROLLING_MINUTES = {"last_10_min": 10, "last_30_min": 30}

FILTERS = (
    "all_time",
    "date_range",
    "yesterday",
    "last_7_days",
    "this_month",
    "last_month",
    "last_6_months",
    "this_year",
    *ROLLING_HOURS,
    *ROLLING_MINUTES,
)


class DateRange(NamedTuple):
    """A UTC instant window plus the bucket size its charts use"""

    start: datetime
    end: datetime
    granularity: Granularity


def get_timezone(name: str = DEFAULT_TIMEZONE) -> pytz.BaseTzInfo:
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ValueError(f"Unknown timezone: {name}")


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def _local_instant(tz: pytz.BaseTzInfo, day: date, at: time) -> datetime:
    """Wall-clock `day at` in tz, as a UTC instant"""
    return tz.localize(datetime.combine(day, at)).astimezone(pytz.utc)


def local_today(now: datetime, tz: pytz.BaseTzInfo) -> date:
    return _utc(now).astimezone(tz).date()


def day_bounds(day: date, tz: pytz.BaseTzInfo) -> DateRange:
    """The local calendar day as an hour-bucketed window"""
    return DateRange(
        _local_instant(tz, day, time.min),
        _local_instant(tz, day, END_OF_DAY),
        Granularity.HOUR,
    )


def _days(tz: pytz.BaseTzInfo, first: date, last: date, granularity=Granularity.DAY) -> DateRange:
    return DateRange(
        _local_instant(tz, first, time.min),
        _local_instant(tz, last, END_OF_DAY),
        granularity,
    )


def _months_back(day: date, months: int) -> date:
    """First day of the month `months` before day's month"""
    year, month = day.year, day.month - months
    while month <= 0:
        month += 12
        year -= 1
    return date(year, month, 1)


def parse_instant(value: Union[str, datetime], field: str) -> datetime:
    """Parse an explicit ISO-8601 bound; naive values are taken as UTC"""
    if isinstance(value, datetime):
        return _utc(value)
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date or datetime", fields=[field])
    return _utc(parsed)


def resolve_date_range(
    filter_name: str,
    now: Optional[datetime] = None,
    start: Optional[Union[str, datetime]] = None,
    end: Optional[Union[str, datetime]] = None,
    tz: Optional[pytz.BaseTzInfo] = None,
) -> Optional[DateRange]:
    """
    Resolve a named filter to a UTC window.

    Args:
        filter_name: One of FILTERS
        now: Current instant (defaults to the wall clock); naive means UTC
        start, end: Explicit bounds, only read for `date_range`
        tz: Report timezone (defaults to Asia/Kolkata)

    Returns:
        DateRange, or None for `all_time`

    Raises:
        ValidationError: unknown filter or bad `date_range` bounds
    """
    tz = tz or get_timezone()
    now = _utc(now or datetime.now(pytz.utc))
    today = local_today(now, tz)

    if filter_name == "all_time":
        return None

    if filter_name == "date_range":
        missing = [name for name, value in (("startDate", start), ("endDate", end)) if not value]
        if missing:
            raise ValidationError("startDate and endDate are required for date_range", fields=missing)
        start_at = parse_instant(start, "startDate")
        end_at = parse_instant(end, "endDate")
        if start_at > end_at:
            raise ValidationError("startDate must not be after endDate", fields=["startDate", "endDate"])
        return DateRange(start_at, end_at, Granularity.DAY)

    if filter_name == "yesterday":
        yesterday = today - timedelta(days=1)
        return _days(tz, yesterday, yesterday)

    if filter_name == "last_7_days":
        # Seven calendar days: today and the six before it
        return _days(tz, today - timedelta(days=6), today)

    if filter_name == "this_month":
        return _days(tz, today.replace(day=1), today)

    if filter_name == "last_month":
        last_day = today.replace(day=1) - timedelta(days=1)
        return _days(tz, last_day.replace(day=1), last_day)

    if filter_name == "last_6_months":
        return _days(tz, _months_back(today, 5), today, Granularity.MONTH)

    if filter_name == "this_year":
        return _days(tz, date(today.year, 1, 1), today, Granularity.MONTH)

    if filter_name in ROLLING_HOURS:
        return DateRange(now - timedelta(hours=ROLLING_HOURS[filter_name]), now, Granularity.HOUR)

    if filter_name in ROLLING_MINUTES:
        return DateRange(
            now - timedelta(minutes=ROLLING_MINUTES[filter_name]), now, Granularity.MINUTE
        )

    raise ValidationError(f"filter must be one of: {', '.join(FILTERS)}", fields=["filter"])


def bucket_label(instant: datetime, granularity: Granularity, tz: pytz.BaseTzInfo) -> str:
    """Local-time label of the bucket holding `instant`"""
    return _utc(instant).astimezone(tz).strftime(LABEL_FORMATS[granularity])


def bucket_labels(date_range: DateRange, tz: pytz.BaseTzInfo) -> Optional[list[str]]:
    """
    Every bucket label between start and end, in order.

    Returns None when the range would produce more than MAX_FILLED_BUCKETS labels.
    """
    granularity = date_range.granularity
    start = date_range.start.astimezone(tz)
    end = date_range.end.astimezone(tz)

    if granularity == Granularity.MONTH:
        labels = []
        year, month = start.year, start.month
        while (year, month) <= (end.year, end.month):
            labels.append(f"{year:04d}-{month:02d}")
            month += 1
            if month > 12:
                month, year = 1, year + 1
            if len(labels) > MAX_FILLED_BUCKETS:
                return None
        return labels

    if granularity == Granularity.DAY:
        span = (end.date() - start.date()).days + 1
        if span > MAX_FILLED_BUCKETS:
            return None
        return [(start.date() + timedelta(days=i)).strftime(LABEL_FORMATS[granularity]) for i in range(span)]

    step = timedelta(hours=1) if granularity == Granularity.HOUR else timedelta(minutes=1)
    # Floor on the local clock, then walk UTC instants so the step stays fixed
    cursor = start.replace(second=0, microsecond=0)
    if granularity == Granularity.HOUR:
        cursor = cursor.replace(minute=0)
    cursor = cursor.astimezone(pytz.utc)
    labels = []
    while cursor <= date_range.end:
        label = bucket_label(cursor, granularity, tz)
        if not labels or labels[-1] != label:
            labels.append(label)
        if len(labels) > MAX_FILLED_BUCKETS:
            return None
        cursor += step
    return labels
