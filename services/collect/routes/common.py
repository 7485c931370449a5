# services/collect/routes/common.py
from typing import NamedTuple, Optional

import pytz
from fastapi import Depends, Query

from services.collect.auth import get_settings
from services.collect.date_ranges import DateRange, get_timezone, resolve_date_range
from shared.config import Settings


class ReportWindow(NamedTuple):
    filter_name: str
    date_range: Optional[DateRange]
    tz: pytz.BaseTzInfo

    @property
    def tz_name(self) -> str:
        return self.tz.zone

    def describe(self) -> str:
        if self.date_range is None:
            return "All time"
        fmt = "%d-%m-%Y %H:%M"
        start = self.date_range.start.astimezone(self.tz).strftime(fmt)
        end = self.date_range.end.astimezone(self.tz).strftime(fmt)
        return f"{self.filter_name} ({start} to {end} {self.tz_name})"


def report_window(default_filter: str):
    """Dependency factory reading `filter`, `startDate` and `endDate` query parameters"""

    async def dependency(
        filter_name: str = Query(default_filter, alias="filter"),
        start_date: Optional[str] = Query(None, alias="startDate"),
        end_date: Optional[str] = Query(None, alias="endDate"),
        settings: Settings = Depends(get_settings),
    ) -> ReportWindow:
        tz = get_timezone(settings.report_timezone)
        date_range = resolve_date_range(filter_name, start=start_date, end=end_date, tz=tz)
        return ReportWindow(filter_name, date_range, tz)

    return dependency


def listing(rows: list[dict]) -> dict:
    return {"count": len(rows), "data": rows}


async def report_timezone(settings: Settings = Depends(get_settings)) -> pytz.BaseTzInfo:
    return get_timezone(settings.report_timezone)
