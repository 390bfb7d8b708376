import calendar
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def local_now() -> datetime:
    """Wall-clock time in the configured ledger timezone, without tzinfo."""
    return datetime.now(ZoneInfo(get_settings().timezone)).replace(tzinfo=None)


def as_day(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    first = month_start(d)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - date.resolution


def add_months(d: date, count: int) -> date:
    """Shift ``d`` by ``count`` calendar months, keeping the day of month.

    Days that do not exist in the target month snap to its last day, so
    2024-05-31 minus three months is 2024-02-29.
    """
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def month_to_date(as_of: Union[date, datetime]) -> Period:
    today = as_day(as_of)
    return Period("month_to_date", month_start(today), today)


def trailing_window_start(now: Union[date, datetime], months: int) -> date:
    return add_months(as_day(now), -months)


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> Period:
    today = today or local_now().date()
    if not period or period == "all":
        return Period("all", date(1970, 1, 1), date.max)
    if period == "last_month":
        last_month_end = month_start(today) - date.resolution
        return Period("last_month", month_start(last_month_end), last_month_end)
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)
    if period == "this_month":
        return Period("this_month", month_start(today), month_end(today))
    raise ValueError(f"Unknown period: {period}")
