from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from recurrence import days_in_month, local_today


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def month_start(value: date) -> date:
    return value.replace(day=1)


def month_end(value: date) -> date:
    return value.replace(day=days_in_month(value.year, value.month))


def previous_month(value: date) -> date:
    """First day of the month before ``value``."""
    return month_start(month_start(value) - date.resolution)


def parse_month(value: Optional[str], *, today: Optional[date] = None) -> date:
    """Parse ``YYYY-MM`` into the first day of that month."""
    if not value:
        return month_start(today or local_today())
    try:
        year, month = (int(part) for part in value.split("-")[:2])
        return date(year, month, 1)
    except ValueError as exc:
        raise ValueError(f"Invalid month: {value}") from exc


def resolve_period(
    period: Optional[str],
    start: Optional[str],
    end: Optional[str],
    *,
    today: Optional[date] = None,
) -> Period:
    today = today or local_today()
    if period == "all":
        return Period("all", date(1970, 1, 1), today)
    if period == "last_month":
        last_month_start = previous_month(today)
        return Period("last_month", last_month_start, month_end(last_month_start))
    if period == "last_30_days":
        return Period("last_30_days", today - timedelta(days=29), today)
    if period == "custom":
        if not start or not end:
            raise ValueError("Custom period requires start and end dates")
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
        if start_date > end_date:
            raise ValueError("Start date must be before end date")
        return Period("custom", start_date, end_date)

    return Period("this_month", month_start(today), month_end(today))
