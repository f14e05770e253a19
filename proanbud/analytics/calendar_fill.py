"""
Proanbud — Calendar Gap-Filling
================================
Charts need a continuous axis, but the analytics fold only emits buckets
for periods that have quotes. These helpers synthesize zero-valued
months/days and overlay the real buckets on top.

Month buckets are keyed by (year, month name) using the fixed Norwegian
short-name table below; locale settings never affect the labels.

Usage:
    from proanbud.analytics.calendar_fill import fill_monthly_gaps, fill_daily_gaps

    months = fill_monthly_gaps(summary.monthly_series)
    days = fill_daily_gaps(quotes, days_back=30)
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from models.analytics_models import DayBucket, MonthBucket
from models.crm_models import QuoteRecord
from proanbud.lib.errors import UnknownMonthError
from proanbud.lib.logger import setup_logger

logger = setup_logger("calendar_fill")

NB_MONTHS = ("jan", "feb", "mar", "apr", "mai", "jun",
             "jul", "aug", "sep", "okt", "nov", "des")

# Months shown when an account has no quotes, and the minimum span otherwise
TRAILING_MONTHS = 6

MonthKey = Tuple[int, int]  # (year, month 1-12)


def month_name(month: int) -> str:
    """Short Norwegian name for a 1-based month number."""
    return NB_MONTHS[month - 1]


def month_index(name: str) -> int:
    """
    0-based index of a short month name.

    Raises:
        UnknownMonthError: name is not in the calendar table.
    """
    key = (name or "").strip().lower().rstrip(".")
    try:
        return NB_MONTHS.index(key)
    except ValueError:
        raise UnknownMonthError(name) from None


def bucket_key(bucket: MonthBucket) -> MonthKey:
    return bucket.year, month_index(bucket.month) + 1


def shift_month(key: MonthKey, delta: int) -> MonthKey:
    year, month = key
    total = year * 12 + (month - 1) + delta
    return total // 12, total % 12 + 1


def day_label(day: date) -> str:
    """Chart label in nb-NO style, e.g. "24. sep"."""
    return f"{day.day}. {month_name(day.month)}"


def generate_placeholder_months(start: MonthKey, end: MonthKey) -> List[MonthBucket]:
    """Zero-valued buckets for every month from start to end inclusive."""
    months: List[MonthBucket] = []
    current = start
    while current <= end:
        months.append(MonthBucket(month=month_name(current[1]), year=current[0]))
        current = shift_month(current, 1)
    return months


def generate_placeholder_days(start: date, end: date) -> List[DayBucket]:
    """Zero-valued buckets for every day from start to end inclusive."""
    days: List[DayBucket] = []
    current = start
    while current <= end:
        days.append(DayBucket(date=day_label(current), full_date=current.isoformat()))
        current += timedelta(days=1)
    return days


def trailing_months(count: int, today: Optional[date] = None) -> List[MonthBucket]:
    today = today or date.today()
    end = (today.year, today.month)
    return generate_placeholder_months(shift_month(end, -(count - 1)), end)


def fill_monthly_gaps(
    existing: Iterable[MonthBucket],
    today: Optional[date] = None,
) -> List[MonthBucket]:
    """
    Continuous monthly series covering at least the trailing six months.

    Starts at the earlier of the first real bucket and five months before
    today, ends at today's month, and overlays real buckets by (year, month).
    Real buckets after today are kept. Buckets with an unrecognised month
    name are logged and dropped.
    """
    today = today or date.today()

    real: Dict[MonthKey, MonthBucket] = {}
    for bucket in existing:
        try:
            key = bucket_key(bucket)
        except UnknownMonthError as e:
            logger.warning("Dropping month bucket %s/%s: %s", bucket.month, bucket.year, e)
            continue
        real[key] = bucket.model_copy()

    if not real:
        return trailing_months(TRAILING_MONTHS, today)

    end = (today.year, today.month)
    start = min(min(real), shift_month(end, -(TRAILING_MONTHS - 1)))

    merged: Dict[MonthKey, MonthBucket] = {
        (placeholder.year, month_index(placeholder.month) + 1): placeholder
        for placeholder in generate_placeholder_months(start, end)
    }
    merged.update(real)

    return [merged[key] for key in sorted(merged)]


def fill_daily_gaps(
    quotes: Iterable[QuoteRecord],
    days_back: int,
    today: Optional[date] = None,
) -> List[DayBucket]:
    """
    One bucket per day for the last days_back days (today inclusive) with
    every quote dated inside the window accumulated into its day.
    """
    today = today or date.today()
    start = today - timedelta(days=days_back - 1)

    by_day: Dict[str, DayBucket] = {
        day.full_date: day for day in generate_placeholder_days(start, today)
    }

    for quote in quotes:
        if not start <= quote.quote_date <= today:
            continue
        day = by_day[quote.quote_date.isoformat()]
        day.quote_count += 1
        day.value_quoted += quote.amount
        if quote.is_won:
            day.won_count += 1
            day.revenue_won += quote.amount

    return [by_day[key] for key in sorted(by_day)]
