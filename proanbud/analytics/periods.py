"""
Proanbud — Time-Period Filter
==============================
Narrows an AnalyticsSummary to the window the dashboard asks for. A view
is either daily (7/30 days) or monthly (1 year, all time), never both,
and its totals are re-summed from the buckets inside the window.

The stored summary is never modified; every call returns a new view.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence, Union

from models.analytics_models import AnalyticsSummary, DayBucket, MonthBucket, TimePeriod
from models.crm_models import QuoteRecord
from proanbud.analytics.aggregation import win_rate
from proanbud.analytics.calendar_fill import (
    bucket_key,
    fill_daily_gaps,
    fill_monthly_gaps,
    generate_placeholder_days,
    trailing_months,
)
from proanbud.lib.errors import UnknownMonthError
from proanbud.lib.logger import setup_logger

logger = setup_logger("periods")

YEAR_MONTHS = 12


def _totals(buckets: Iterable[Union[DayBucket, MonthBucket]]) -> dict:
    revenue = 0.0
    quotes = 0
    won = 0
    for bucket in buckets:
        revenue += bucket.revenue_won
        quotes += bucket.quote_count
        won += bucket.won_count
    return {
        "total_revenue": revenue,
        "total_quotes": quotes,
        "won_quotes": won,
        "win_rate": win_rate(won, quotes),
    }


def _daily_view(
    summary: AnalyticsSummary,
    days_back: int,
    raw_quotes: Optional[Sequence[QuoteRecord]],
    today: date,
) -> AnalyticsSummary:
    if raw_quotes is not None:
        days = fill_daily_gaps(raw_quotes, days_back, today=today)
    else:
        days = generate_placeholder_days(today - timedelta(days=days_back - 1), today)
    return summary.model_copy(
        deep=True,
        update={**_totals(days), "daily_series": days, "monthly_series": []},
    )


def _year_view(summary: AnalyticsSummary, today: date) -> AnalyticsSummary:
    existing = {}
    for bucket in summary.monthly_series:
        try:
            existing[bucket_key(bucket)] = bucket
        except UnknownMonthError as e:
            logger.warning("Ignoring month bucket %s/%s: %s", bucket.month, bucket.year, e)

    months: List[MonthBucket] = []
    for placeholder in trailing_months(YEAR_MONTHS, today):
        real = existing.get(bucket_key(placeholder))
        months.append(real.model_copy() if real else placeholder)

    return summary.model_copy(
        deep=True,
        update={**_totals(months), "monthly_series": months, "daily_series": None},
    )


def filter_by_period(
    summary: AnalyticsSummary,
    period: Union[TimePeriod, str],
    raw_quotes: Optional[Sequence[QuoteRecord]] = None,
    today: Optional[date] = None,
) -> AnalyticsSummary:
    """
    Derive the view of summary for a time window.

    Args:
        summary: Full analytics summary (left untouched).
        period: 7dager / 30dager / 1aar / frastart (or 7d / 30d / 1y / all).
        raw_quotes: Quote records; needed for real daily buckets.
            Without them the daily views are all zeros.
        today: Reference date (default: today).

    Returns:
        A new AnalyticsSummary restricted to the window.
    """
    period = TimePeriod.parse(period)
    today = today or date.today()

    if period.days is not None:
        return _daily_view(summary, period.days, raw_quotes, today)

    if period == TimePeriod.ONE_YEAR:
        return _year_view(summary, today)

    return summary.model_copy(
        deep=True,
        update={
            "monthly_series": fill_monthly_gaps(summary.monthly_series, today=today),
            "daily_series": None,
        },
    )
