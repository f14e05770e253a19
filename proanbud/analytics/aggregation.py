"""
Proanbud — Analytics Aggregation
=================================
Folds every quote in an account into an AnalyticsSummary: totals, win
rate, per-job-type statistics and a gap-filled monthly series.

The fold is order-independent: each quote only adds into its own month
and job-type buckets, so shuffling the input never changes the result.

Usage:
    from proanbud.analytics.aggregation import aggregate

    summary = aggregate(quotes, customer_count=len(customers))
"""
from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, Optional, Tuple

from models.analytics_models import AnalyticsSummary, JobTypeStats, MonthBucket
from models.crm_models import UNKNOWN_JOB_TYPE, QuoteRecord
from proanbud.analytics.calendar_fill import fill_monthly_gaps, month_name
from proanbud.lib.document_store import now_ms
from proanbud.lib.logger import setup_logger

logger = setup_logger("aggregation")


def win_rate(won: int, total: int) -> int:
    """Percentage of won quotes, rounded half up; 0 for an empty set."""
    if total <= 0:
        return 0
    return (200 * won + total) // (2 * total)


def aggregate(
    quotes: Iterable[QuoteRecord],
    customer_count: int,
    today: Optional[date] = None,
) -> AnalyticsSummary:
    """
    Compute the analytics summary for one account.

    Args:
        quotes: Every quote visible to the account.
        customer_count: Number of customer records.
        today: Reference date for gap-filling (default: today).

    Returns:
        A complete AnalyticsSummary with last_updated set to now.
    """
    total_quotes = 0
    won_quotes = 0
    total_revenue = 0.0
    by_month: Dict[Tuple[int, int], MonthBucket] = {}
    by_job_type: Dict[str, JobTypeStats] = {}

    for quote in quotes:
        try:
            amount = quote.amount or 0
            job_type = (quote.job_type or "").strip() or UNKNOWN_JOB_TYPE
            month_key = (quote.quote_date.year, quote.quote_date.month)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Skipping quote %s in aggregation: %s", getattr(quote, "id", "?"), e)
            continue

        total_quotes += 1

        month = by_month.get(month_key)
        if month is None:
            month = MonthBucket(month=month_name(month_key[1]), year=month_key[0])
            by_month[month_key] = month
        month.quote_count += 1
        month.value_quoted += amount

        stats = by_job_type.get(job_type)
        if stats is None:
            stats = JobTypeStats(job_type=job_type)
            by_job_type[job_type] = stats
        stats.quote_count += 1
        stats.total_value += amount

        if quote.is_won:
            won_quotes += 1
            total_revenue += amount
            month.won_count += 1
            month.revenue_won += amount
            stats.won_count += 1
            stats.won_value += amount

    for stats in by_job_type.values():
        stats.win_rate = win_rate(stats.won_count, stats.quote_count)

    # Name breaks ties so equal totals still sort deterministically
    job_types = sorted(by_job_type.values(), key=lambda s: (-s.total_value, s.job_type))

    return AnalyticsSummary(
        total_customers=customer_count,
        total_quotes=total_quotes,
        won_quotes=won_quotes,
        total_revenue=total_revenue,
        win_rate=win_rate(won_quotes, total_quotes),
        monthly_series=fill_monthly_gaps(
            [by_month[key] for key in sorted(by_month)], today=today,
        ),
        daily_series=None,
        per_job_type_stats=job_types,
        last_updated=now_ms(),
    )
