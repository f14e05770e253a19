"""
Proanbud — Dashboard Read-Models
=================================
KPI cards, the main revenue chart and the recent-activity feed, all
derived from an AnalyticsSummary or the raw quote/customer records.
Labels and formatting are Norwegian (nb-NO).
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import List, Optional, Sequence

from models.analytics_models import ActivityItem, AnalyticsSummary, ChartPoint, KpiCard, MonthBucket
from models.crm_models import CustomerRecord, QuoteRecord, QuoteStatus
from proanbud.analytics.aggregation import win_rate
from proanbud.analytics.calendar_fill import NB_MONTHS, bucket_key, month_name, shift_month
from proanbud.lib.errors import UnknownMonthError
from proanbud.lib.logger import setup_logger

logger = setup_logger("dashboard")

NBSP = "\u00a0"
CHART_MONTHS = 12
FEED_SIZE = 5


# ─── Formatting ─────────────────────────────────────────────

def format_nok(amount: float) -> str:
    """1234567 → "1 234 567 kr" (non-breaking space as thousands separator)."""
    amount = amount or 0
    if float(amount).is_integer():
        text = f"{int(amount):,}"
    else:
        text = f"{amount:,.2f}".replace(".", "#")
    return text.replace(",", NBSP).replace("#", ",") + " kr"


def percentage_change(current: float, previous: float) -> float:
    """Relative change in percent; from zero it is 100 (growth) or 0."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def format_change(change: float) -> str:
    sign = "+" if change >= 0 else ""
    return f"{sign}{change:.1f}%"


def relative_day_label(when: date, today: Optional[date] = None) -> str:
    """Norwegian relative day: "I dag", "1 dag siden", "N dager siden", then dd.mm.yyyy."""
    today = today or date.today()
    days = abs((today - when).days)
    if days == 0:
        return "I dag"
    if days == 1:
        return "1 dag siden"
    if days < 7:
        return f"{days} dager siden"
    return when.strftime("%d.%m.%Y")


# ─── KPI cards ──────────────────────────────────────────────

def _find_month(series: Sequence[MonthBucket], year: int, month: int) -> Optional[MonthBucket]:
    for bucket in series:
        try:
            if bucket_key(bucket) == (year, month):
                return bucket
        except UnknownMonthError as e:
            logger.warning("Ignoring month bucket %s/%s: %s", bucket.month, bucket.year, e)
    return None


def dashboard_kpis(summary: Optional[AnalyticsSummary], today: Optional[date] = None) -> List[KpiCard]:
    """
    The four dashboard cards with month-over-month change.

    Revenue, quote and won changes are relative; the win-rate change is the
    difference in percentage points between this month and last month.
    """
    if summary is None:
        return [
            KpiCard(title="Total Omsetning", value=format_nok(0), change="+0.0%", icon="DollarSign"),
            KpiCard(title="Aktive Tilbud", value="0", change="+0.0%", icon="FileText"),
            KpiCard(title="Vunnede Tilbud", value="0", change="+0.0%", icon="Award"),
            KpiCard(title="Treffprosent", value="0.0%", change="+0.0%", icon="Target"),
        ]

    today = today or date.today()
    this_key = (today.year, today.month)
    last_key = shift_month(this_key, -1)
    current = _find_month(summary.monthly_series, *this_key) or MonthBucket(month=month_name(this_key[1]), year=this_key[0])
    previous = _find_month(summary.monthly_series, *last_key) or MonthBucket(month=month_name(last_key[1]), year=last_key[0])

    rate_change = (
        win_rate(current.won_count, current.quote_count)
        - win_rate(previous.won_count, previous.quote_count)
    )

    return [
        KpiCard(
            title="Total Omsetning",
            value=format_nok(summary.total_revenue),
            change=format_change(percentage_change(current.revenue_won, previous.revenue_won)),
            icon="DollarSign",
        ),
        KpiCard(
            title="Aktive Tilbud",
            value=str(summary.total_quotes - summary.won_quotes),
            change=format_change(percentage_change(current.quote_count, previous.quote_count)),
            icon="FileText",
        ),
        KpiCard(
            title="Vunnede Tilbud",
            value=str(summary.won_quotes),
            change=format_change(percentage_change(current.won_count, previous.won_count)),
            icon="Award",
        ),
        KpiCard(
            title="Treffprosent",
            value=f"{float(summary.win_rate):.1f}%",
            change=format_change(rate_change),
            icon="Target",
        ),
    ]


# ─── Chart ──────────────────────────────────────────────────

def chart_data(summary: Optional[AnalyticsSummary]) -> List[ChartPoint]:
    """Last 12 months of revenue vs. quoted value, oldest first."""
    buckets = []
    for bucket in (summary.monthly_series if summary else []):
        try:
            buckets.append((bucket_key(bucket), bucket))
        except UnknownMonthError as e:
            logger.warning("Ignoring month bucket %s/%s: %s", bucket.month, bucket.year, e)

    if not buckets:
        return [ChartPoint(date=name) for name in NB_MONTHS]

    buckets.sort(key=lambda item: item[0])
    return [
        ChartPoint(date=bucket.month, revenue_won=bucket.revenue_won, value_quoted=bucket.value_quoted)
        for _, bucket in buckets[-CHART_MONTHS:]
    ]


# ─── Activity feed ──────────────────────────────────────────

_QUOTE_ACTIVITY = {
    QuoteStatus.WON: ("tilbud_vunnet", "Tilbud vunnet"),
    QuoteStatus.LOST: ("tilbud_tapt", "Tilbud tapt"),
    QuoteStatus.PENDING: ("tilbud_sendt", "Tilbud sendt"),
}


def activity_feed(
    quotes: Sequence[QuoteRecord],
    customers: Sequence[CustomerRecord],
    today: Optional[date] = None,
    limit: int = FEED_SIZE,
) -> List[ActivityItem]:
    """Most recent quote and customer events, newest first."""
    events = []
    for quote in quotes:
        kind, title = _QUOTE_ACTIVITY[quote.status]
        item = ActivityItem(
            id=f"{kind}_{quote.id}",
            type=kind,
            title=title,
            description=f"{quote.project} - {quote.customer_name}",
            timestamp=relative_day_label(quote.quote_date, today),
            amount=quote.amount,
        )
        events.append((quote.quote_date, item))

    for customer in customers:
        if not customer.created_at:
            continue
        created = datetime.fromtimestamp(customer.created_at / 1000, tz=timezone.utc).date()
        item = ActivityItem(
            id=f"ny_kunde_{customer.id}",
            type="ny_kunde",
            title="Ny kunde registrert",
            description=customer.name,
            timestamp=relative_day_label(created, today),
        )
        events.append((created, item))

    events.sort(key=lambda event: event[0], reverse=True)
    return [item for _, item in events[:limit]]
