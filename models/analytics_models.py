"""
Proanbud — Analytics Pydantic Models
=====================================

Derived analytics summary (cached under accounts/{id}/analytics) and the
dashboard read-models built from it.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class MonthBucket(BaseModel):
    """One calendar month; month is the Norwegian short name ("jan" … "des")."""
    month: str
    year: int
    revenue_won: float = 0
    value_quoted: float = 0
    quote_count: int = 0
    won_count: int = 0


class DayBucket(BaseModel):
    """One calendar day; date is the chart label ("24. sep"), full_date ISO."""
    date: str
    full_date: str
    revenue_won: float = 0
    value_quoted: float = 0
    quote_count: int = 0
    won_count: int = 0


class JobTypeStats(BaseModel):
    job_type: str
    quote_count: int = 0
    won_count: int = 0
    win_rate: int = 0
    total_value: float = 0
    won_value: float = 0


class AnalyticsSummary(BaseModel):
    """Pure fold over every quote in an account; regenerable at any time."""
    total_customers: int = 0
    total_quotes: int = 0
    won_quotes: int = 0
    total_revenue: float = 0
    win_rate: int = 0
    monthly_series: List[MonthBucket] = Field(default_factory=list)
    daily_series: Optional[List[DayBucket]] = None
    per_job_type_stats: List[JobTypeStats] = Field(default_factory=list)
    last_updated: int = 0


class TimePeriod(str, Enum):
    SEVEN_DAYS = "7dager"
    THIRTY_DAYS = "30dager"
    ONE_YEAR = "1aar"
    ALL_TIME = "frastart"

    @classmethod
    def parse(cls, value: str) -> "TimePeriod":
        """Accept the stored names and the short aliases 7d/30d/1y/all."""
        if isinstance(value, cls):
            return value
        aliases = {"7d": cls.SEVEN_DAYS, "30d": cls.THIRTY_DAYS,
                   "1y": cls.ONE_YEAR, "all": cls.ALL_TIME}
        key = str(value).strip().lower()
        if key in aliases:
            return aliases[key]
        return cls(key)

    @property
    def days(self) -> Optional[int]:
        return {TimePeriod.SEVEN_DAYS: 7, TimePeriod.THIRTY_DAYS: 30}.get(self)


# ─── Dashboard read-models ──────────────────────────────────

class KpiCard(BaseModel):
    title: str
    value: str
    change: str
    icon: str


class ChartPoint(BaseModel):
    date: str
    revenue_won: float = 0
    value_quoted: float = 0


class ActivityItem(BaseModel):
    id: str
    type: str
    title: str
    description: str
    timestamp: str
    amount: Optional[float] = None
