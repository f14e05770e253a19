"""
Proanbud — Analytics Service
=============================
On-demand analytics for one account: the cached summary under
accounts/{id}/analytics, its time-period views and the dashboard
read-models.

The cache is a derived value. A missing cache is computed and stored; one
older than ANALYTICS_MAX_AGE_SECONDS is recomputed before it is returned.

Usage:
    from proanbud.analytics.service import AnalyticsService

    analytics = AnalyticsService(store)
    summary = analytics.get_analytics(ctx)
    view = analytics.get_period_view(ctx, "30dager")
"""
from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import List, Optional

import pydantic
from dotenv import load_dotenv

from models.analytics_models import ActivityItem, AnalyticsSummary, ChartPoint, KpiCard, TimePeriod
from proanbud.analytics.aggregation import aggregate
from proanbud.analytics.dashboard import activity_feed, chart_data, dashboard_kpis
from proanbud.analytics.periods import filter_by_period
from proanbud.crm.records import parse_customers, parse_quotes
from proanbud.crm.user_settings import UserSettingsService
from proanbud.lib.account import ANALYTICS, CUSTOMERS, PROFILE, QUOTES, AccountContext
from proanbud.lib.document_store import SERVER_TIMESTAMP, DocumentStore, now_ms
from proanbud.lib.errors import ValidationError
from proanbud.lib.logger import setup_logger
from proanbud.lib.operations import store_operation

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(PROJECT_ROOT / ".env")

logger = setup_logger("analytics_service")

ANALYTICS_MAX_AGE_SECONDS = int(os.getenv("ANALYTICS_MAX_AGE_SECONDS", "3600"))


class AnalyticsService:
    def __init__(self, store: DocumentStore, max_age_seconds: int = None,
                 user_settings: UserSettingsService = None):
        self.store = store
        self.user_settings = user_settings or UserSettingsService(store)
        self.max_age_seconds = (
            ANALYTICS_MAX_AGE_SECONDS if max_age_seconds is None else max_age_seconds
        )

    # ─── Internals ──────────────────────────────────────────

    def _recompute(self, ctx: AccountContext) -> AnalyticsSummary:
        quotes = parse_quotes(self.store.read_all(ctx.path(QUOTES)).value)
        customers = parse_customers(self.store.read_all(ctx.path(CUSTOMERS)).value)
        summary = aggregate(quotes, customer_count=len(customers))
        self.store.write(ctx.path(ANALYTICS), summary.model_dump(mode="json"))
        logger.info(
            "Analytics updated for %s: %d quotes, %d won, win rate %d%%",
            ctx.account_id, summary.total_quotes, summary.won_quotes, summary.win_rate,
        )
        return summary

    def _cached(self, ctx: AccountContext) -> Optional[AnalyticsSummary]:
        snapshot = self.store.read_all(ctx.path(ANALYTICS))
        if not snapshot.exists:
            return None
        try:
            return AnalyticsSummary.model_validate(snapshot.value)
        except pydantic.ValidationError as e:
            logger.warning("Cached analytics for %s unreadable, recomputing: %s", ctx.account_id, e)
            return None

    def _current(self, ctx: AccountContext) -> AnalyticsSummary:
        cached = self._cached(ctx)
        if cached is None:
            return self._recompute(ctx)
        if cached.last_updated < now_ms() - self.max_age_seconds * 1000:
            logger.info("Cached analytics for %s are stale", ctx.account_id)
            return self._recompute(ctx)
        return cached

    # ─── Operations ─────────────────────────────────────────

    @store_operation("initialisere brukerdata")
    def initialize_account(self, ctx: AccountContext, name: str = "") -> bool:
        """
        Create the account's profile and an empty analytics summary on first
        login; afterwards only bump last_login. Default user settings are
        written on any login where the account has none.

        Returns:
            True if the account was created by this call.
        """
        existed = self.store.read_all(ctx.root).exists
        self.user_settings.initialize_user_settings(ctx, name=name, email=ctx.user_email)
        if existed:
            self.store.patch(ctx.path(PROFILE), {"last_login": SERVER_TIMESTAMP})
            return False

        self.store.write(ctx.path(PROFILE), {
            "email": ctx.user_email,
            "created_at": SERVER_TIMESTAMP,
            "last_login": SERVER_TIMESTAMP,
        })
        empty = AnalyticsSummary(last_updated=now_ms())
        self.store.write(ctx.path(ANALYTICS), empty.model_dump(mode="json"))
        logger.info("Initialized account %s", ctx.account_id)
        return True

    @store_operation("oppdatere analyser")
    def update_analytics(self, ctx: AccountContext) -> AnalyticsSummary:
        return self._recompute(ctx)

    @store_operation("hente analyser")
    def get_analytics(self, ctx: AccountContext) -> AnalyticsSummary:
        return self._current(ctx)

    @store_operation("hente analyser")
    def get_period_view(self, ctx: AccountContext, period, today: date = None) -> AnalyticsSummary:
        try:
            period = TimePeriod.parse(period)
        except ValueError as e:
            raise ValidationError(f"Unknown time period: {period}", field="period") from e

        summary = self._current(ctx)
        raw_quotes = None
        if period.days is not None:
            raw_quotes = parse_quotes(self.store.read_all(ctx.path(QUOTES)).value)
        return filter_by_period(summary, period, raw_quotes=raw_quotes, today=today)

    @store_operation("hente dashboard KPIer")
    def get_dashboard_kpis(self, ctx: AccountContext, today: date = None) -> List[KpiCard]:
        return dashboard_kpis(self._current(ctx), today=today)

    @store_operation("hente diagram data")
    def get_chart_data(self, ctx: AccountContext) -> List[ChartPoint]:
        return chart_data(self._current(ctx))

    @store_operation("hente aktivitets feed")
    def get_activity_feed(self, ctx: AccountContext, today: date = None) -> List[ActivityItem]:
        quotes = parse_quotes(self.store.read_all(ctx.path(QUOTES)).value)
        customers = parse_customers(self.store.read_all(ctx.path(CUSTOMERS)).value)
        return activity_feed(quotes, customers, today=today)
