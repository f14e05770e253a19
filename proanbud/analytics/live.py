"""
Proanbud — Live Analytics Subscription
=======================================
Keeps an account's analytics summary current while a dashboard is open.

Subscribes to the quotes and customers collections. Every change to either
recomputes the full summary from the latest snapshots, writes it through to
accounts/{id}/analytics and hands it to on_update. Failures are logged and
reported as on_update(None); nothing is raised back into the store.

Usage:
    from proanbud.analytics.live import subscribe_to_analytics

    unsubscribe = subscribe_to_analytics(store, ctx, on_update=print)
    ...
    unsubscribe()
"""
from __future__ import annotations

import threading
from typing import Callable, List, Optional

from models.analytics_models import AnalyticsSummary
from models.crm_models import QuoteRecord
from proanbud.analytics.aggregation import aggregate
from proanbud.crm.records import parse_customers, parse_quotes
from proanbud.lib.account import ANALYTICS, CUSTOMERS, QUOTES, AccountContext
from proanbud.lib.document_store import DocumentStore, Snapshot
from proanbud.lib.logger import setup_logger

logger = setup_logger("live_analytics")

UpdateCallback = Callable[[Optional[AnalyticsSummary]], None]

_UNSET = object()


class AnalyticsSubscription:
    """
    One live analytics feed for one account.

    Each recompute takes a sequence number; a result older than one already
    delivered is dropped without being persisted or delivered.
    """

    def __init__(self, store: DocumentStore, ctx: AccountContext, on_update: UpdateCallback):
        self.store = store
        self.ctx = ctx
        self.on_update = on_update

        self._quotes = _UNSET
        self._customers = _UNSET
        self._sequence = 0
        self._delivered = 0
        self._closed = False
        self._lock = threading.Lock()
        self._handles: List[str] = []
        self.latest_quotes: List[QuoteRecord] = []

    def start(self) -> "AnalyticsSubscription":
        self._handles.append(self.store.subscribe(self.ctx.path(QUOTES), self._on_quotes))
        self._handles.append(self.store.subscribe(self.ctx.path(CUSTOMERS), self._on_customers))
        logger.info("Live analytics started for %s", self.ctx.account_id)
        return self

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        for handle in self._handles:
            self.store.unsubscribe(handle)
        self._handles.clear()
        logger.info("Live analytics stopped for %s", self.ctx.account_id)

    @property
    def closed(self) -> bool:
        return self._closed

    # ─── Store callbacks ────────────────────────────────────

    def _on_quotes(self, snapshot: Snapshot) -> None:
        self._quotes = snapshot.value
        self._recompute()

    def _on_customers(self, snapshot: Snapshot) -> None:
        self._customers = snapshot.value
        self._recompute()

    def _recompute(self) -> None:
        if self._closed:
            return
        # Both collections deliver their current value on subscribe
        if self._quotes is _UNSET or self._customers is _UNSET:
            return

        with self._lock:
            self._sequence += 1
            sequence = self._sequence

        try:
            quotes = parse_quotes(self._quotes)
            customers = parse_customers(self._customers)
            summary = aggregate(quotes, customer_count=len(customers))
        except Exception as e:
            logger.error("Analytics recompute %d failed for %s: %s", sequence, self.ctx.account_id, e)
            if self._claim(sequence):
                self._deliver(sequence, None)
            return

        if not self._claim(sequence):
            return
        self.latest_quotes = quotes

        try:
            self.store.write(self.ctx.path(ANALYTICS), summary.model_dump(mode="json"))
        except Exception as e:
            logger.error("Could not persist analytics for %s: %s", self.ctx.account_id, e)
            self._deliver(sequence, None)
            return

        self._deliver(sequence, summary)

    def _claim(self, sequence: int) -> bool:
        """Mark sequence as delivered unless a newer result got there first."""
        with self._lock:
            if self._closed or sequence < self._delivered:
                logger.debug("Discarding stale analytics result %d", sequence)
                return False
            self._delivered = sequence
            return True

    def _deliver(self, sequence: int, summary: Optional[AnalyticsSummary]) -> None:
        if self._closed:
            return
        try:
            self.on_update(summary)
        except Exception as e:
            logger.error("Analytics listener failed on result %d: %s", sequence, e)


def subscribe_to_analytics(
    store: DocumentStore,
    ctx: AccountContext,
    on_update: UpdateCallback,
) -> Callable[[], None]:
    """
    Start a live analytics feed and return its unsubscribe function.

    After unsubscribe() returns, on_update is never called again.
    """
    subscription = AnalyticsSubscription(store, ctx, on_update).start()
    return subscription.close
