"""
Proanbud — Quote Service
=========================
Quote CRUD for one account. Every write bumps the quote's revision, and
every create, status change, customer change or delete is forwarded to
CustomerService.apply_transition exactly once under the key
"{quote_id}:{revision}".

Usage:
    from proanbud.crm.quotes import QuoteService

    quotes = QuoteService(store, customers)
    quote_id = quotes.create_quote(ctx, QuoteCreate(...))
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from models.crm_models import QuoteCreate, QuoteRecord, QuoteStats, QuoteStatus, QuoteUpdate, parse_status
from proanbud.analytics.aggregation import win_rate
from proanbud.crm.customers import CustomerService
from proanbud.crm.records import newest_first, parse_quote, parse_quotes
from proanbud.lib.account import QUOTES, AccountContext
from proanbud.lib.document_store import SERVER_TIMESTAMP, DocumentStore
from proanbud.lib.errors import NotFoundError, ValidationError
from proanbud.lib.logger import setup_logger
from proanbud.lib.operations import store_operation

logger = setup_logger("quotes")

DEFAULT_PAGE_LIMIT = 50

# Fields a partial update may change but never clear
REQUIRED_FIELDS = ("customer_name", "project", "amount", "status", "quote_date")


def _text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class QuoteService:
    """Quotes for one store, keeping customer counters in step."""

    def __init__(self, store: DocumentStore, customers: CustomerService):
        self.store = store
        self.customers = customers

    # ─── Reads ──────────────────────────────────────────────

    def _all(self, ctx: AccountContext) -> List[QuoteRecord]:
        return newest_first(parse_quotes(self.store.read_all(ctx.path(QUOTES)).value))

    def _read(self, ctx: AccountContext, quote_id: str) -> QuoteRecord:
        snapshot = self.store.read_all(ctx.path(QUOTES, quote_id))
        if not snapshot.exists:
            raise NotFoundError("tilbud", quote_id, user_message="Tilbud ikke funnet")
        return parse_quote(quote_id, snapshot.value)

    @store_operation("hente tilbud")
    def list_quotes(self, ctx: AccountContext) -> List[QuoteRecord]:
        """All quotes, newest first."""
        return self._all(ctx)

    @store_operation("hente tilbud")
    def list_quotes_paginated(self, ctx: AccountContext, limit: int = DEFAULT_PAGE_LIMIT) -> List[QuoteRecord]:
        return self._all(ctx)[:limit]

    @store_operation("søke tilbud")
    def search_quotes(self, ctx: AccountContext, term: str) -> List[QuoteRecord]:
        """Case-insensitive match on customer name, project or description."""
        needle = term.strip().lower()
        return [
            q for q in self._all(ctx)
            if needle in q.customer_name.lower()
            or needle in q.project.lower()
            or needle in (q.description or "").lower()
        ]

    @store_operation("hente tilbud")
    def get_quotes_by_status(self, ctx: AccountContext, status) -> List[QuoteRecord]:
        """Quotes with one status, most recent quote_date first."""
        try:
            wanted = parse_status(status)
        except ValueError as e:
            raise ValidationError(f"Unknown quote status: {status}", field="status") from e
        matches = [q for q in self._all(ctx) if q.status == wanted]
        return sorted(matches, key=lambda q: q.quote_date, reverse=True)

    @store_operation("hente tilbud")
    def get_quote(self, ctx: AccountContext, quote_id: str) -> QuoteRecord:
        return self._read(ctx, quote_id)

    @store_operation("hente tilbudsstatistikk")
    def get_quote_stats(self, ctx: AccountContext) -> QuoteStats:
        stats = QuoteStats()
        for quote in self._all(ctx):
            stats.total_quotes += 1
            stats.total_value += quote.amount
            if quote.status == QuoteStatus.WON:
                stats.won_quotes += 1
                stats.won_value += quote.amount
            elif quote.status == QuoteStatus.LOST:
                stats.lost_quotes += 1
            else:
                stats.pending_quotes += 1
        stats.win_rate = win_rate(stats.won_quotes, stats.total_quotes)
        return stats

    # ─── Writes ─────────────────────────────────────────────

    def _resolve_customer(self, ctx: AccountContext, customer_id: Optional[str], name: str) -> Optional[str]:
        if customer_id:
            return customer_id
        resolved = self.customers.find_id_by_name(ctx, name)
        if resolved is None:
            logger.warning("No customer named %r in %s; quote stored without customer_id", name, ctx.account_id)
        return resolved

    def _transition(
        self,
        ctx: AccountContext,
        quote_id: str,
        revision: int,
        customer_id: Optional[str],
        old_status: Optional[QuoteStatus],
        new_status: Optional[QuoteStatus],
        suffix: str = "",
    ) -> None:
        if not customer_id:
            return
        key = f"{quote_id}:{revision}{suffix}"
        self.customers.apply_transition(ctx, customer_id, key, old_status, new_status)

    @store_operation("opprette tilbud")
    def create_quote(self, ctx: AccountContext, data: QuoteCreate) -> str:
        customer_id = self._resolve_customer(ctx, data.customer_id, data.customer_name)
        quote_id = self.store.generate_id(ctx.path(QUOTES))
        record: Dict[str, Any] = {
            "customer_id": customer_id,
            "customer_name": data.customer_name.strip(),
            "project": data.project.strip(),
            "job_type": (data.job_type or "").strip() or None,
            "amount": data.amount,
            "status": data.status.value,
            "quote_date": data.quote_date.isoformat(),
            "response_deadline": data.response_deadline.isoformat() if data.response_deadline else None,
            "description": _text(data.description),
            "notes": _text(data.notes),
            "revision": 1,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        }
        self.store.write(ctx.path(QUOTES, quote_id), record)
        self._transition(ctx, quote_id, 1, customer_id, None, data.status)
        logger.info("Created quote %s for %s", quote_id, ctx.account_id)
        return quote_id

    @store_operation("oppdatere tilbud")
    def update_quote(self, ctx: AccountContext, quote_id: str, updates: QuoteUpdate) -> QuoteRecord:
        """
        Apply a partial update. Returns the stored quote after the write.

        Raises:
            NotFoundError: quote does not exist.
            ValidationError: a required field was nulled or a required text
                field was blanked.
        """
        current = self._read(ctx, quote_id)
        fields = updates.model_dump(exclude_unset=True)
        for required in REQUIRED_FIELDS:
            if required in fields and fields[required] is None:
                raise ValidationError(f"{required} cannot be null", field=required)
        for required in ("customer_name", "project"):
            if required in fields and not fields[required].strip():
                raise ValidationError(f"{required} cannot be empty", field=required)

        revision = current.revision + 1
        data: Dict[str, Any] = {"revision": revision, "updated_at": SERVER_TIMESTAMP}
        for name, value in fields.items():
            if isinstance(value, QuoteStatus):
                value = value.value
            elif hasattr(value, "isoformat"):
                value = value.isoformat()
            elif isinstance(value, str):
                value = value.strip() or None
            data[name] = value

        new_customer = current.customer_id
        if "customer_id" in fields:
            new_customer = fields["customer_id"] or None
        elif "customer_name" in fields:
            new_customer = self.customers.find_id_by_name(ctx, fields["customer_name"])
            data["customer_id"] = new_customer
        new_status = fields.get("status") or current.status

        self.store.patch(ctx.path(QUOTES, quote_id), data)

        if new_customer != current.customer_id:
            self._transition(ctx, quote_id, revision, current.customer_id, current.status, None, ":from")
            self._transition(ctx, quote_id, revision, new_customer, None, new_status, ":to")
        elif new_status != current.status:
            self._transition(ctx, quote_id, revision, current.customer_id, current.status, new_status)

        return self._read(ctx, quote_id)

    @store_operation("oppdatere tilbud")
    def update_quote_status(self, ctx: AccountContext, quote_id: str, status) -> QuoteRecord:
        try:
            wanted = parse_status(status)
        except ValueError as e:
            raise ValidationError(f"Unknown quote status: {status}", field="status") from e
        return self.update_quote(ctx, quote_id, QuoteUpdate(status=wanted))

    @store_operation("slette tilbud")
    def delete_quote(self, ctx: AccountContext, quote_id: str) -> None:
        current = self._read(ctx, quote_id)
        self.store.remove(ctx.path(QUOTES, quote_id))
        self._transition(ctx, quote_id, current.revision + 1, current.customer_id, current.status, None)
        logger.info("Deleted quote %s for %s", quote_id, ctx.account_id)
