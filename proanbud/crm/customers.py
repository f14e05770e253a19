"""
Proanbud — Customer Service
============================
Customer CRUD plus the only code path that mutates the denormalised
quote_count / won_count counters.

Counter changes are expressed as quote transitions (created, status
change, deleted) and keyed by "{quote_id}:{revision}". Each key is
recorded in the account's counter ledger, so replaying a transition is a
no-op. reconcile_counters() rebuilds every counter from the quotes.

Usage:
    from proanbud.crm.customers import CustomerService

    customers = CustomerService(store)
    customer_id = customers.create_customer(ctx, CustomerCreate(name="Ola Nordmann"))
"""
from __future__ import annotations

from typing import Dict, List, Optional

from models.crm_models import CustomerCreate, CustomerRecord, CustomerUpdate, QuoteStatus
from proanbud.crm.records import newest_first, parse_customer, parse_customers, parse_quotes
from proanbud.lib.account import COUNTER_LEDGER, CUSTOMERS, QUOTES, AccountContext
from proanbud.lib.document_store import SERVER_TIMESTAMP, DocumentStore
from proanbud.lib.errors import NotFoundError
from proanbud.lib.logger import setup_logger
from proanbud.lib.operations import store_operation

logger = setup_logger("customers")


def transition_delta(
    old_status: Optional[QuoteStatus],
    new_status: Optional[QuoteStatus],
) -> Dict[str, int]:
    """
    Counter changes for a quote moving from old_status to new_status.
    None means "does not exist" (before creation / after deletion).
    """
    quotes = (new_status is not None) - (old_status is not None)
    won = (new_status == QuoteStatus.WON) - (old_status == QuoteStatus.WON)
    return {"quote_count": int(quotes), "won_count": int(won)}


class CustomerService:
    """Customer records for one store."""

    def __init__(self, store: DocumentStore):
        self.store = store

    # ─── Reads ──────────────────────────────────────────────

    def _all(self, ctx: AccountContext) -> List[CustomerRecord]:
        snapshot = self.store.read_all(ctx.path(CUSTOMERS))
        return newest_first(parse_customers(snapshot.value))

    @store_operation("hente kunder")
    def list_customers(self, ctx: AccountContext) -> List[CustomerRecord]:
        """All customers, newest first."""
        return self._all(ctx)

    @store_operation("hente kunder")
    def list_customers_paginated(self, ctx: AccountContext, limit: int = 50) -> List[CustomerRecord]:
        return self._all(ctx)[:limit]

    @store_operation("søke kunder")
    def search_customers(self, ctx: AccountContext, term: str) -> List[CustomerRecord]:
        """Case-insensitive substring match on name or email."""
        needle = term.strip().lower()
        return [
            c for c in self._all(ctx)
            if needle in c.name.lower() or needle in c.email.lower()
        ]

    @store_operation("hente kunde")
    def get_customer(self, ctx: AccountContext, customer_id: str) -> CustomerRecord:
        snapshot = self.store.read_all(ctx.path(CUSTOMERS, customer_id))
        if not snapshot.exists:
            raise NotFoundError("kunde", customer_id, user_message="Kunde ikke funnet")
        return parse_customer(customer_id, snapshot.value)

    def find_id_by_name(self, ctx: AccountContext, name: str) -> Optional[str]:
        """Resolve a display name to a customer id (case-insensitive, first match)."""
        wanted = name.strip().lower()
        for customer in self._all(ctx):
            if customer.name.strip().lower() == wanted:
                return customer.id
        return None

    @store_operation("finne kunde")
    def find_customer_by_name(self, ctx: AccountContext, name: str) -> Optional[str]:
        return self.find_id_by_name(ctx, name)

    # ─── Writes ─────────────────────────────────────────────

    @store_operation("opprette kunde")
    def create_customer(self, ctx: AccountContext, data: CustomerCreate) -> str:
        customer_id = self.store.generate_id(ctx.path(CUSTOMERS))
        address = data.formatted_address()
        record = {
            "name": data.name.strip(),
            "email": data.email.strip().lower(),
            "phone": data.phone.strip(),
            "addresses": [address] if address else [],
            "quote_count": 0,
            "won_count": 0,
            "last_activity": SERVER_TIMESTAMP,
            "created_at": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        }
        if data.notes and data.notes.strip():
            record["notes"] = data.notes.strip()

        self.store.write(ctx.path(CUSTOMERS, customer_id), record)
        logger.info("Created customer %s for %s", customer_id, ctx.account_id)
        return customer_id

    @store_operation("oppdatere kunde")
    def update_customer(self, ctx: AccountContext, customer_id: str, updates: CustomerUpdate) -> None:
        path = ctx.path(CUSTOMERS, customer_id)
        if not self.store.read_all(path).exists:
            raise NotFoundError("kunde", customer_id, user_message="Kunde ikke funnet")

        data: Dict[str, object] = {"updated_at": SERVER_TIMESTAMP}
        if updates.name is not None:
            data["name"] = updates.name.strip()
        if updates.email is not None:
            data["email"] = updates.email.strip().lower()
        if updates.phone is not None:
            data["phone"] = updates.phone.strip()
        if updates.notes is not None:
            data["notes"] = updates.notes.strip() or None

        self.store.patch(path, data)

    @store_operation("slette kunde")
    def delete_customer(self, ctx: AccountContext, customer_id: str) -> None:
        self.store.remove(ctx.path(CUSTOMERS, customer_id))
        logger.info("Deleted customer %s for %s", customer_id, ctx.account_id)

    # ─── Counters ───────────────────────────────────────────

    def apply_transition(
        self,
        ctx: AccountContext,
        customer_id: str,
        idempotency_key: str,
        old_status: Optional[QuoteStatus],
        new_status: Optional[QuoteStatus],
    ) -> bool:
        """
        Apply the counter change for one quote transition, exactly once.

        Returns:
            True if counters changed, False for a replayed key, a no-op
            transition or an unknown customer.
        """
        delta = transition_delta(old_status, new_status)
        if not any(delta.values()):
            return False

        ledger_path = ctx.path(COUNTER_LEDGER, idempotency_key.replace("/", "_"))
        if self.store.read_all(ledger_path).exists:
            logger.info("Counter transition %s already applied", idempotency_key)
            return False

        path = ctx.path(CUSTOMERS, customer_id)
        snapshot = self.store.read_all(path)
        if not snapshot.exists:
            logger.warning("Customer %s not found for transition %s", customer_id, idempotency_key)
            return False

        current = snapshot.value
        self.store.patch(path, {
            "quote_count": max((current.get("quote_count") or 0) + delta["quote_count"], 0),
            "won_count": max((current.get("won_count") or 0) + delta["won_count"], 0),
            "last_activity": SERVER_TIMESTAMP,
            "updated_at": SERVER_TIMESTAMP,
        })
        self.store.write(ledger_path, {"customer_id": customer_id, "applied_at": SERVER_TIMESTAMP})
        return True

    @store_operation("oppdatere kundestatistikk")
    def apply_quote_transition(
        self,
        ctx: AccountContext,
        customer_id: str,
        idempotency_key: str,
        old_status: Optional[QuoteStatus],
        new_status: Optional[QuoteStatus],
    ) -> bool:
        return self.apply_transition(ctx, customer_id, idempotency_key, old_status, new_status)

    @store_operation("avstemme kundestatistikk")
    def reconcile_counters(self, ctx: AccountContext) -> Dict[str, Dict[str, int]]:
        """
        Recompute quote_count / won_count for every customer from the quotes.

        Returns:
            {customer_id: {"quote_count": n, "won_count": m}} for customers
            whose stored counters were corrected.
        """
        quotes = parse_quotes(self.store.read_all(ctx.path(QUOTES)).value)
        truth: Dict[str, Dict[str, int]] = {}
        for quote in quotes:
            if not quote.customer_id:
                continue
            counts = truth.setdefault(quote.customer_id, {"quote_count": 0, "won_count": 0})
            counts["quote_count"] += 1
            if quote.is_won:
                counts["won_count"] += 1

        corrected: Dict[str, Dict[str, int]] = {}
        for customer in self._all(ctx):
            expected = truth.get(customer.id, {"quote_count": 0, "won_count": 0})
            if (customer.quote_count, customer.won_count) == (
                expected["quote_count"], expected["won_count"],
            ):
                continue
            self.store.patch(ctx.path(CUSTOMERS, customer.id), {
                **expected,
                "updated_at": SERVER_TIMESTAMP,
            })
            corrected[customer.id] = expected

        if corrected:
            logger.warning("Reconciled counters for %d customers in %s", len(corrected), ctx.account_id)
        return corrected
