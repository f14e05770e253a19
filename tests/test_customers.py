"""Tests for CustomerService."""

import pytest

from models.crm_models import CustomerCreate, CustomerUpdate, QuoteStatus
from proanbud.crm.customers import transition_delta
from proanbud.lib.account import AccountContext
from proanbud.lib.errors import AuthorizationError, ConnectivityError, NotFoundError


class TestTransitionDelta:
    def test_create_won(self):
        assert transition_delta(None, QuoteStatus.WON) == {"quote_count": 1, "won_count": 1}

    def test_won_to_lost(self):
        assert transition_delta(QuoteStatus.WON, QuoteStatus.LOST) == {"quote_count": 0, "won_count": -1}

    def test_delete_pending(self):
        assert transition_delta(QuoteStatus.PENDING, None) == {"quote_count": -1, "won_count": 0}


class TestCustomerService:
    def test_create_normalises_fields(self, customers, ctx):
        customer_id = customers.create_customer(ctx, CustomerCreate(
            name="  Kari Hansen ", email="Kari@Example.NO", phone=" 99 88 77 66 ",
            address="Storgata 1", postal_code="0155", city="Oslo",
        ))
        customer = customers.get_customer(ctx, customer_id)
        assert customer.name == "Kari Hansen"
        assert customer.email == "kari@example.no"
        assert customer.phone == "99 88 77 66"
        assert customer.addresses == ["Storgata 1, 0155 Oslo"]
        assert customer.quote_count == 0
        assert customer.created_at

    def test_list_newest_first(self, customers, ctx, store):
        store.write(ctx.path("customers", "old"), {"name": "Eldre", "created_at": 1000})
        store.write(ctx.path("customers", "new"), {"name": "Nyere", "created_at": 2000})
        assert [c.id for c in customers.list_customers(ctx)] == ["new", "old"]

    def test_invalid_record_skipped(self, customers, ctx, store):
        store.write(ctx.path("customers", "good"), {"name": "Ola"})
        store.write(ctx.path("customers", "bad"), {"email": "no-name@example.no"})
        assert [c.id for c in customers.list_customers(ctx)] == ["good"]

    def test_search_by_name_or_email(self, customers, ctx):
        customers.create_customer(ctx, CustomerCreate(name="Ola Nordmann", email="ola@firma.no"))
        customers.create_customer(ctx, CustomerCreate(name="Kari", email="kari@bygg.no"))
        assert [c.name for c in customers.search_customers(ctx, "NORD")] == ["Ola Nordmann"]
        assert [c.name for c in customers.search_customers(ctx, "bygg")] == ["Kari"]

    def test_find_by_name(self, customers, ctx):
        customer_id = customers.create_customer(ctx, CustomerCreate(name="Ola Nordmann"))
        assert customers.find_customer_by_name(ctx, "ola nordmann") == customer_id
        assert customers.find_customer_by_name(ctx, "Per") is None

    def test_update_and_delete(self, customers, ctx):
        customer_id = customers.create_customer(ctx, CustomerCreate(name="Ola", notes="gammel"))
        customers.update_customer(ctx, customer_id, CustomerUpdate(phone="123", notes=""))
        customer = customers.get_customer(ctx, customer_id)
        assert customer.phone == "123"
        assert customer.notes is None

        customers.delete_customer(ctx, customer_id)
        with pytest.raises(NotFoundError):
            customers.get_customer(ctx, customer_id)

    def test_update_missing_customer(self, customers, ctx):
        with pytest.raises(NotFoundError):
            customers.update_customer(ctx, "nope", CustomerUpdate(name="X"))

    def test_requires_account(self, customers):
        with pytest.raises(AuthorizationError):
            customers.list_customers(AccountContext(account_id=""))

    def test_offline_store(self, customers, ctx, store):
        store.online = False
        with pytest.raises(ConnectivityError):
            customers.list_customers(ctx)

    def test_accounts_are_isolated(self, customers, ctx):
        customers.create_customer(ctx, CustomerCreate(name="Ola"))
        other = AccountContext(account_id="acct-2")
        assert customers.list_customers(other) == []


class TestCounters:
    def test_transition_applied_once(self, customers, ctx):
        customer_id = customers.create_customer(ctx, CustomerCreate(name="Ola"))

        assert customers.apply_quote_transition(ctx, customer_id, "q1:1", None, QuoteStatus.WON)
        assert not customers.apply_quote_transition(ctx, customer_id, "q1:1", None, QuoteStatus.WON)

        customer = customers.get_customer(ctx, customer_id)
        assert (customer.quote_count, customer.won_count) == (1, 1)

    def test_counters_never_negative(self, customers, ctx):
        customer_id = customers.create_customer(ctx, CustomerCreate(name="Ola"))
        customers.apply_quote_transition(ctx, customer_id, "q1:2", QuoteStatus.WON, None)
        customer = customers.get_customer(ctx, customer_id)
        assert (customer.quote_count, customer.won_count) == (0, 0)

    def test_unknown_customer_ignored(self, customers, ctx):
        assert not customers.apply_quote_transition(ctx, "ghost", "q1:1", None, QuoteStatus.PENDING)

    def test_reconcile(self, customers, ctx, store):
        customer_id = customers.create_customer(ctx, CustomerCreate(name="Ola"))
        store.patch(ctx.path("customers", customer_id), {"quote_count": 7, "won_count": 5})
        store.write(ctx.path("quotes", "q1"), {
            "customer_id": customer_id, "customer_name": "Ola", "project": "Bad",
            "amount": 10, "status": "won", "quote_date": "2024-09-01",
        })
        store.write(ctx.path("quotes", "q2"), {
            "customer_id": customer_id, "customer_name": "Ola", "project": "Tak",
            "amount": 10, "status": "venter", "quote_date": "2024-09-02",
        })

        corrected = customers.reconcile_counters(ctx)

        assert corrected == {customer_id: {"quote_count": 2, "won_count": 1}}
        customer = customers.get_customer(ctx, customer_id)
        assert (customer.quote_count, customer.won_count) == (2, 1)
        assert customers.reconcile_counters(ctx) == {}
