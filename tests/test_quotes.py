"""Tests for QuoteService and its customer counter bookkeeping."""

from datetime import date

import pytest

from models.crm_models import CustomerCreate, QuoteCreate, QuoteStatus, QuoteUpdate
from proanbud.lib.errors import NotFoundError, ValidationError


@pytest.fixture
def customer_id(customers, ctx):
    return customers.create_customer(ctx, CustomerCreate(name="Ola Nordmann"))


def _create(quotes, ctx, **overrides):
    data = {
        "customer_name": "Ola Nordmann",
        "project": "Nytt bad",
        "job_type": "Bad",
        "amount": 120000,
        "quote_date": date(2024, 9, 24),
    }
    data.update(overrides)
    return quotes.create_quote(ctx, QuoteCreate(**data))


def _counts(customers, ctx, customer_id):
    customer = customers.get_customer(ctx, customer_id)
    return customer.quote_count, customer.won_count


class TestQuoteService:
    def test_create_links_customer_by_name(self, quotes, customers, ctx, customer_id):
        quote_id = _create(quotes, ctx)
        quote = quotes.get_quote(ctx, quote_id)

        assert quote.customer_id == customer_id
        assert quote.status == QuoteStatus.PENDING
        assert quote.revision == 1
        assert quote.quote_date == date(2024, 9, 24)
        assert _counts(customers, ctx, customer_id) == (1, 0)

    def test_create_without_matching_customer(self, quotes, ctx):
        quote_id = _create(quotes, ctx, customer_name="Ukjent Kunde")
        assert quotes.get_quote(ctx, quote_id).customer_id is None

    def test_legacy_status(self, quotes, customers, ctx, customer_id):
        quote_id = _create(quotes, ctx, status="vunnet")
        assert quotes.get_quote(ctx, quote_id).status == QuoteStatus.WON
        assert _counts(customers, ctx, customer_id) == (1, 1)

    def test_status_change_moves_won_count(self, quotes, customers, ctx, customer_id):
        quote_id = _create(quotes, ctx)
        quotes.update_quote(ctx, quote_id, QuoteUpdate(status="won"))
        assert _counts(customers, ctx, customer_id) == (1, 1)

        updated = quotes.update_quote_status(ctx, quote_id, QuoteStatus.LOST)
        assert updated.revision == 3
        assert _counts(customers, ctx, customer_id) == (1, 0)

    def test_non_status_update_leaves_counters(self, quotes, customers, ctx, customer_id):
        quote_id = _create(quotes, ctx, status="won")
        updated = quotes.update_quote(ctx, quote_id, QuoteUpdate(amount=99000, notes="Rabatt"))
        assert updated.amount == 99000
        assert updated.notes == "Rabatt"
        assert _counts(customers, ctx, customer_id) == (1, 1)

    def test_move_to_other_customer(self, quotes, customers, ctx, customer_id):
        other = customers.create_customer(ctx, CustomerCreate(name="Kari"))
        quote_id = _create(quotes, ctx, status="won")
        quotes.update_quote(ctx, quote_id, QuoteUpdate(customer_id=other, customer_name="Kari"))
        assert _counts(customers, ctx, customer_id) == (0, 0)
        assert _counts(customers, ctx, other) == (1, 1)

    def test_delete(self, quotes, customers, ctx, customer_id):
        quote_id = _create(quotes, ctx, status="won")
        quotes.delete_quote(ctx, quote_id)
        assert _counts(customers, ctx, customer_id) == (0, 0)
        with pytest.raises(NotFoundError):
            quotes.get_quote(ctx, quote_id)

    def test_blank_project_rejected(self, quotes, ctx, customer_id):
        quote_id = _create(quotes, ctx)
        with pytest.raises(ValidationError):
            quotes.update_quote(ctx, quote_id, QuoteUpdate(project="  "))

    @pytest.mark.parametrize("field", ["status", "quote_date", "amount", "customer_name", "project"])
    def test_null_required_field_rejected_before_write(self, quotes, customers, ctx, customer_id, field):
        quote_id = _create(quotes, ctx, status="won")

        with pytest.raises(ValidationError) as exc:
            quotes.update_quote(ctx, quote_id, QuoteUpdate.model_validate({field: None}))

        assert exc.value.details["field"] == field
        quote = quotes.get_quote(ctx, quote_id)
        assert quote.status == QuoteStatus.WON
        assert quote.revision == 1
        assert quote.amount == 120000
        assert [q.id for q in quotes.list_quotes(ctx)] == [quote_id]
        assert _counts(customers, ctx, customer_id) == (1, 1)

    def test_null_customer_id_unlinks(self, quotes, customers, ctx, customer_id):
        quote_id = _create(quotes, ctx, status="won")

        updated = quotes.update_quote(ctx, quote_id, QuoteUpdate.model_validate({"customer_id": None}))

        assert updated.customer_id is None
        assert _counts(customers, ctx, customer_id) == (0, 0)

    def test_search_and_status_filter(self, quotes, ctx, customer_id):
        _create(quotes, ctx, project="Terrasse", quote_date=date(2024, 5, 1), status="won")
        _create(quotes, ctx, project="Garasje", quote_date=date(2024, 8, 1), status="won")
        _create(quotes, ctx, project="Loft", status="tapt")

        assert [q.project for q in quotes.search_quotes(ctx, "terr")] == ["Terrasse"]
        assert [q.project for q in quotes.get_quotes_by_status(ctx, "won")] == ["Garasje", "Terrasse"]
        assert [q.project for q in quotes.get_quotes_by_status(ctx, "tapt")] == ["Loft"]

    def test_paginated(self, quotes, ctx, customer_id):
        for i in range(3):
            _create(quotes, ctx, project=f"Jobb {i}")
        assert len(quotes.list_quotes_paginated(ctx, limit=2)) == 2
        assert len(quotes.list_quotes(ctx)) == 3

    def test_stats(self, quotes, ctx, customer_id):
        _create(quotes, ctx, amount=100000, status="won")
        _create(quotes, ctx, amount=200000, status="won")
        _create(quotes, ctx, amount=50000, status="lost")
        _create(quotes, ctx, amount=10000)

        stats = quotes.get_quote_stats(ctx)
        assert stats.total_quotes == 4
        assert stats.won_quotes == 2
        assert stats.lost_quotes == 1
        assert stats.pending_quotes == 1
        assert stats.total_value == 360000
        assert stats.won_value == 300000
        assert stats.win_rate == 50

    def test_counters_match_reconcile(self, quotes, customers, ctx, customer_id):
        ids = [_create(quotes, ctx, status=s) for s in ("won", "pending", "lost")]
        quotes.update_quote(ctx, ids[1], QuoteUpdate(status="won"))
        quotes.delete_quote(ctx, ids[2])
        assert customers.reconcile_counters(ctx) == {}
        assert _counts(customers, ctx, customer_id) == (2, 2)
