"""Shared fixtures: an in-memory store and a fixed account."""

import os

os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("STORE_BACKEND", "memory")

from datetime import date

import pytest

from models.crm_models import QuoteRecord
from proanbud.crm.customers import CustomerService
from proanbud.crm.quotes import QuoteService
from proanbud.lib.account import AccountContext
from proanbud.lib.document_store import MemoryDocumentStore


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def ctx():
    return AccountContext(account_id="acct-1", user_email="ola@example.no")


@pytest.fixture
def customers(store):
    return CustomerService(store)


@pytest.fixture
def quotes(store, customers):
    return QuoteService(store, customers)


def make_quote(quote_id="q1", amount=100000, status="pending", job_type="Kjøkken",
               quote_date=None, customer_id=None, **extra) -> QuoteRecord:
    return QuoteRecord(
        id=quote_id,
        customer_id=customer_id,
        customer_name=extra.pop("customer_name", "Ola Nordmann"),
        project=extra.pop("project", "Nytt kjøkken"),
        job_type=job_type,
        amount=amount,
        status=status,
        quote_date=quote_date or date(2024, 9, 24),
        **extra,
    )
