"""
Parsing of raw store snapshots into typed records.

One bad record never blocks the rest: parse failures are logged and the
record is skipped.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import pydantic

from models.crm_models import CustomerRecord, QuoteRecord
from proanbud.lib.errors import MalformedRecordError
from proanbud.lib.logger import setup_logger

logger = setup_logger("records")


def parse_quote(key: str, data: Any) -> QuoteRecord:
    if not isinstance(data, dict):
        raise MalformedRecordError("quote", key, "not an object")
    try:
        return QuoteRecord.model_validate({**data, "id": key})
    except pydantic.ValidationError as e:
        raise MalformedRecordError("quote", key, str(e)) from e


def parse_customer(key: str, data: Any) -> CustomerRecord:
    if not isinstance(data, dict):
        raise MalformedRecordError("customer", key, "not an object")
    try:
        return CustomerRecord.model_validate({**data, "id": key})
    except pydantic.ValidationError as e:
        raise MalformedRecordError("customer", key, str(e)) from e


def parse_quotes(collection: Optional[Dict[str, Any]]) -> List[QuoteRecord]:
    """Every valid quote in a collection snapshot value (None → [])."""
    quotes: List[QuoteRecord] = []
    for key, data in (collection or {}).items():
        try:
            quotes.append(parse_quote(key, data))
        except MalformedRecordError as e:
            logger.warning("Skipping invalid quote %s: %s", key, e)
    return quotes


def parse_customers(collection: Optional[Dict[str, Any]]) -> List[CustomerRecord]:
    customers: List[CustomerRecord] = []
    for key, data in (collection or {}).items():
        try:
            customers.append(parse_customer(key, data))
        except MalformedRecordError as e:
            logger.warning("Skipping invalid customer %s: %s", key, e)
    return customers


def newest_first(records: list) -> list:
    """Sort records by creation time, newest first (unknown times last)."""
    return sorted(records, key=lambda r: r.created_at or 0, reverse=True)
