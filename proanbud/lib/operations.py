"""
Decorator shared by every public service method.

Before the call: the account context must be authenticated and the store
must answer its connectivity probe. Any failure is translated into a
categorised ProanbudError carrying a user-facing message.

Usage:
    class QuoteService:
        def __init__(self, store):
            self.store = store

        @store_operation("hente tilbud")
        def list_quotes(self, ctx): ...
"""
from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from proanbud.lib.account import AccountContext
from proanbud.lib.errors import (
    AuthorizationError,
    ConnectivityError,
    ProanbudError,
    translate_store_error,
)
from proanbud.lib.logger import setup_logger

logger = setup_logger("operations")


def ensure_connection(store) -> None:
    """Raise ConnectivityError unless the store answers its probe."""
    if not store.ping():
        logger.error("Store connectivity probe failed")
        raise ConnectivityError(
            "Document store did not answer the connectivity probe",
            code="DISCONNECTED",
            user_message="Databasetilkobling feilet. Sjekk internettforbindelsen og prøv igjen.",
        )


def store_operation(operation: str, probe: bool = True) -> Callable:
    """
    Wrap a service method taking (self, ctx: AccountContext, ...).

    Args:
        operation: Norwegian verb phrase used in user messages
            ("opprette tilbud", "hente kunder").
        probe: Run the connectivity probe first.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(self, ctx: AccountContext, *args, **kwargs) -> Any:
            if ctx is None or not ctx.is_authenticated:
                raise AuthorizationError(operation, reason="no authenticated session",
                                         code="UNAUTHENTICATED")
            try:
                if probe:
                    ensure_connection(self.store)
                return func(self, ctx, *args, **kwargs)
            except ProanbudError:
                raise
            except Exception as e:
                error = translate_store_error(e, operation)
                logger.error("%s failed for %s: %s", operation, ctx.account_id, e)
                raise error from e
        return wrapper
    return decorator
