"""
Account context passed explicitly into every service call.

All records of an account live below accounts/{account_id}/.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

QUOTES = "quotes"
CUSTOMERS = "customers"
ANALYTICS = "analytics"
BUSINESS_SETTINGS = "businessSettings"
PROFILE = "profile"
USER_SETTINGS = "userSettings"
COUNTER_LEDGER = "counterLedger"


@dataclass(frozen=True)
class AccountContext:
    """Authenticated owner of the data being read or written."""

    account_id: str
    user_email: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.account_id and self.account_id.strip())

    @property
    def root(self) -> str:
        return f"accounts/{self.account_id}"

    def path(self, collection: str, key: str = None) -> str:
        if key:
            return f"{self.root}/{collection}/{key}"
        return f"{self.root}/{collection}"
