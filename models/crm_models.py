"""
Proanbud — CRM Pydantic Models
===============================

Stored records and request bodies for quotes, customers, the
business profile and per-user settings.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

UNKNOWN_JOB_TYPE = "Unknown"

# Status values written by the original Norwegian front-end
LEGACY_STATUS = {"venter": "pending", "vunnet": "won", "tapt": "lost"}


class QuoteStatus(str, Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"


def _coerce_status(value: Any) -> Any:
    if isinstance(value, str):
        lowered = value.strip().lower()
        return LEGACY_STATUS.get(lowered, lowered)
    return value


def parse_status(value: Any) -> "QuoteStatus":
    """QuoteStatus from a current or legacy (venter/vunnet/tapt) value."""
    return QuoteStatus(_coerce_status(value))


def _coerce_date(value: Any) -> Any:
    """Accept ISO dates, ISO datetimes and epoch milliseconds."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date()
    if isinstance(value, str) and len(value) > 10 and value[4] == "-":
        return value[:10]
    return value


# ─── Quote Models ───────────────────────────────────────────

class QuoteRecord(BaseModel):
    """Quote as stored under accounts/{id}/quotes/{quote_id}."""
    id: str
    customer_id: Optional[str] = None
    customer_name: str = ""
    project: str = ""
    job_type: str = UNKNOWN_JOB_TYPE
    amount: float = Field(0, ge=0)
    status: QuoteStatus = QuoteStatus.PENDING
    quote_date: date
    response_deadline: Optional[date] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    revision: int = 0
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @field_validator("status", mode="before")
    @classmethod
    def _legacy_status(cls, value):
        return _coerce_status(value)

    @field_validator("quote_date", "response_deadline", mode="before")
    @classmethod
    def _dates(cls, value):
        return _coerce_date(value)

    @field_validator("amount", mode="before")
    @classmethod
    def _missing_amount(cls, value):
        return 0 if value is None or value == "" else value

    @field_validator("job_type", mode="before")
    @classmethod
    def _blank_job_type(cls, value):
        if value is None or not str(value).strip():
            return UNKNOWN_JOB_TYPE
        return str(value).strip()

    @property
    def is_won(self) -> bool:
        return self.status == QuoteStatus.WON


class QuoteCreate(BaseModel):
    """Create a new quote. customer_name alone is resolved to a customer id."""
    customer_id: Optional[str] = None
    customer_name: str = Field(..., min_length=1)
    project: str = Field(..., min_length=1)
    job_type: str = UNKNOWN_JOB_TYPE
    amount: float = Field(..., ge=0)
    status: QuoteStatus = QuoteStatus.PENDING
    quote_date: date
    response_deadline: Optional[date] = None
    description: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _legacy_status(cls, value):
        return _coerce_status(value)


class QuoteUpdate(BaseModel):
    """Partial quote update."""
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    project: Optional[str] = None
    job_type: Optional[str] = None
    amount: Optional[float] = Field(None, ge=0)
    status: Optional[QuoteStatus] = None
    quote_date: Optional[date] = None
    response_deadline: Optional[date] = None
    description: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _legacy_status(cls, value):
        return _coerce_status(value)


class QuoteStats(BaseModel):
    """Status breakdown over every quote in the account."""
    total_quotes: int = 0
    won_quotes: int = 0
    pending_quotes: int = 0
    lost_quotes: int = 0
    total_value: float = 0
    won_value: float = 0
    win_rate: int = 0


# ─── Customer Models ────────────────────────────────────────

class CustomerRecord(BaseModel):
    """Customer as stored under accounts/{id}/customers/{customer_id}."""
    id: str
    name: str
    email: str = ""
    phone: str = ""
    addresses: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    quote_count: int = Field(0, ge=0)
    won_count: int = Field(0, ge=0)
    last_activity: Optional[int] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    @field_validator("quote_count", "won_count", mode="before")
    @classmethod
    def _non_negative(cls, value):
        # Counters that drifted below zero are clamped on read
        if value is None:
            return 0
        return max(int(value), 0)


class CustomerCreate(BaseModel):
    """Create a new customer."""
    name: str = Field(..., min_length=1)
    email: str = ""
    phone: str = ""
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    notes: Optional[str] = None

    def formatted_address(self) -> Optional[str]:
        if not self.address:
            return None
        line = self.address.strip()
        if self.postal_code:
            line += f", {self.postal_code.strip()}"
        if self.city:
            line += f" {self.city.strip()}"
        return line


class CustomerUpdate(BaseModel):
    """Partial customer update."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


# ─── Business Profile ───────────────────────────────────────

class BusinessSettings(BaseModel):
    """Company profile used on quotes and by analytics."""
    company_name: str = ""
    organization_number: str = ""
    address: str = ""
    postal_code: str = ""
    city: str = ""
    phone: str = ""
    email: str = ""
    website: str = ""

    founded_year: Optional[int] = None
    employee_count: Optional[int] = Field(None, ge=0)
    industry: str = ""
    business_type: str = "enkeltpersonforetak"
    annual_revenue: Optional[float] = Field(None, ge=0)
    service_areas: List[str] = Field(default_factory=list)
    specializations: List[str] = Field(default_factory=list)

    logo_url: Optional[str] = None
    primary_color: str = "#1d4ed8"
    secondary_color: str = "#f59e0b"
    brand_description: str = ""

    currency: str = "NOK"
    vat_rate: float = Field(25.0, ge=0, le=100)
    default_payment_terms: int = Field(14, ge=0)
    bank_account: str = ""

    quote_validity_days: int = Field(30, ge=1)
    quote_prefix: str = "T"
    invoice_prefix: str = "F"
    default_quote_notes: str = ""

    last_updated: Optional[int] = None
    created_at: Optional[int] = None


class BusinessSettingsUpdate(BaseModel):
    """Partial business profile update; unset fields are left untouched."""
    company_name: Optional[str] = None
    organization_number: Optional[str] = None
    address: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    founded_year: Optional[int] = None
    employee_count: Optional[int] = Field(None, ge=0)
    industry: Optional[str] = None
    business_type: Optional[str] = None
    annual_revenue: Optional[float] = Field(None, ge=0)
    service_areas: Optional[List[str]] = None
    specializations: Optional[List[str]] = None
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    secondary_color: Optional[str] = None
    brand_description: Optional[str] = None
    currency: Optional[str] = None
    vat_rate: Optional[float] = Field(None, ge=0, le=100)
    default_payment_terms: Optional[int] = Field(None, ge=0)
    bank_account: Optional[str] = None
    quote_validity_days: Optional[int] = Field(None, ge=1)
    quote_prefix: Optional[str] = None
    invoice_prefix: Optional[str] = None
    default_quote_notes: Optional[str] = None


# ─── User Settings ──────────────────────────────────────────

class UserSettings(BaseModel):
    """Personal preferences of the signed-in user."""
    name: str = ""
    email: str = ""
    phone: str = ""
    notifications: bool = True
    email_notifications: bool = True
    language: str = "no"
    timezone: str = "Europe/Oslo"

    last_updated: Optional[int] = None


class UserSettingsUpdate(BaseModel):
    """Partial user settings update; unset fields are left untouched."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    notifications: Optional[bool] = None
    email_notifications: Optional[bool] = None
    language: Optional[str] = None
    timezone: Optional[str] = None
