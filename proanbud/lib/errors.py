"""
Custom error classes for Proanbud.
Every error carries a code, a failure category and a user-facing
(Norwegian) message so the category survives from the store up to the
HTTP response.

Hierarchy:
    ProanbudError
    ├── StoreError
    │   ├── ConnectivityError
    │   │   └── CircuitOpenError
    │   └── AuthorizationError
    ├── DataError
    │   ├── ConfigError
    │   ├── MalformedRecordError
    │   ├── UnknownMonthError
    │   ├── NotFoundError
    │   └── ValidationError
    └── AnalyticsError
"""

# Failure categories
CONNECTIVITY = "connectivity"
AUTHORIZATION = "authorization"
MALFORMED_RECORD = "malformed_record"
NOT_FOUND = "not_found"
VALIDATION = "validation"
LOGIC = "logic"


class ProanbudError(Exception):
    """Base exception for all Proanbud errors."""

    category = LOGIC

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict = None,
                 user_message: str = None):
        self.code = code
        self.details = details or {}
        self.user_message = user_message or message
        super().__init__(f"[{code}] {message}")

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "category": self.category,
            "message": self.user_message,
        }


# --- Store Errors ---

class StoreError(ProanbudError):
    """Base class for document store failures."""
    pass


class ConnectivityError(StoreError):
    """Store unreachable (network down, service disconnected)."""

    category = CONNECTIVITY

    def __init__(self, message: str, code: str = "NETWORK_ERROR",
                 user_message: str = None, **kwargs):
        super().__init__(
            message, code=code, details=kwargs,
            user_message=user_message or "Nettverksfeil: Sjekk internettforbindelsen.",
        )


class CircuitOpenError(ConnectivityError):
    """Circuit breaker is open — requests blocked."""

    def __init__(self, service: str, failures: int, reset_time: float):
        super().__init__(
            f"Circuit open for '{service}' after {failures} failures. "
            f"Resets in {reset_time:.0f}s.",
            code="CIRCUIT_OPEN",
            user_message="Frakoblet: Databasen er midlertidig utilgjengelig.",
            service=service,
        )


class AuthorizationError(StoreError):
    """No authenticated session, or the store rejected the request."""

    category = AUTHORIZATION

    def __init__(self, operation: str, reason: str = "permission denied",
                 code: str = "PERMISSION_DENIED"):
        super().__init__(
            f"Not authorized to {operation}: {reason}",
            code=code, details={"operation": operation},
            user_message=f"Ingen tilgang: Du har ikke tilgang til å {operation}.",
        )


# --- Data Errors ---

class DataError(ProanbudError):
    """Base class for data processing errors."""
    pass


class ConfigError(DataError):
    """Missing or invalid configuration."""

    def __init__(self, message: str, setting: str = None):
        super().__init__(
            message, code="CONFIG_ERROR", details={"setting": setting},
            user_message="Konfigurasjonsfeil: Kontakt administrator.",
        )


class MalformedRecordError(DataError):
    """A single stored record could not be parsed."""

    category = MALFORMED_RECORD

    def __init__(self, record_type: str, key: str, reason: str):
        super().__init__(
            f"Invalid {record_type} record '{key}': {reason}",
            code="INVALID_DATA", details={"record_type": record_type, "key": key},
            user_message="Ugyldig data: Dataformatet er ikke støttet.",
        )


class UnknownMonthError(DataError):
    """A month label is not in the fixed calendar table."""

    category = MALFORMED_RECORD

    def __init__(self, month: str):
        super().__init__(
            f"Unknown month name: {month!r}",
            code="UNKNOWN_MONTH", details={"month": month},
            user_message="Ugyldig data: Ukjent måned.",
        )


class NotFoundError(DataError):
    """Requested record does not exist."""

    category = NOT_FOUND

    def __init__(self, record_type: str, key: str, user_message: str = None):
        super().__init__(
            f"{record_type} '{key}' not found",
            code="NOT_FOUND", details={"record_type": record_type, "key": key},
            user_message=user_message or f"Fant ikke {record_type}.",
        )


class ValidationError(DataError):
    """Input rejected before reaching the store."""

    category = VALIDATION

    def __init__(self, message: str, field: str = None):
        super().__init__(
            message, code="USER_CODE_EXCEPTION", details={"field": field},
            user_message="Ugyldig input: Sjekk data som sendes inn.",
        )


# --- Analytics Errors ---

class AnalyticsError(ProanbudError):
    """Analytics computation failed."""

    def __init__(self, message: str, cause: Exception = None):
        msg = message
        if cause:
            msg += f": {cause}"
        super().__init__(
            msg, code="ANALYTICS_FAILED",
            user_message="Kunne ikke beregne analyser.",
        )


# --- Translation ---

_CONNECTIVITY_CODES = {"NETWORK_ERROR", "DISCONNECTED", "UNAVAILABLE"}
_AUTHORIZATION_CODES = {"PERMISSION_DENIED", "42501", "PGRST301", "PGRST302"}
_TRANSPORT_ERROR_NAMES = {
    "ConnectError", "ConnectTimeout", "ReadTimeout", "TimeoutException",
    "NetworkError", "RemoteProtocolError",
}


def translate_store_error(error: Exception, operation: str) -> ProanbudError:
    """
    Map a raw store or SDK exception onto the Proanbud error taxonomy.

    Args:
        error: The exception raised by the store backend.
        operation: Norwegian verb phrase for the failed operation
            (e.g. "hente tilbud"), used in the user-facing message.

    Returns:
        A ProanbudError subclass; ProanbudErrors pass through unchanged.
    """
    if isinstance(error, ProanbudError):
        return error

    code = str(getattr(error, "code", "") or "")
    message = str(getattr(error, "message", "") or error)

    if code in _AUTHORIZATION_CODES:
        return AuthorizationError(operation, reason=message, code=code)

    # httpx / requests transport errors do not share a stdlib base class
    transport_error = type(error).__name__ in _TRANSPORT_ERROR_NAMES
    if (
        code in _CONNECTIVITY_CODES
        or transport_error
        or isinstance(error, (ConnectionError, TimeoutError))
    ):
        return ConnectivityError(
            f"Store unreachable while trying to {operation}: {message}",
            code=code or "NETWORK_ERROR",
        )

    lowered = message.lower()
    if "network" in lowered or "offline" in lowered:
        return ConnectivityError(
            f"Network problem while trying to {operation}: {message}",
            user_message="Nettverksproblem: Sjekk internettforbindelsen og databasekonfigurasjonen.",
        )
    if "permission denied" in lowered:
        return AuthorizationError(operation, reason=message)

    return ProanbudError(
        f"Failed to {operation}: {message}",
        code=code or "STORE_ERROR",
        user_message=f"Kunne ikke {operation}: {message or 'Ukjent feil'}",
    )
