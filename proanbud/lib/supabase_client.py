"""
Supabase client helper for Proanbud.
Provides the shared client, the documents table handle and the REST
health probe used before every store operation.

Usage:
    from proanbud.lib.supabase_client import get_client, documents_table

    rows = documents_table().select("path, value").like("path", "accounts/a1/%").execute()
"""
import os
from pathlib import Path

from dotenv import load_dotenv

from proanbud.lib.circuit_breaker import probe
from proanbud.lib.errors import CircuitOpenError, ConfigError
from proanbud.lib.logger import setup_logger

logger = setup_logger(__name__)

# Load .env from project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(PROJECT_ROOT / ".env")

SUPABASE_URL = os.environ.get("SUPABASE_URL", "")
SUPABASE_KEY = (
    os.environ.get("SUPABASE_SERVICE_ROLE_KEY", "")
    or os.environ.get("SUPABASE_KEY", "")
)
DOCUMENTS_TABLE = os.environ.get("SUPABASE_DOCUMENTS_TABLE", "documents")

_client = None


def is_configured() -> bool:
    return bool(SUPABASE_URL and SUPABASE_KEY)


def get_client():
    """Create and return a Supabase client (singleton)."""
    global _client
    if _client is not None:
        return _client

    if not is_configured():
        raise ConfigError(
            "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set in .env",
            setting="SUPABASE_URL",
        )

    from supabase import create_client
    _client = create_client(SUPABASE_URL, SUPABASE_KEY)
    logger.info("Supabase client connected to %s", SUPABASE_URL)
    return _client


def documents_table():
    """Query builder for the table holding every account document."""
    return get_client().table(DOCUMENTS_TABLE)


def check_connection() -> bool:
    """
    Probe the Supabase REST endpoint.

    Returns:
        True when the service answered; False on timeout, refused
        connection, 5xx or while the circuit is open.
    """
    if not is_configured():
        return False

    try:
        return probe(
            "supabase",
            f"{SUPABASE_URL.rstrip('/')}/rest/v1/",
            headers={"apikey": SUPABASE_KEY, "Authorization": f"Bearer {SUPABASE_KEY}"},
        )
    except CircuitOpenError as e:
        logger.warning("Supabase probe skipped: %s", e)
        return False
