"""
Circuit breaker guarding the hosted document store.

Every Supabase query and the REST connectivity probe run through a named
StoreCircuit. After `max_failures` consecutive failures the circuit opens
and calls fail fast with CircuitOpenError (a ConnectivityError) until
`cooldown` seconds have passed; then one trial call decides whether it
closes again.

Usage:
    from proanbud.lib.circuit_breaker import StoreCircuit, probe

    circuit = StoreCircuit.for_service("supabase")
    rows = circuit.guard(query.execute)

    reachable = probe("supabase", "https://xyz.supabase.co/rest/v1/")
"""
import threading
import time
from typing import Any, Callable

import requests

from proanbud.lib.errors import CircuitOpenError
from proanbud.lib.logger import setup_logger

logger = setup_logger(__name__)


class StoreCircuit:
    """
    Three states:

    CLOSED     calls pass; consecutive failures are counted.
    OPEN       calls are refused until the cooldown has elapsed.
    HALF_OPEN  one trial call; success closes, failure re-opens.
    """

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"

    _circuits: dict = {}
    _circuits_lock = threading.Lock()

    def __init__(self, service: str, max_failures: int = 5, cooldown: float = 60):
        self.service = service
        self.max_failures = max_failures
        self.cooldown = cooldown
        self.state = self.CLOSED
        self.failures = 0
        self.opened_at = 0.0
        self._lock = threading.Lock()

    @classmethod
    def for_service(cls, service: str, **kwargs) -> "StoreCircuit":
        """Shared circuit per service name; kwargs only apply on first use."""
        with cls._circuits_lock:
            circuit = cls._circuits.get(service)
            if circuit is None:
                circuit = cls(service, **kwargs)
                cls._circuits[service] = circuit
            return circuit

    @classmethod
    def clear(cls):
        with cls._circuits_lock:
            cls._circuits.clear()

    # ─── State transitions ──────────────────────────────────

    def allow(self) -> bool:
        with self._lock:
            if self.state != self.OPEN:
                return True
            if time.time() - self.opened_at < self.cooldown:
                return False
            self.state = self.HALF_OPEN
        logger.info("Circuit '%s' half-open, allowing a trial call", self.service)
        return True

    def succeeded(self):
        with self._lock:
            recovered = self.state == self.HALF_OPEN
            self.state = self.CLOSED
            self.failures = 0
        if recovered:
            logger.info("Circuit '%s' closed, service recovered", self.service)

    def failed(self):
        with self._lock:
            self.failures += 1
            trial_failed = self.state == self.HALF_OPEN
            if trial_failed or self.failures >= self.max_failures:
                self.state = self.OPEN
                self.opened_at = time.time()
            opened = self.state == self.OPEN
        if opened:
            logger.warning(
                "Circuit '%s' open after %d failures (retry in %ds)",
                self.service, self.failures, self.cooldown,
            )

    @property
    def seconds_until_retry(self) -> float:
        if self.state != self.OPEN:
            return 0.0
        return max(0.0, self.cooldown - (time.time() - self.opened_at))

    def describe(self) -> dict:
        return {
            "service": self.service,
            "state": self.state,
            "failures": self.failures,
            "max_failures": self.max_failures,
            "retry_in": round(self.seconds_until_retry, 1),
        }

    # ─── Guarded calls ──────────────────────────────────────

    def _refuse(self):
        raise CircuitOpenError(self.service, self.failures, self.seconds_until_retry)

    def guard(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Run func through the circuit.

        Any exception counts as a failure and is re-raised unchanged.

        Raises:
            CircuitOpenError: If the circuit is open.
        """
        if not self.allow():
            self._refuse()
        try:
            result = func(*args, **kwargs)
        except Exception:
            self.failed()
            raise
        self.succeeded()
        return result


def probe(service: str, url: str, timeout: float = 5, **kwargs) -> bool:
    """
    GET url through the service's circuit.

    Returns:
        True if the service answered below 500. Timeouts, refused
        connections and 5xx answers return False and count as failures.

    Raises:
        CircuitOpenError: If the circuit is open.
    """
    circuit = StoreCircuit.for_service(service)
    if not circuit.allow():
        circuit._refuse()

    start = time.time()
    try:
        response = requests.get(url, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        circuit.failed()
        logger.error("Probe %s failed after %.2fs: %s", url, time.time() - start, e)
        return False

    if response.status_code >= 500:
        circuit.failed()
        logger.warning("Probe %s answered %d", url, response.status_code)
        return False

    circuit.succeeded()
    logger.debug("Probe %s answered %d in %.2fs", url, response.status_code, time.time() - start)
    return True
