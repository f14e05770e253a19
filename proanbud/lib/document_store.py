"""
Proanbud — Document Store
==========================
Key-value document store the services and analytics engine run against.
Documents live under slash-separated paths scoped per account:

    accounts/{account_id}/quotes/{quote_id}
    accounts/{account_id}/customers/{customer_id}
    accounts/{account_id}/analytics
    accounts/{account_id}/businessSettings

Backends:
    MemoryDocumentStore    in-process tree (tests, local development)
    SupabaseDocumentStore  one row per written path in the documents table

Both fan out change notifications to subscribers in-process after every
mutation. A subscription fires once immediately with the current value,
then again whenever a write touches its subtree.

Usage:
    from proanbud.lib.document_store import get_store, SERVER_TIMESTAMP

    store = get_store()
    store.write("accounts/a1/quotes/q1", {"amount": 1000, "created_at": SERVER_TIMESTAMP})
    snap = store.read_all("accounts/a1/quotes")
    handle = store.subscribe("accounts/a1/quotes", lambda snap: print(snap.value))
    store.unsubscribe(handle)
"""
from __future__ import annotations

import copy
import os
import secrets
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from proanbud.lib.logger import setup_logger

logger = setup_logger("document_store")

# Placeholder resolved to epoch milliseconds when the write is applied
SERVER_TIMESTAMP = {".sv": "timestamp"}

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"

# Supabase returns at most this many rows per request
PAGE_SIZE = 1000


@dataclass(frozen=True)
class Snapshot:
    """Result of a read: the node's key and its (possibly nested) value."""

    key: Optional[str]
    value: Any = None

    @property
    def exists(self) -> bool:
        return self.value is not None


ChangeCallback = Callable[[Snapshot], None]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def now_ms() -> int:
    return int(time.time() * 1000)


def split_path(path: str) -> List[str]:
    return [segment for segment in path.strip("/").split("/") if segment]


def paths_overlap(a: str, b: str) -> bool:
    """True when one path is an ancestor of (or equal to) the other."""
    sa, sb = split_path(a), split_path(b)
    shortest = min(len(sa), len(sb))
    return sa[:shortest] == sb[:shortest]


def resolve_server_values(value: Any, timestamp: int) -> Any:
    """Replace every SERVER_TIMESTAMP sentinel in value with timestamp."""
    if isinstance(value, dict):
        if value == SERVER_TIMESTAMP:
            return timestamp
        return {k: resolve_server_values(v, timestamp) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_server_values(v, timestamp) for v in value]
    return value


def prune(value: Any) -> Any:
    """Drop None entries and empty objects; an empty result becomes None."""
    if isinstance(value, dict):
        cleaned = {}
        for k, v in value.items():
            v = prune(v)
            if v is not None:
                cleaned[k] = v
        return cleaned or None
    return value


def generate_push_id(timestamp: int = None) -> str:
    """
    Time-ordered unique key: 8 characters of timestamp followed by
    12 random characters, so keys sort in creation order.
    """
    timestamp = now_ms() if timestamp is None else timestamp
    time_chars = []
    for _ in range(8):
        time_chars.append(PUSH_CHARS[timestamp % 64])
        timestamp //= 64
    random_chars = "".join(secrets.choice(PUSH_CHARS) for _ in range(12))
    return "".join(reversed(time_chars)) + random_chars


# ---------------------------------------------------------------------------
# Base store
# ---------------------------------------------------------------------------

class DocumentStore(ABC):
    """
    Read/write/subscribe primitives shared by every backend.

    Subclasses implement the raw tree operations; this class handles
    server-timestamp resolution, patch semantics and change fan-out.
    """

    def __init__(self):
        self._subscriptions: Dict[str, Tuple[str, ChangeCallback]] = {}
        self._lock = threading.RLock()

    # --- backend primitives ---

    @abstractmethod
    def _get(self, segments: List[str]) -> Any:
        """Return the value at segments, or None."""

    @abstractmethod
    def _set(self, segments: List[str], value: Any) -> None:
        """Overwrite (or delete, when value is None) the node at segments."""

    @abstractmethod
    def ping(self) -> bool:
        """Connectivity probe."""

    # --- public API ---

    def read_all(self, path: str) -> Snapshot:
        segments = split_path(path)
        value = self._get(segments)
        return Snapshot(key=segments[-1] if segments else None, value=value)

    def write(self, path: str, value: Any) -> None:
        value = prune(resolve_server_values(value, now_ms()))
        with self._lock:
            self._set(split_path(path), value)
        self._notify(path)

    def patch(self, path: str, partial: Dict[str, Any]) -> None:
        """Merge partial into the node's fields; a None value removes the field."""
        partial = resolve_server_values(partial, now_ms())
        segments = split_path(path)
        with self._lock:
            current = self._get(segments)
            merged = dict(current) if isinstance(current, dict) else {}
            merged.update(partial)
            self._set(segments, prune(merged))
        self._notify(path)

    def remove(self, path: str) -> None:
        with self._lock:
            self._set(split_path(path), None)
        self._notify(path)

    def generate_id(self, path: str) -> str:
        return generate_push_id()

    def subscribe(self, path: str, on_change: ChangeCallback) -> str:
        """Register on_change for path; it is invoked immediately with the current value."""
        handle = uuid.uuid4().hex
        with self._lock:
            self._subscriptions[handle] = (path, on_change)
        logger.debug("Subscribed %s to %s", handle, path)
        self._deliver(handle, path, on_change)
        return handle

    def unsubscribe(self, handle: str) -> None:
        with self._lock:
            removed = self._subscriptions.pop(handle, None)
        if removed:
            logger.debug("Unsubscribed %s from %s", handle, removed[0])

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    # --- notification fan-out ---

    def _notify(self, changed_path: str) -> None:
        with self._lock:
            targets = [
                (handle, path, callback)
                for handle, (path, callback) in self._subscriptions.items()
                if paths_overlap(path, changed_path)
            ]
        for handle, path, callback in targets:
            # An earlier callback may have unsubscribed this one
            if handle in self._subscriptions:
                self._deliver(handle, path, callback)

    def _deliver(self, handle: str, path: str, callback: ChangeCallback) -> None:
        try:
            callback(self.read_all(path))
        except Exception as e:
            logger.error("Subscriber %s on %s failed: %s", handle, path, e)


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------

class MemoryDocumentStore(DocumentStore):
    """Nested-dict store. Set `online = False` to simulate a lost connection."""

    def __init__(self, initial: Dict[str, Any] = None):
        super().__init__()
        self._root: Dict[str, Any] = prune(copy.deepcopy(initial)) or {}
        self.online = True

    def ping(self) -> bool:
        return self.online

    def _get(self, segments: List[str]) -> Any:
        node: Any = self._root
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return copy.deepcopy(node) if node != {} else None

    def _set(self, segments: List[str], value: Any) -> None:
        if not segments:
            self._root = copy.deepcopy(value) if isinstance(value, dict) else {}
            return

        parents = [self._root]
        node = self._root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = {}
                node[segment] = child
            node = child
            parents.append(node)

        if value is None:
            node.pop(segments[-1], None)
        else:
            node[segments[-1]] = copy.deepcopy(value)

        # Collapse parents left empty by a removal
        for depth in range(len(segments) - 1, 0, -1):
            if parents[depth]:
                break
            parents[depth - 1].pop(segments[depth - 1], None)


# ---------------------------------------------------------------------------
# Supabase backend
# ---------------------------------------------------------------------------

def _like_prefix(path: str) -> str:
    escaped = path.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}/%"


def _ancestors(segments: List[str]) -> List[str]:
    return ["/".join(segments[:i]) for i in range(1, len(segments))]


def _set_nested(tree: Dict[str, Any], segments: List[str], value: Any) -> None:
    node = tree
    for segment in segments[:-1]:
        child = node.get(segment)
        if not isinstance(child, dict):
            child = {}
            node[segment] = child
        node = child
    if value is None:
        node.pop(segments[-1], None)
    else:
        node[segments[-1]] = value


class SupabaseDocumentStore(DocumentStore):
    """
    Stores each written node as a row (path, value jsonb) in the documents
    table. Reading a path merges the row at that path with every row below
    it; writing inside a node that is stored as part of an ancestor row
    rewrites that ancestor row.

    Table:
        create table documents (
            path text primary key,
            value jsonb not null,
            updated_at timestamptz not null default now()
        );
    """

    def __init__(self, table=None):
        super().__init__()
        self._table_factory = table

    def _table(self):
        if self._table_factory is not None:
            return self._table_factory()
        from proanbud.lib.supabase_client import documents_table
        return documents_table()

    def ping(self) -> bool:
        from proanbud.lib.supabase_client import check_connection
        return check_connection()

    def _execute(self, query):
        from proanbud.lib.circuit_breaker import StoreCircuit
        return StoreCircuit.for_service("supabase").guard(query.execute)

    def _rows_below(self, path: str) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            result = self._execute(
                self._table()
                .select("path, value")
                .like("path", _like_prefix(path))
                .order("path")
                .range(offset, offset + PAGE_SIZE - 1)
            )
            batch = result.data or []
            rows.extend(batch)
            if len(batch) < PAGE_SIZE:
                return rows
            offset += PAGE_SIZE

    def _rows_at(self, paths: List[str]) -> List[Dict[str, Any]]:
        if not paths:
            return []
        result = self._execute(self._table().select("path, value").in_("path", paths))
        return result.data or []

    def _get(self, segments: List[str]) -> Any:
        path = "/".join(segments)

        # Value stored inside an ancestor row
        ancestor_rows = sorted(
            self._rows_at(_ancestors(segments)), key=lambda r: len(r["path"]),
        )
        value: Any = None
        for row in ancestor_rows:
            rel = split_path(row["path"])
            node = row["value"]
            for segment in segments[len(rel):]:
                node = node.get(segment) if isinstance(node, dict) else None
            if node is not None:
                value = copy.deepcopy(node)

        for row in self._rows_at([path]):
            exact = row["value"]
            if isinstance(exact, dict) and isinstance(value, dict):
                value.update(exact)
            else:
                value = exact

        below = self._rows_below(path)
        if below:
            tree = dict(value) if isinstance(value, dict) else {}
            for row in sorted(below, key=lambda r: r["path"].count("/")):
                _set_nested(tree, split_path(row["path"])[len(segments):], row["value"])
            value = tree

        return prune(value)

    def _set(self, segments: List[str], value: Any) -> None:
        path = "/".join(segments)
        self._execute(self._table().delete().like("path", _like_prefix(path)))
        self._execute(self._table().delete().eq("path", path))

        ancestor_rows = sorted(
            self._rows_at(_ancestors(segments)), key=lambda r: len(r["path"]),
            reverse=True,
        )
        for row in ancestor_rows:
            owner_segments = split_path(row["path"])
            tree = row["value"] if isinstance(row["value"], dict) else {}
            rel = segments[len(owner_segments):]
            probe = tree
            for segment in rel[:-1]:
                probe = probe.get(segment) if isinstance(probe, dict) else None
            if isinstance(probe, dict) and (rel[-1] in probe or value is not None):
                _set_nested(tree, rel, value)
                self._upsert(row["path"], prune(tree))
                if value is not None:
                    return

        if value is not None:
            self._upsert(path, value)

    def _upsert(self, path: str, value: Any) -> None:
        if value is None:
            self._execute(self._table().delete().eq("path", path))
            return
        self._execute(self._table().upsert(
            {
                "path": path,
                "value": value,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            on_conflict="path",
        ))


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_store: Optional[DocumentStore] = None


def create_store(backend: str = None) -> DocumentStore:
    """
    Build a store for the configured backend.

    STORE_BACKEND=supabase|memory; defaults to supabase when credentials
    are present, memory otherwise.
    """
    from proanbud.lib import supabase_client

    backend = (backend or os.environ.get("STORE_BACKEND", "")).lower()
    if not backend:
        backend = "supabase" if supabase_client.is_configured() else "memory"

    if backend == "supabase":
        supabase_client.get_client()
        logger.info("Using Supabase document store (table: %s)", supabase_client.DOCUMENTS_TABLE)
        return SupabaseDocumentStore()

    logger.info("Using in-memory document store")
    return MemoryDocumentStore()


def get_store() -> DocumentStore:
    """Process-wide store (singleton)."""
    global _store
    if _store is None:
        _store = create_store()
    return _store
