"""
Proanbud — WebSocket Manager
=============================
Pushes live analytics to open dashboards, one feed per account.

The first connection for an account starts a live analytics subscription;
the last disconnect stops it. Every recompute is sent to all of that
account's sockets as an "analytics_updated" event.

Usage:
    from dashboard.api.websocket import ws_manager, websocket_endpoint

    app.add_api_websocket_route("/ws/analytics", websocket_endpoint)
"""
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect

from models.analytics_models import AnalyticsSummary
from proanbud.analytics.live import subscribe_to_analytics
from proanbud.lib.account import AccountContext
from proanbud.lib.document_store import DocumentStore
from proanbud.lib.logger import setup_logger

logger = setup_logger("websocket")


def _payload(message: Dict[str, Any]) -> str:
    return json.dumps(
        {
            **message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        default=str,
    )


class WebSocketManager:
    """Active WebSocket connections grouped by account."""

    def __init__(self):
        self._connections: Dict[str, Set[WebSocket]] = {}
        self._unsubscribe: Dict[str, Callable[[], None]] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def connect(self, websocket: WebSocket, account_id: str, store: DocumentStore):
        """Accept the socket and make sure the account has a live feed."""
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        self._connections.setdefault(account_id, set()).add(websocket)
        logger.info(
            "WebSocket connected for %s. Active connections: %d",
            account_id, self.connection_count,
        )

        if account_id not in self._unsubscribe:
            ctx = AccountContext(account_id=account_id)
            self._unsubscribe[account_id] = subscribe_to_analytics(
                store, ctx, lambda summary: self._on_analytics(account_id, summary),
            )

    def disconnect(self, websocket: WebSocket, account_id: str):
        """Remove a socket; stop the account's feed when none remain."""
        sockets = self._connections.get(account_id, set())
        sockets.discard(websocket)
        if not sockets:
            self._connections.pop(account_id, None)
            unsubscribe = self._unsubscribe.pop(account_id, None)
            if unsubscribe:
                unsubscribe()
        logger.info(
            "WebSocket disconnected for %s. Active connections: %d",
            account_id, self.connection_count,
        )

    def close_all(self):
        """Stop every live feed (application shutdown)."""
        for unsubscribe in self._unsubscribe.values():
            unsubscribe()
        self._unsubscribe.clear()
        self._connections.clear()

    async def broadcast(self, account_id: str, message: Dict[str, Any]):
        """Send a message to every socket of one account."""
        sockets = self._connections.get(account_id)
        if not sockets:
            return

        payload = _payload(message)
        disconnected = set()
        for ws in list(sockets):
            try:
                await ws.send_text(payload)
            except Exception as e:
                logger.debug("Dropping socket for %s: %s", account_id, e)
                disconnected.add(ws)

        for ws in disconnected:
            self.disconnect(ws, account_id)

    async def send_to(self, websocket: WebSocket, message: Dict[str, Any]):
        await websocket.send_text(_payload(message))

    def _on_analytics(self, account_id: str, summary: Optional[AnalyticsSummary]):
        message = {
            "event": "analytics_updated",
            "account_id": account_id,
            "data": summary.model_dump(mode="json") if summary else None,
        }
        self.broadcast_sync(account_id, message)

    def broadcast_sync(self, account_id: str, message: Dict[str, Any]):
        """
        Schedule a broadcast from synchronous code (store change callbacks).

        Runs on the current event loop when called from it, otherwise hands the
        coroutine to the loop the sockets live on.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if self._loop is not None and self._loop.is_running():
                asyncio.run_coroutine_threadsafe(self.broadcast(account_id, message), self._loop)
            return
        loop.create_task(self.broadcast(account_id, message))

    @property
    def connection_count(self) -> int:
        return sum(len(sockets) for sockets in self._connections.values())

    @property
    def live_accounts(self) -> int:
        return len(self._unsubscribe)


# Singleton manager
ws_manager = WebSocketManager()


async def websocket_endpoint(websocket: WebSocket):
    """
    Live analytics for one account.

    Clients connect to ws://host/ws/analytics?account_id=... and receive:
    - connected: acknowledgement
    - analytics_updated: after every recompute (data is null if it failed)
    - pong: reply to {"type": "ping"}
    """
    account_id = (websocket.query_params.get("account_id") or "").strip()
    if not account_id:
        await websocket.close(code=4401)
        return

    store = websocket.app.state.store
    await ws_manager.connect(websocket, account_id, store)
    await ws_manager.send_to(websocket, {
        "event": "connected",
        "account_id": account_id,
        "data": {"message": "Koblet til Proanbud live analyse"},
    })

    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(msg, dict) and msg.get("type") == "ping":
                await ws_manager.send_to(websocket, {"event": "pong", "data": {}})
    except WebSocketDisconnect:
        pass
    finally:
        ws_manager.disconnect(websocket, account_id)

