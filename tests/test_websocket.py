"""Tests for WebSocketManager fan-out and feed lifetime."""

import asyncio
import json

from models.crm_models import CustomerCreate
from dashboard.api.websocket import WebSocketManager


class FakeSocket:
    """Records sent payloads; optionally fails every send."""

    def __init__(self, fail=False):
        self.fail = fail
        self.accepted = False
        self.sent = []

    async def accept(self):
        self.accepted = True

    async def send_text(self, payload):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(payload))


async def _drain():
    # Let scheduled broadcasts run
    for _ in range(3):
        await asyncio.sleep(0)


class TestWebSocketManager:
    async def test_connect_starts_one_feed_per_account(self, store):
        manager = WebSocketManager()
        first, second = FakeSocket(), FakeSocket()

        await manager.connect(first, "acct-1", store)
        await manager.connect(second, "acct-1", store)
        await _drain()

        assert first.accepted and second.accepted
        assert manager.connection_count == 2
        assert manager.live_accounts == 1
        assert first.sent[0]["event"] == "analytics_updated"
        manager.close_all()

    async def test_store_change_reaches_every_socket(self, store, ctx, customers):
        manager = WebSocketManager()
        sockets = [FakeSocket(), FakeSocket()]
        for ws in sockets:
            await manager.connect(ws, ctx.account_id, store)
        await _drain()

        customers.create_customer(ctx, CustomerCreate(name="Ola"))
        await _drain()

        for ws in sockets:
            assert ws.sent[-1]["event"] == "analytics_updated"
            assert ws.sent[-1]["data"]["total_customers"] == 1
        manager.close_all()

    async def test_broadcast_drops_failing_socket(self, store):
        manager = WebSocketManager()
        healthy, broken = FakeSocket(), FakeSocket()
        await manager.connect(healthy, "acct-1", store)
        await manager.connect(broken, "acct-1", store)
        await _drain()

        broken.fail = True
        await manager.broadcast("acct-1", {"event": "ping_all"})

        assert manager.connection_count == 1
        assert healthy.sent[-1]["event"] == "ping_all"
        assert "timestamp" in healthy.sent[-1]
        assert manager.live_accounts == 1
        manager.close_all()

    async def test_last_failing_socket_stops_feed(self, store):
        manager = WebSocketManager()
        ws = FakeSocket()
        await manager.connect(ws, "acct-1", store)
        await _drain()

        ws.fail = True
        await manager.broadcast("acct-1", {"event": "ping_all"})

        assert manager.connection_count == 0
        assert manager.live_accounts == 0
        assert store.subscription_count == 0

    async def test_broadcast_to_unknown_account_is_noop(self):
        manager = WebSocketManager()
        await manager.broadcast("nobody", {"event": "analytics_updated"})
        assert manager.connection_count == 0
