"""Tests for live reservation updates"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from websockets.exceptions import InvalidHandshake

from app.api.auth import create_access_token
from app.api.reservations import build_snapshot
from app.client.subscription import ReservationSubscription, live_url
from app.main import app
from app.realtime import ReservationHub, change_event


@pytest.mark.asyncio
async def test_hub_fans_out_to_every_subscriber():
    """Test each subscriber receives every change"""
    hub = ReservationHub()

    async with hub.subscribe() as first, hub.subscribe() as second:
        assert hub.subscriber_count == 2
        await hub.publish(change_event("created", "abc"))

        assert first.get_nowait() == {"type": "created", "id": "abc"}
        assert second.get_nowait() == {"type": "created", "id": "abc"}

    assert hub.subscriber_count == 0


@pytest.mark.asyncio
async def test_hub_publish_without_subscribers():
    """Test publishing with nobody listening is harmless"""
    hub = ReservationHub()

    await hub.publish(change_event("deleted", "abc"))

    assert hub.subscriber_count == 0


@pytest.mark.asyncio
async def test_build_snapshot(session_factory, test_reservations):
    """Test the snapshot is the full collection, newest first"""
    snapshot = await build_snapshot(session_factory)

    assert [r["customer_name"] for r in snapshot["reservations"]] == [
        "Meera Iyer",
        "Rohan Sen",
        "Asha Rao",
    ]
    assert snapshot["reservations"][0]["status"] == "cancelled"


def test_live_url():
    assert live_url("http://test/") == "ws://test/reservations/live"
    assert live_url("https://api.onesip.co.in") == "wss://api.onesip.co.in/reservations/live"


class FakeConnection:
    def __init__(self, messages):
        self.messages = messages

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message


def fake_gateway(refresh_result=False):
    gateway = MagicMock()
    gateway.base_url = "http://test/"
    gateway.access_token = "first-token"
    gateway.refresh = AsyncMock(return_value=refresh_result)
    return gateway


def snapshot_message(*names):
    return json.dumps(
        {
            "reservations": [
                {
                    "id": f"00000000-0000-0000-0000-00000000000{i}",
                    "customer_name": name,
                    "customer_phone": "9876543210",
                    "party_size": 2,
                    "reservation_date": "2026-01-10",
                    "reservation_time": "19:00",
                    "status": "pending",
                }
                for i, name in enumerate(names)
            ]
        }
    )


@pytest.mark.asyncio
async def test_subscription_delivers_snapshots():
    """Test each pushed snapshot reaches the handler as records"""
    received = []
    done = asyncio.Event()
    urls = []

    def on_snapshot(records):
        received.append([r.customer_name for r in records])
        if len(received) == 2:
            done.set()

    def connect(url):
        urls.append(url)
        return FakeConnection([snapshot_message("Asha"), snapshot_message("Rohan", "Asha")])

    subscription = ReservationSubscription(
        fake_gateway(), on_snapshot, reconnect_delay=60, connect=connect
    )
    subscription.start()
    await asyncio.wait_for(done.wait(), timeout=1)
    await subscription.stop()

    assert received == [["Asha"], ["Rohan", "Asha"]]
    assert urls == ["ws://test/reservations/live?token=first-token"]
    assert not subscription.active


@pytest.mark.asyncio
async def test_subscription_refreshes_once_on_rejected_handshake():
    """Test a rejected handshake retries with a refreshed token"""
    gateway = fake_gateway(refresh_result=True)
    received = asyncio.Event()
    urls = []

    async def refresh():
        gateway.access_token = "second-token"
        return True

    gateway.refresh = AsyncMock(side_effect=refresh)

    def connect(url):
        urls.append(url)
        if len(urls) == 1:
            raise InvalidHandshake("server rejected WebSocket connection: HTTP 403")
        return FakeConnection([snapshot_message("Asha")])

    subscription = ReservationSubscription(
        gateway, lambda records: received.set(), reconnect_delay=60, connect=connect
    )
    subscription.start()
    await asyncio.wait_for(received.wait(), timeout=1)
    await subscription.stop()

    assert urls[1].endswith("token=second-token")
    gateway.refresh.assert_awaited_once()


@pytest.mark.asyncio
async def test_subscription_reports_rejection():
    """Test the subscription stops with an error when the session can't be renewed"""
    errors = []

    def connect(url):
        raise InvalidHandshake("server rejected WebSocket connection: HTTP 403")

    subscription = ReservationSubscription(
        fake_gateway(refresh_result=False),
        lambda records: None,
        on_error=errors.append,
        connect=connect,
    )
    subscription.start()
    await asyncio.wait_for(subscription._task, timeout=1)

    assert len(errors) == 1
    assert errors[0].startswith("Error loading reservations:")
    assert not subscription.active


@pytest.mark.asyncio
async def test_subscription_survives_bad_snapshot():
    """Test an unreadable message is reported and later snapshots still arrive"""
    errors = []
    received = []
    done = asyncio.Event()

    def on_snapshot(records):
        received.append([r.customer_name for r in records])
        done.set()

    def connect(url):
        return FakeConnection(["not json", json.dumps({"reservations": [{"id": "x"}]}), snapshot_message("Asha")])

    subscription = ReservationSubscription(
        fake_gateway(), on_snapshot, on_error=errors.append, reconnect_delay=60, connect=connect
    )
    subscription.start()
    await asyncio.wait_for(done.wait(), timeout=1)
    await subscription.stop()

    assert received == [["Asha"]]
    assert len(errors) == 2
    assert all(e.startswith("Error loading reservations:") for e in errors)


@pytest.mark.asyncio
async def test_subscription_survives_failing_handler():
    """Test an exception from the snapshot handler doesn't end the listing"""
    errors = []
    calls = []
    done = asyncio.Event()

    def on_snapshot(records):
        calls.append(len(records))
        if len(calls) == 1:
            raise ValueError("render failed")
        done.set()

    def connect(url):
        return FakeConnection([snapshot_message("Asha"), snapshot_message("Rohan", "Asha")])

    subscription = ReservationSubscription(
        fake_gateway(), on_snapshot, on_error=errors.append, reconnect_delay=60, connect=connect
    )
    subscription.start()
    await asyncio.wait_for(done.wait(), timeout=1)
    await subscription.stop()

    assert calls == [1, 2]
    assert errors == ["Error loading reservations: render failed"]


class LiveSocket:
    """Talks to the live listing endpoint over raw ASGI messages on the test's loop"""

    def __init__(self, token=None):
        self.scope = {
            "type": "websocket",
            "asgi": {"version": "3.0"},
            "scheme": "ws",
            "http_version": "1.1",
            "path": "/reservations/live",
            "raw_path": b"/reservations/live",
            "root_path": "",
            "query_string": f"token={token}".encode() if token else b"",
            "headers": [(b"host", b"test")],
            "client": ("127.0.0.1", 50000),
            "server": ("test", 80),
            "subprotocols": [],
        }
        self.inbound = asyncio.Queue()
        self.outbound = asyncio.Queue()
        self.task = None

    async def __aenter__(self):
        await self.inbound.put({"type": "websocket.connect"})
        self.task = asyncio.create_task(app(self.scope, self.inbound.get, self.outbound.put))
        return self

    async def __aexit__(self, *exc_info):
        await self.inbound.put({"type": "websocket.disconnect", "code": 1000})
        await asyncio.wait_for(self.task, timeout=1)

    async def receive(self, timeout=1):
        return await asyncio.wait_for(self.outbound.get(), timeout)

    async def send_bytes(self, data: bytes):
        await self.inbound.put({"type": "websocket.receive", "bytes": data})

    async def snapshot(self):
        message = await self.receive()
        assert message["type"] == "websocket.send"
        return [r["customer_name"] for r in json.loads(message["text"])["reservations"]]

    async def nothing_pending(self, wait=0.2):
        try:
            message = await self.receive(timeout=wait)
        except asyncio.TimeoutError:
            return True
        raise AssertionError(f"unexpected message {message}")


@pytest.mark.asyncio
async def test_live_sends_snapshot_on_connect(client, test_user, test_reservations):
    """Test a signed-in listener gets the whole list, newest first, right away"""
    async with LiveSocket(create_access_token(test_user)) as ws:
        assert (await ws.receive())["type"] == "websocket.accept"
        assert await ws.snapshot() == ["Meera Iyer", "Rohan Sen", "Asha Rao"]


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "not-a-token"])
async def test_live_rejects_missing_or_bad_token(client, test_reservations, token):
    """Test the connection is closed with a policy violation before it is accepted"""
    async with LiveSocket(token) as ws:
        message = await ws.receive()

        assert message["type"] == "websocket.close"
        assert message["code"] == 1008
        await ws.task


@pytest.mark.asyncio
async def test_live_pushes_after_each_write(admin_client, test_admin_user, test_reservations, make_payload):
    """Test create, confirm and delete each push a fresh full list"""
    pending, _, cancelled = test_reservations

    async with LiveSocket(create_access_token(test_admin_user)) as ws:
        await ws.receive()
        assert len(await ws.snapshot()) == 3

        created = await admin_client.post("/reservations", json=make_payload(customer_name="Kabir Das"))
        assert created.status_code == 201
        assert await ws.snapshot() == ["Kabir Das", "Meera Iyer", "Rohan Sen", "Asha Rao"]

        confirmed = await admin_client.post(f"/reservations/{pending.id}/confirm")
        assert confirmed.status_code == 200
        message = await ws.receive()
        statuses = {r["customer_name"]: r["status"] for r in json.loads(message["text"])["reservations"]}
        assert statuses["Asha Rao"] == "confirmed"

        deleted = await admin_client.delete(f"/reservations/{cancelled.id}")
        assert deleted.status_code == 204
        assert await ws.snapshot() == ["Kabir Das", "Rohan Sen", "Asha Rao"]


@pytest.mark.asyncio
async def test_live_collapses_a_burst_into_one_snapshot(client, hub, test_user, test_reservations):
    """Test several changes arriving together produce a single push"""
    async with LiveSocket(create_access_token(test_user)) as ws:
        await ws.receive()
        await ws.snapshot()

        for kind in ("created", "updated", "deleted"):
            await hub.publish(change_event(kind, test_reservations[0].id))

        assert len(await ws.snapshot()) == 3
        assert await ws.nothing_pending()


@pytest.mark.asyncio
async def test_live_ignores_binary_frames(client, hub, test_user, test_reservations):
    """Test an inbound binary frame neither closes the listing nor stops updates"""
    async with LiveSocket(create_access_token(test_user)) as ws:
        await ws.receive()
        await ws.snapshot()

        await ws.send_bytes(b"\x00\x01")
        await hub.publish(change_event("updated", test_reservations[0].id))

        assert len(await ws.snapshot()) == 3
        assert not ws.task.done()
