"""Live reservation listing over the API websocket"""

import asyncio
import inspect
import json
from typing import Awaitable, Callable, List, Optional, Union

import structlog
import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from app.client.session import IdentityGateway
from app.schemas.reservation import ReservationResponse

logger = structlog.get_logger()

SnapshotHandler = Callable[[List[ReservationResponse]], Union[None, Awaitable[None]]]
ErrorHandler = Callable[[str], Union[None, Awaitable[None]]]


async def _call(handler, *args) -> None:
    result = handler(*args)
    if inspect.isawaitable(result):
        await result


def live_url(base_url: str) -> str:
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return f"{base}/reservations/live"


class ReservationSubscription:
    """Delivers every full snapshot the server pushes.

    Reconnects after a dropped connection. A rejected handshake gets one
    token refresh; if that fails the subscription stops and reports the
    error.
    """

    def __init__(
        self,
        gateway: IdentityGateway,
        on_snapshot: SnapshotHandler,
        on_error: Optional[ErrorHandler] = None,
        reconnect_delay: float = 2.0,
        connect=websockets.connect,
    ):
        self.gateway = gateway
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.reconnect_delay = reconnect_delay
        self._connect = connect
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.active:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _report(self, message: str) -> None:
        logger.error("Live reservations error", error=message)
        if self.on_error:
            await _call(self.on_error, message)

    async def _deliver(self, message) -> None:
        """Hand one snapshot to the listener; a bad one is reported and skipped"""
        try:
            data = json.loads(message)
            records = [ReservationResponse.model_validate(r) for r in data["reservations"]]
            await _call(self.on_snapshot, records)
        except Exception as e:
            await self._report(f"Error loading reservations: {e}")

    async def _run(self) -> None:
        url = live_url(self.gateway.base_url)
        refreshed = False
        while True:
            try:
                async with self._connect(f"{url}?token={self.gateway.access_token}") as ws:
                    refreshed = False
                    async for message in ws:
                        await self._deliver(message)
            except InvalidHandshake as e:
                if not refreshed and await self.gateway.refresh():
                    refreshed = True
                    continue
                await self._report(f"Error loading reservations: {e}")
                return
            except (ConnectionClosed, OSError) as e:
                logger.warning("Live reservations connection lost", error=str(e))
            await asyncio.sleep(self.reconnect_delay)
