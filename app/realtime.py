"""Change fan-out for live reservation listings"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Set

import redis
import redis.asyncio as aioredis
import structlog

from app.config import settings

logger = structlog.get_logger()


def change_event(kind: str, reservation_id) -> dict:
    """created / updated / deleted"""
    return {"type": kind, "id": str(reservation_id)}


class ReservationHub:
    """In-process hub: every subscriber gets every committed change"""

    def __init__(self) -> None:
        self._queues: Set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def publish(self, event: dict) -> None:
        self._fan_out(event)

    def _fan_out(self, event: dict) -> None:
        for queue in list(self._queues):
            queue.put_nowait(event)

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.add(queue)
        try:
            yield queue
        finally:
            self._queues.discard(queue)


class RedisReservationHub(ReservationHub):
    """Hub backed by Redis pub/sub so worker processes can publish too"""

    def __init__(self, redis_url: str, channel: str) -> None:
        super().__init__()
        self.redis_url = redis_url
        self.channel = channel
        self._client: Optional[aioredis.Redis] = None
        self._listener: Optional[asyncio.Task] = None

    async def start(self) -> None:
        self._client = aioredis.from_url(self.redis_url)
        self._listener = asyncio.create_task(self._listen())
        logger.info("Realtime hub listening", channel=self.channel)

    async def stop(self) -> None:
        if self._listener:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
        if self._client:
            await self._client.aclose()

    async def publish(self, event: dict) -> None:
        if self._client is None:
            raise RuntimeError("Realtime hub is not started")
        await self._client.publish(self.channel, json.dumps(event))

    async def _listen(self) -> None:
        pubsub = self._client.pubsub()
        await pubsub.subscribe(self.channel)
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                self._fan_out(json.loads(message["data"]))
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()


_hub: Optional[ReservationHub] = None


def get_hub() -> ReservationHub:
    """Process-wide hub for the configured backend"""
    global _hub
    if _hub is None:
        if settings.realtime_backend == "redis":
            _hub = RedisReservationHub(settings.redis_url, settings.realtime_channel)
        else:
            _hub = ReservationHub()
    return _hub


def publish_from_worker(event: dict) -> None:
    """Publish from a synchronous worker process.

    Only the Redis backend crosses process boundaries; with the local backend
    the API process never sees worker writes until its next own change.
    """
    if settings.realtime_backend != "redis":
        logger.debug("Realtime backend is local, worker change not broadcast", **event)
        return
    client = redis.Redis.from_url(settings.redis_url)
    try:
        client.publish(settings.realtime_channel, json.dumps(event))
    finally:
        client.close()
