"""Redis Pub/Sub as the push transport."""
from __future__ import annotations

import asyncio
import logging

import redis.asyncio as aioredis
from redis.asyncio.client import PubSub

from group_sync.application.ports.transport import PayloadCallback

logger = logging.getLogger(__name__)


class RedisPubSubTransport:
    """Implements application.ports.transport.PubSubTransport.

    The session credential is presented as the AUTH password on connect; one
    pubsub connection carries every group channel.
    """

    def __init__(
        self,
        url: str,
        *,
        username: str | None = None,
        poll_timeout: float = 1.0,
    ) -> None:
        self._url = url
        self._username = username
        self._poll_timeout = poll_timeout
        self._redis: aioredis.Redis | None = None
        self._pubsub: PubSub | None = None
        self._task: asyncio.Task[None] | None = None
        self._closed = asyncio.Event()
        self._closed.set()

    async def open(self, credential: str, on_payload: PayloadCallback) -> None:
        self._redis = aioredis.from_url(
            self._url,
            username=self._username,
            password=credential or None,
            decode_responses=True,
        )
        await self._redis.ping()
        self._pubsub = self._redis.pubsub()
        self._closed.clear()
        self._task = asyncio.create_task(
            self._listen(self._pubsub, on_payload), name="redis-pubsub-transport",
        )
        logger.info("Redis Pub/Sub transport connected")

    async def close(self) -> None:
        task, self._task = self._task, None
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is not None:
            await pubsub.aclose()
        redis, self._redis = self._redis, None
        if redis is not None:
            await redis.aclose()
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def subscribe(self, topic: str) -> None:
        await self._require_pubsub().subscribe(topic)

    async def unsubscribe(self, topic: str) -> None:
        await self._require_pubsub().unsubscribe(topic)

    async def publish(self, topic: str, payload: str) -> None:
        await self._require_redis().publish(topic, payload)

    async def ping(self) -> None:
        await self._require_redis().ping()

    async def _listen(self, pubsub: PubSub, on_payload: PayloadCallback) -> None:
        try:
            while True:
                if not pubsub.subscribed:
                    await asyncio.sleep(self._poll_timeout)
                    continue
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=self._poll_timeout,
                )
                if message is None or message["type"] != "message":
                    continue
                on_payload(message["channel"], message["data"])
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Redis Pub/Sub connection lost", exc_info=True)
        finally:
            self._closed.set()

    def _require_redis(self) -> aioredis.Redis:
        if self._redis is None:
            raise ConnectionError("transport is not open")
        return self._redis

    def _require_pubsub(self) -> PubSub:
        if self._pubsub is None:
            raise ConnectionError("transport is not open")
        return self._pubsub
