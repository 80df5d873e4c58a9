"""Owner of the single physical connection to the messaging backend.

The session keeps a registry of topic handlers that outlives individual
connections. Whenever the connection reaches ``CONNECTED`` every registered
topic is subscribed again, so intent recorded while offline is never lost.
Transport failures never reach callers as exceptions; they show up only as
state transitions.
"""
from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from group_sync.application.ports.transport import PubSubTransport
from group_sync.domain.value_objects.enums import ConnectionState

logger = logging.getLogger(__name__)

PayloadHandler = Callable[[str], None]
StateListener = Callable[[ConnectionState], Awaitable[None] | None]

_handle_ids = itertools.count(1)


@dataclass(eq=False, slots=True)
class SubscriptionHandle:
    topic: str
    handler: PayloadHandler
    id: int = field(default_factory=lambda: next(_handle_ids))
    cancelled: bool = False


class TransportSession:
    def __init__(
        self,
        transport: PubSubTransport,
        credential: str,
        *,
        reconnect_delay: float = 5.0,
        heartbeat_interval: float = 4.0,
    ) -> None:
        self._transport = transport
        self._credential = credential
        self._reconnect_delay = reconnect_delay
        self._heartbeat_interval = heartbeat_interval
        self._state = ConnectionState.DISCONNECTED
        self._handles: dict[str, list[SubscriptionHandle]] = {}
        self._live: set[str] = set()
        self._inflight: set[str] = set()
        # Bumped on every connect and drop; results of transport calls issued
        # under an older generation are ignored.
        self._generation = 0
        self._supervisor: asyncio.Task[None] | None = None
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def topics(self) -> frozenset[str]:
        return frozenset(self._handles)

    def is_active(self, handle: SubscriptionHandle) -> bool:
        return (
            not handle.cancelled
            and self.is_connected
            and handle.topic in self._live
        )

    def on_state_change(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener; coroutine listeners are awaited in order."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # -- lifecycle ---------------------------------------------------------

    async def connect(self) -> None:
        if self._supervisor is not None and not self._supervisor.done():
            return
        await self._set_state(ConnectionState.CONNECTING)
        self._supervisor = asyncio.create_task(self._supervise(), name="transport-session")

    async def disconnect(self) -> None:
        task, self._supervisor = self._supervisor, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._state is ConnectionState.DISCONNECTED:
            return
        self._generation += 1
        self._live.clear()
        await self._close_quietly()
        await self._set_state(ConnectionState.DISCONNECTED)
        logger.info("Transport session disconnected")

    # -- subscriptions -----------------------------------------------------

    def register(self, topic: str, handler: PayloadHandler) -> SubscriptionHandle:
        """Record interest in a topic without touching the connection."""
        handle = SubscriptionHandle(topic=topic, handler=handler)
        self._handles.setdefault(topic, []).append(handle)
        return handle

    async def materialize(self, handle: SubscriptionHandle) -> bool:
        """Subscribe the handle's topic on the live connection, if there is one."""
        if handle.cancelled:
            return False
        await self._materialize(handle.topic)
        return self.is_active(handle)

    async def subscribe(self, topic: str, handler: PayloadHandler) -> SubscriptionHandle:
        handle = self.register(topic, handler)
        await self.materialize(handle)
        return handle

    def cancel(self, handle: SubscriptionHandle) -> None:
        """Stop dispatching to the handle now; the topic is released later."""
        if handle.cancelled:
            return
        handle.cancelled = True
        handles = self._handles.get(handle.topic, [])
        if handle in handles:
            handles.remove(handle)
        if not handles:
            self._handles.pop(handle.topic, None)

    async def release(self, topic: str) -> None:
        """Unsubscribe the live topic if no handle is registered for it."""
        if self._handles.get(topic):
            return
        await self._release(topic)

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        if handle.cancelled:
            return
        self.cancel(handle)
        await self.release(handle.topic)

    async def publish(self, topic: str, payload: str) -> bool:
        """Hand a payload to the live connection. False means it was not sent."""
        if not self.is_connected:
            logger.info("Not publishing to %s while %s", topic, self._state)
            return False
        try:
            await self._transport.publish(topic, payload)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Publish to %s failed", topic, exc_info=True)
            return False
        return True

    # -- internals ---------------------------------------------------------

    async def _supervise(self) -> None:
        while True:
            try:
                await self._transport.open(self._credential, self._dispatch)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning(
                    "Transport connect failed, retrying in %.1fs",
                    self._reconnect_delay,
                    exc_info=True,
                )
                await self._close_quietly()
                await self._set_state(ConnectionState.RECONNECTING)
                await asyncio.sleep(self._reconnect_delay)
                continue

            self._generation += 1
            self._live.clear()
            self._state = ConnectionState.CONNECTED
            await self._restore_topics()
            logger.info("Transport connected (%d topics restored)", len(self._live))
            await self._set_state(ConnectionState.CONNECTED, force=True)

            await self._watch()

            self._generation += 1
            self._live.clear()
            await self._close_quietly()
            await self._set_state(ConnectionState.RECONNECTING)
            await asyncio.sleep(self._reconnect_delay)

    async def _watch(self) -> None:
        """Heartbeat the connection until it drops."""
        closed = asyncio.ensure_future(self._transport.wait_closed())
        try:
            while True:
                done, _ = await asyncio.wait({closed}, timeout=self._heartbeat_interval)
                if closed in done:
                    logger.warning("Transport connection dropped")
                    return
                try:
                    await asyncio.wait_for(
                        self._transport.ping(), timeout=self._heartbeat_interval,
                    )
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.warning("Transport heartbeat failed", exc_info=True)
                    return
        finally:
            closed.cancel()

    async def _restore_topics(self) -> None:
        for topic in list(self._handles):
            await self._materialize(topic)

    async def _materialize(self, topic: str) -> None:
        if not self.is_connected or topic in self._live or topic in self._inflight:
            return
        generation = self._generation
        self._inflight.add(topic)
        try:
            await self._transport.subscribe(topic)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Subscribe to %s rejected", topic, exc_info=True)
            return
        finally:
            self._inflight.discard(topic)
        if generation != self._generation:
            return
        self._live.add(topic)
        if not self._handles.get(topic):
            # Every handle was cancelled while the subscribe was in flight.
            await self._release(topic)

    async def _release(self, topic: str) -> None:
        if topic not in self._live:
            return
        self._live.discard(topic)
        try:
            await self._transport.unsubscribe(topic)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Unsubscribe from %s failed", topic, exc_info=True)

    def _dispatch(self, topic: str, raw: str) -> None:
        for handle in list(self._handles.get(topic, ())):
            if handle.cancelled:
                continue
            try:
                handle.handler(raw)
            except Exception:
                logger.exception("Handler for %s failed", topic)

    async def _close_quietly(self) -> None:
        try:
            await self._transport.close()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.debug("Transport close failed", exc_info=True)

    async def _set_state(self, state: ConnectionState, *, force: bool = False) -> None:
        if state is self._state and not force:
            return
        self._state = state
        for listener in list(self._listeners):
            try:
                result = listener(state)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Connection state listener failed")
