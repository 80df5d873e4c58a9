from __future__ import annotations

from typing import Callable, Protocol

PayloadCallback = Callable[[str, str], None]
"""Called with (topic, raw payload) for every delivery on the connection."""


class PubSubTransport(Protocol):
    """One physical publish/subscribe connection.

    Every method may raise; TransportSession is the only caller and turns
    failures into state transitions.
    """

    async def open(self, credential: str, on_payload: PayloadCallback) -> None: ...

    async def close(self) -> None: ...

    async def wait_closed(self) -> None:
        """Return once the connection has dropped or been closed."""
        ...

    async def subscribe(self, topic: str) -> None: ...

    async def unsubscribe(self, topic: str) -> None: ...

    async def publish(self, topic: str, payload: str) -> None: ...

    async def ping(self) -> None: ...
