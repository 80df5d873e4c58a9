from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from group_sync.api.deps import ViewDep
from group_sync.api.v1.schemas.view import (
    ConversationResponse,
    MessageResponse,
    OutgoingResponse,
    PreviewResponse,
)
from group_sync.application.exceptions import AppError
from group_sync.config import settings
from group_sync.domain.value_objects.ids import GroupId
from group_sync.infrastructure.ws.protocol import OpenData, SendData, WsInbound, WsOutbound
from group_sync.services.messaging_view import MessagingView

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


def _previews_event(previews: Any) -> WsOutbound:
    items = [PreviewResponse.model_validate(p).model_dump(mode="json") for p in previews]
    return WsOutbound(type="previews.changed", data={"previews": items})


def _conversation_event(snapshot: Any) -> WsOutbound:
    data = ConversationResponse.from_snapshot(snapshot).model_dump(mode="json")
    return WsOutbound(type="conversation.changed", data=data)


def _connection_event(state: Any) -> WsOutbound:
    return WsOutbound(type="connection.changed", data={"state": str(state)})


def _outgoing_event(outgoing: Any) -> WsOutbound:
    data = OutgoingResponse.model_validate(outgoing).model_dump(mode="json")
    return WsOutbound(type="outgoing.changed", data=data)


def _error(code: str, **extra: Any) -> WsOutbound:
    return WsOutbound(type="error", data={"code": code, **extra})


@router.websocket("/ws/view")
async def ws_view(websocket: WebSocket, view: ViewDep) -> None:
    await websocket.accept()

    # One writer per socket; listeners and the read loop only enqueue.
    queue: asyncio.Queue[WsOutbound] = asyncio.Queue()
    removers = [
        view.on_previews_changed(lambda p: queue.put_nowait(_previews_event(p))),
        view.on_conversation_changed(lambda s: queue.put_nowait(_conversation_event(s))),
        view.on_connection_changed(lambda s: queue.put_nowait(_connection_event(s))),
        view.on_outgoing_changed(lambda o: queue.put_nowait(_outgoing_event(o))),
    ]
    queue.put_nowait(_connection_event(view.connection_state))
    queue.put_nowait(_previews_event(view.previews.previews))
    queue.put_nowait(_conversation_event(view.conversation()))

    writer = asyncio.create_task(_write_loop(websocket, queue), name="ws-view-writer")
    heartbeat = asyncio.create_task(_heartbeat(queue), name="ws-view-heartbeat")
    work = _SocketWork(view, queue)
    try:
        await _read_loop(websocket, work)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("UI WS error")
    finally:
        for remove in removers:
            remove()
        heartbeat.cancel()
        writer.cancel()
        await asyncio.gather(heartbeat, writer, work.stop(), return_exceptions=True)


async def _write_loop(ws: WebSocket, queue: asyncio.Queue[WsOutbound]) -> None:
    try:
        while True:
            event = await queue.get()
            await ws.send_text(event.model_dump_json())
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("UI WS writer stopped", exc_info=True)


async def _heartbeat(queue: asyncio.Queue[WsOutbound]) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            queue.put_nowait(WsOutbound(type="pong", data={}))
    except asyncio.CancelledError:
        pass


class _SocketWork:
    """Frames that wait on the backend run off the read loop.

    Opens run concurrently; the store keeps only the latest one. Sends from one
    socket go out in the order they were read.
    """

    def __init__(self, view: MessagingView, queue: asyncio.Queue[WsOutbound]) -> None:
        self.view = view
        self.queue = queue
        self._opens: set[asyncio.Task[None]] = set()
        self._sends: set[asyncio.Task[None]] = set()
        self._send_lock = asyncio.Lock()

    def open(self, data: dict[str, Any]) -> None:
        self._spawn(self._opens, _handle_open(self.view, data, self.queue), "ws-view-open")

    def send(self, data: dict[str, Any]) -> None:
        self._spawn(self._sends, self._send_in_order(data), "ws-view-send")

    async def stop(self) -> None:
        # Loads are dropped with the socket; sends already issued run to completion.
        for task in self._opens:
            task.cancel()
        await asyncio.gather(*self._opens, *self._sends, return_exceptions=True)

    async def _send_in_order(self, data: dict[str, Any]) -> None:
        async with self._send_lock:
            await _handle_send(self.view, data, self.queue)

    def _spawn(
        self, tasks: set[asyncio.Task[None]], coro: Coroutine[Any, Any, None], name: str,
    ) -> None:
        task = asyncio.create_task(coro, name=name)
        tasks.add(task)
        task.add_done_callback(tasks.discard)


async def _read_loop(ws: WebSocket, work: _SocketWork) -> None:
    view, queue = work.view, work.queue
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            queue.put_nowait(_error("invalid_payload"))
            continue

        if msg.type == "ping":
            queue.put_nowait(WsOutbound(type="pong", data={}))

        elif msg.type == "open":
            work.open(msg.data)

        elif msg.type == "close":
            view.close_conversation()

        elif msg.type == "message.send":
            work.send(msg.data)

        else:
            queue.put_nowait(_error("unknown_type", type=msg.type))


async def _handle_open(
    view: MessagingView,
    data: dict[str, Any],
    queue: asyncio.Queue[WsOutbound],
) -> None:
    try:
        frame = OpenData.model_validate(data)
    except PydanticValidationError as exc:
        queue.put_nowait(_error("invalid_data", detail=str(exc)))
        return
    try:
        await view.open_conversation(GroupId(frame.group_id))
    except AppError as exc:
        queue.put_nowait(_error("open_failed", detail=exc.detail))


async def _handle_send(
    view: MessagingView,
    data: dict[str, Any],
    queue: asyncio.Queue[WsOutbound],
) -> None:
    try:
        frame = SendData.model_validate(data)
    except PydanticValidationError as exc:
        queue.put_nowait(_error("invalid_data", detail=str(exc)))
        return
    try:
        message = await view.send_and_ingest(
            GroupId(frame.group_id), frame.content, frame.attachment_id,
        )
    except AppError as exc:
        queue.put_nowait(_error("send_failed", detail=exc.detail))
        return
    queue.put_nowait(WsOutbound(
        type="message.sent",
        data=MessageResponse.model_validate(message).model_dump(mode="json"),
    ))
