"""UI WebSocket frames."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class WsInbound(BaseModel):
    """UI → view."""

    type: str  # ping | open | close | message.send
    data: dict[str, Any] = {}


class OpenData(BaseModel):
    group_id: int


class SendData(BaseModel):
    group_id: int
    content: str = ""
    attachment_id: int | None = None


class WsOutbound(BaseModel):
    """View → UI."""

    type: str  # previews.changed | conversation.changed | connection.changed | outgoing.changed | message.sent | error | pong
    data: dict[str, Any] = {}
