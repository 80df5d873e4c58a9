from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from group_sync.services.conversation_store import ConversationSnapshot


class LastMessageResponse(BaseModel):
    content: str
    sender_name: str
    timestamp: datetime
    is_own: bool

    model_config = {"from_attributes": True}


class PreviewResponse(BaseModel):
    group_id: int
    group_name: str
    last_message: LastMessageResponse | None
    unread_count: int

    model_config = {"from_attributes": True}


class FileRefResponse(BaseModel):
    id: int
    filename: str | None
    content_type: str | None
    size: int | None

    model_config = {"from_attributes": True}


class EventRefResponse(BaseModel):
    id: int
    title: str | None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: int
    group_id: int
    sender_id: int
    sender_name: str
    content: str
    kind: str
    created_at: datetime
    attachment: FileRefResponse | None
    event_ref: EventRefResponse | None

    model_config = {"from_attributes": True}


class ConversationResponse(BaseModel):
    group_id: int | None
    epoch: int
    status: str
    messages: list[MessageResponse]
    error: str | None

    @classmethod
    def from_snapshot(cls, snapshot: ConversationSnapshot) -> ConversationResponse:
        return cls(
            group_id=snapshot.group_id,
            epoch=snapshot.epoch,
            status=snapshot.status,
            messages=[MessageResponse.model_validate(m) for m in snapshot.messages],
            error=snapshot.error,
        )


class OutgoingResponse(BaseModel):
    local_id: UUID
    group_id: int
    content: str
    state: str
    message_id: int | None
    error: str | None

    model_config = {"from_attributes": True}


class SendMessageRequest(BaseModel):
    content: str = ""
    attachment_id: int | None = None
