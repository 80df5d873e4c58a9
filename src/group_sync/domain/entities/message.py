from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from group_sync.domain.value_objects.enums import MessageKind
from group_sync.domain.value_objects.ids import GroupId, MessageId, UserId


@dataclass(frozen=True, slots=True)
class FileRef:
    id: int
    filename: str | None = None
    content_type: str | None = None
    size: int | None = None


@dataclass(frozen=True, slots=True)
class EventRef:
    id: int
    title: str | None = None


@dataclass(frozen=True, slots=True)
class Message:
    id: MessageId
    group_id: GroupId
    sender_id: UserId
    sender_name: str
    content: str
    kind: MessageKind
    created_at: datetime
    attachment: FileRef | None = None
    event_ref: EventRef | None = None
