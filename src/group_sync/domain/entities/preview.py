from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from group_sync.domain.value_objects.ids import GroupId


@dataclass(frozen=True, slots=True)
class LastMessage:
    content: str
    sender_name: str
    timestamp: datetime
    is_own: bool


@dataclass(frozen=True, slots=True)
class ChatPreview:
    group_id: GroupId
    group_name: str
    last_message: LastMessage | None = None
    unread_count: int = 0
