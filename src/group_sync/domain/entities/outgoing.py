from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from group_sync.domain.value_objects.enums import SendState
from group_sync.domain.value_objects.ids import GroupId, MessageId


@dataclass(frozen=True, slots=True)
class OutgoingMessage:
    """A send issued from this client, tracked until the backend answers."""

    local_id: UUID
    group_id: GroupId
    content: str
    state: SendState = SendState.PENDING
    message_id: MessageId | None = None
    error: str | None = None
