from __future__ import annotations

from typing import Protocol

from group_sync.domain.entities.group import GroupSummary
from group_sync.domain.entities.message import Message
from group_sync.domain.value_objects.ids import GroupId


class MembershipSource(Protocol):
    async def get_my_groups(self) -> list[GroupSummary]: ...


class HistorySource(Protocol):
    async def get_group_messages(self, group_id: GroupId) -> list[Message]: ...


class SendSource(Protocol):
    async def send_message(
        self,
        group_id: GroupId,
        content: str,
        attachment_id: int | None = None,
    ) -> Message:
        """Return the stored message. Raise SendFailedError when rejected."""
        ...
