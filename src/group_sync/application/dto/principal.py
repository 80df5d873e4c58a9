from __future__ import annotations

from dataclasses import dataclass

from group_sync.domain.value_objects.ids import UserId


@dataclass(frozen=True, slots=True)
class Principal:
    """The signed-in user, as read from the session token."""

    user_id: UserId
    username: str | None = None

    def owns(self, sender_id: int) -> bool:
        return sender_id == self.user_id
