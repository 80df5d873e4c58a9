"""Sidebar summaries: last message and unread count per member group."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Mapping

from group_sync.application.dto.principal import Principal
from group_sync.domain.entities.group import GroupSummary
from group_sync.domain.entities.message import Message
from group_sync.domain.entities.preview import ChatPreview, LastMessage
from group_sync.domain.value_objects.ids import GroupId
from group_sync.services.listeners import Listeners

logger = logging.getLogger(__name__)

_NO_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)


def _sort_key(preview: ChatPreview) -> tuple[bool, datetime]:
    if preview.last_message is None:
        return False, _NO_TIMESTAMP
    return True, preview.last_message.timestamp


def sort_previews(previews: Iterable[ChatPreview]) -> list[ChatPreview]:
    """Newest first, groups without messages last; ties keep their order."""
    # sorted() stays stable under reverse=True.
    return sorted(previews, key=_sort_key, reverse=True)


class PreviewAggregator:
    def __init__(self, principal: Principal) -> None:
        self._principal = principal
        self._previews: list[ChatPreview] = []
        self._changed: Listeners[tuple[ChatPreview, ...]] = Listeners("previews")

    @property
    def previews(self) -> tuple[ChatPreview, ...]:
        return tuple(self._previews)

    def get(self, group_id: GroupId) -> ChatPreview | None:
        for preview in self._previews:
            if preview.group_id == group_id:
                return preview
        return None

    def unread_groups(self) -> int:
        return sum(1 for p in self._previews if p.unread_count > 0)

    def on_changed(
        self, listener: Callable[[tuple[ChatPreview, ...]], None],
    ) -> Callable[[], None]:
        return self._changed.add(listener)

    def project(self, message: Message) -> LastMessage:
        return LastMessage(
            content=message.content,
            sender_name=message.sender_name,
            timestamp=message.created_at,
            is_own=self._principal.owns(message.sender_id),
        )

    def seed(
        self,
        groups: Iterable[GroupSummary],
        last_messages: Mapping[GroupId, Message | None],
    ) -> None:
        """Replace the collection, one zero-unread preview per group."""
        previews = []
        for group in groups:
            last = last_messages.get(group.id)
            previews.append(ChatPreview(
                group_id=group.id,
                group_name=group.name,
                last_message=self.project(last) if last is not None else None,
            ))
        self._previews = sort_previews(previews)
        self._emit()

    def retain(
        self,
        groups: Iterable[GroupSummary],
        last_messages: Mapping[GroupId, Message | None],
    ) -> None:
        """Follow a membership change, keeping counters of groups still present."""
        groups = list(groups)
        names = {g.id: g.name for g in groups}
        kept = [
            replace(p, group_name=names[p.group_id])
            for p in self._previews
            if p.group_id in names
        ]
        known = {p.group_id for p in kept}
        for group in groups:
            if group.id in known:
                continue
            last = last_messages.get(group.id)
            kept.append(ChatPreview(
                group_id=group.id,
                group_name=group.name,
                last_message=self.project(last) if last is not None else None,
            ))
        self._previews = sort_previews(kept)
        self._emit()

    def apply(self, message: Message, open_group_id: GroupId | None) -> ChatPreview:
        """Fold one ingested message into its group's preview and re-sort."""
        last = self.project(message)
        bump = message.group_id != open_group_id and not last.is_own

        index = self._index_of(message.group_id)
        if index is None:
            logger.debug("Creating preview for unlisted group %s", message.group_id)
            preview = ChatPreview(group_id=message.group_id, group_name=str(message.group_id))
            self._previews.append(preview)
            index = len(self._previews) - 1
        else:
            preview = self._previews[index]

        preview = replace(
            preview,
            last_message=last,
            unread_count=preview.unread_count + 1 if bump else preview.unread_count,
        )
        self._previews[index] = preview
        self._previews = sort_previews(self._previews)
        self._emit()
        return preview

    def mark_read(self, group_id: GroupId) -> None:
        index = self._index_of(group_id)
        if index is None or self._previews[index].unread_count == 0:
            return
        self._previews[index] = replace(self._previews[index], unread_count=0)
        self._emit()

    def _index_of(self, group_id: GroupId) -> int | None:
        for i, preview in enumerate(self._previews):
            if preview.group_id == group_id:
                return i
        return None

    def _emit(self) -> None:
        self._changed.emit(tuple(self._previews))
