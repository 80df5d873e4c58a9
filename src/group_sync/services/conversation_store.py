"""Transcript of the group currently open in the UI."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from group_sync.application.ports.backend import HistorySource
from group_sync.domain.entities.message import Message
from group_sync.domain.value_objects.enums import ConversationStatus
from group_sync.domain.value_objects.ids import GroupId, MessageId
from group_sync.services.listeners import Listeners

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ConversationSnapshot:
    group_id: GroupId | None
    epoch: int
    status: ConversationStatus
    messages: tuple[Message, ...] = ()
    error: str | None = None


class ConversationStore:
    """Owns the single materialized conversation buffer.

    Every ``open()`` starts a new epoch. A history result is installed only if
    the epoch it was requested under is still current. Messages appended while
    history is loading are held back and merged by id once it lands.
    """

    def __init__(self, history: HistorySource) -> None:
        self._history = history
        self._epoch = 0
        self._group_id: GroupId | None = None
        self._status = ConversationStatus.IDLE
        self._error: str | None = None
        self._messages: list[Message] = []
        self._ids: set[MessageId] = set()
        self._held: list[Message] = []
        self._changed: Listeners[ConversationSnapshot] = Listeners("conversation")

    @property
    def group_id(self) -> GroupId | None:
        return self._group_id

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def status(self) -> ConversationStatus:
        return self._status

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def snapshot(self) -> ConversationSnapshot:
        return ConversationSnapshot(
            group_id=self._group_id,
            epoch=self._epoch,
            status=self._status,
            messages=tuple(self._messages),
            error=self._error,
        )

    def on_changed(
        self, listener: Callable[[ConversationSnapshot], None],
    ) -> Callable[[], None]:
        return self._changed.add(listener)

    def contains(self, message: Message) -> bool:
        return message.group_id == self._group_id and message.id in self._ids

    async def open(self, group_id: GroupId) -> bool:
        """Load ``group_id`` into a fresh buffer.

        Returns False when the load was superseded by a later open/close.
        """
        self._reset()
        self._epoch += 1
        epoch = self._epoch
        self._group_id = group_id
        self._status = ConversationStatus.LOADING
        self._emit()

        try:
            history = await self._history.get_group_messages(group_id)
        except asyncio.CancelledError:
            if epoch == self._epoch:
                self.close()
            raise
        except Exception as exc:
            if epoch != self._epoch:
                return False
            logger.warning("History fetch for group %s failed: %s", group_id, exc)
            self._install([], ConversationStatus.ERROR, str(exc) or type(exc).__name__)
            return True

        if epoch != self._epoch:
            logger.debug("Discarding stale history for group %s (epoch %d)", group_id, epoch)
            return False
        self._install(history, ConversationStatus.READY, None)
        return True

    def append(self, message: Message) -> bool:
        """Add a live message to the open buffer if it is new."""
        if self._group_id is None or message.group_id != self._group_id:
            return False
        if message.id in self._ids:
            return False
        self._ids.add(message.id)
        if self._status is ConversationStatus.LOADING:
            self._held.append(message)
            return True
        self._messages.append(message)
        self._emit()
        return True

    def close(self) -> None:
        if self._group_id is None and self._status is ConversationStatus.IDLE:
            return
        self._reset()
        self._epoch += 1
        self._emit()

    def _install(
        self,
        history: list[Message],
        status: ConversationStatus,
        error: str | None,
    ) -> None:
        held, self._held = self._held, []
        self._messages = []
        self._ids = set()
        for message in [*history, *held]:
            if message.group_id != self._group_id or message.id in self._ids:
                continue
            self._ids.add(message.id)
            self._messages.append(message)
        self._status = status
        self._error = error
        self._emit()

    def _reset(self) -> None:
        self._group_id = None
        self._status = ConversationStatus.IDLE
        self._error = None
        self._messages = []
        self._ids = set()
        self._held = []

    def _emit(self) -> None:
        self._changed.emit(self.snapshot())
