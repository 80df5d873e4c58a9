"""Facade the UI talks to; wires the sync components for one session."""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from typing import Callable, Iterable

from group_sync.application.dto.principal import Principal
from group_sync.application.exceptions import NotFoundError, SendFailedError, ValidationError
from group_sync.application.ports.backend import HistorySource, MembershipSource, SendSource
from group_sync.domain.entities.group import GroupSummary
from group_sync.domain.entities.message import Message
from group_sync.domain.entities.outgoing import OutgoingMessage
from group_sync.domain.entities.preview import ChatPreview
from group_sync.domain.value_objects.enums import ConnectionState, SendState
from group_sync.domain.value_objects.ids import GroupId
from group_sync.services.conversation_store import ConversationSnapshot, ConversationStore
from group_sync.services.ingest_engine import MessageIngestEngine, PushDecoder
from group_sync.services.listeners import Listeners
from group_sync.services.preview_aggregator import PreviewAggregator
from group_sync.services.subscription_registry import (
    DEFAULT_TOPIC_TEMPLATE,
    SubscriptionRegistry,
)
from group_sync.services.transport_session import TransportSession

logger = logging.getLogger(__name__)


class MessagingView:
    def __init__(
        self,
        session: TransportSession,
        membership: MembershipSource,
        history: HistorySource,
        sender: SendSource,
        principal: Principal,
        decoder: PushDecoder,
        *,
        topic_template: str = DEFAULT_TOPIC_TEMPLATE,
    ) -> None:
        self._session = session
        self._membership = membership
        self._history = history
        self._sender = sender
        self._principal = principal
        self.conversations = ConversationStore(history)
        self.previews = PreviewAggregator(principal)
        self._groups: dict[GroupId, GroupSummary] = {}
        self.ingest = MessageIngestEngine(
            self.conversations, self.previews, decoder, is_member=self._is_member,
        )
        self.registry = SubscriptionRegistry(
            session, self.ingest.handler_for, topic_template=topic_template,
        )
        self._outgoing: dict[uuid.UUID, OutgoingMessage] = {}
        self._outgoing_changed: Listeners[OutgoingMessage] = Listeners("outgoing")
        self._connection_changed: Listeners[ConnectionState] = Listeners("connection")
        session.on_state_change(self._connection_changed.emit)

    @property
    def principal(self) -> Principal:
        return self._principal

    @property
    def connection_state(self) -> ConnectionState:
        return self._session.state

    @property
    def is_online(self) -> bool:
        return self._session.is_connected

    @property
    def groups(self) -> tuple[GroupSummary, ...]:
        return tuple(self._groups.values())

    @property
    def outgoing(self) -> tuple[OutgoingMessage, ...]:
        return tuple(self._outgoing.values())

    def conversation(self) -> ConversationSnapshot:
        return self.conversations.snapshot()

    # -- listeners ---------------------------------------------------------

    def on_previews_changed(
        self, listener: Callable[[tuple[ChatPreview, ...]], None],
    ) -> Callable[[], None]:
        return self.previews.on_changed(listener)

    def on_conversation_changed(
        self, listener: Callable[[ConversationSnapshot], None],
    ) -> Callable[[], None]:
        return self.conversations.on_changed(listener)

    def on_connection_changed(
        self, listener: Callable[[ConnectionState], None],
    ) -> Callable[[], None]:
        return self._connection_changed.add(listener)

    def on_outgoing_changed(
        self, listener: Callable[[OutgoingMessage], None],
    ) -> Callable[[], None]:
        return self._outgoing_changed.add(listener)

    # -- lifecycle ---------------------------------------------------------

    async def mount(self, initial_group_id: GroupId | None = None) -> None:
        await self._session.connect()
        await self.load(initial_group_id)

    async def unmount(self) -> None:
        self.conversations.close()
        await self._session.disconnect()
        await self.registry.clear()

    async def load(self, initial_group_id: GroupId | None = None) -> tuple[ChatPreview, ...]:
        """Fetch membership, seed previews and subscriptions, pick a group."""
        groups = await self._membership.get_my_groups()
        self._groups = {g.id: g for g in groups}
        self.previews.seed(groups, await self._last_messages(groups))
        await self.registry.set_membership(self._groups)

        previews = self.previews.previews
        if self.conversations.group_id is None:
            if initial_group_id is not None and initial_group_id in self._groups:
                await self.open_conversation(initial_group_id)
            elif previews:
                await self.open_conversation(previews[0].group_id)
        return self.previews.previews

    async def refresh_membership(self) -> tuple[ChatPreview, ...]:
        groups = await self._membership.get_my_groups()
        added = [g for g in groups if g.id not in self._groups]
        self._groups = {g.id: g for g in groups}
        self.previews.retain(groups, await self._last_messages(added))

        open_group = self.conversations.group_id
        if open_group is not None and open_group not in self._groups:
            logger.info("Group %s left while open, closing conversation", open_group)
            self.conversations.close()

        await self.registry.set_membership(self._groups)
        return self.previews.previews

    # -- conversation ------------------------------------------------------

    async def open_conversation(self, group_id: GroupId) -> ConversationSnapshot:
        if group_id not in self._groups:
            raise NotFoundError(f"Not a member of group {group_id}")
        self.previews.mark_read(group_id)
        await self.conversations.open(group_id)
        return self.conversations.snapshot()

    def close_conversation(self) -> None:
        self.conversations.close()

    async def send_and_ingest(
        self,
        group_id: GroupId,
        content: str,
        attachment_id: int | None = None,
    ) -> Message:
        """Send through the backend and feed the response into ingest.

        The push echo of the same message may arrive before or after the
        response; both paths go through ``ingest`` and collapse by id.
        """
        content = content.strip()
        if not content and attachment_id is None:
            raise ValidationError("Message content is empty")

        outgoing = OutgoingMessage(local_id=uuid.uuid4(), group_id=group_id, content=content)
        self._track(outgoing)
        try:
            message = await self._sender.send_message(group_id, content, attachment_id)
        except Exception as exc:
            detail = exc.detail if isinstance(exc, SendFailedError) else str(exc)
            self._track(replace(outgoing, state=SendState.FAILED, error=detail))
            logger.warning("Send to group %s failed: %s", group_id, detail)
            if isinstance(exc, SendFailedError):
                raise
            raise SendFailedError(detail) from exc

        self._outgoing.pop(outgoing.local_id, None)
        self._outgoing_changed.emit(
            replace(outgoing, state=SendState.SENT, message_id=message.id),
        )
        self.ingest.ingest(message)
        return message

    def dismiss_failed(self, local_id: uuid.UUID) -> None:
        outgoing = self._outgoing.get(local_id)
        if outgoing is not None and outgoing.state is SendState.FAILED:
            del self._outgoing[local_id]

    def _is_member(self, group_id: GroupId) -> bool:
        return group_id in self._groups

    def _track(self, outgoing: OutgoingMessage) -> None:
        self._outgoing[outgoing.local_id] = outgoing
        self._outgoing_changed.emit(outgoing)

    async def _last_messages(
        self, groups: Iterable[GroupSummary],
    ) -> dict[GroupId, Message | None]:
        groups = list(groups)
        results = await asyncio.gather(
            *(self._history.get_group_messages(g.id) for g in groups),
            return_exceptions=True,
        )
        last: dict[GroupId, Message | None] = {}
        for group, result in zip(groups, results):
            if isinstance(result, BaseException):
                logger.warning("History for group %s unavailable: %s", group.id, result)
                last[group.id] = None
            else:
                last[group.id] = result[-1] if result else None
        return last
