"""The single entry point for inbound messages."""
from __future__ import annotations

import logging
from typing import Callable

from group_sync.domain.entities.message import Message
from group_sync.domain.value_objects.ids import GroupId
from group_sync.services.conversation_store import ConversationStore
from group_sync.services.preview_aggregator import PreviewAggregator
from group_sync.services.transport_session import PayloadHandler

logger = logging.getLogger(__name__)

PushDecoder = Callable[[str, GroupId], Message | None]
"""Turns a raw push payload into a Message; None for payloads to ignore."""


class MessageIngestEngine:
    """Deduplicates and routes every message, pushed or returned from a send.

    No other component mutates the conversation buffer or the previews. Arrival
    order between the push echo and the send response is not assumed; ids decide.
    """

    def __init__(
        self,
        conversations: ConversationStore,
        previews: PreviewAggregator,
        decoder: PushDecoder,
        *,
        is_member: Callable[[GroupId], bool] | None = None,
    ) -> None:
        self._conversations = conversations
        self._previews = previews
        self._decoder = decoder
        self._is_member = is_member

    def ingest(self, message: Message) -> bool:
        """Return False when the message was dropped and nothing changed."""
        if self._is_member is not None and not self._is_member(message.group_id):
            logger.debug("Dropping message %s for non-member group %s", message.id, message.group_id)
            return False
        if self._conversations.contains(message):
            logger.debug("Dropping duplicate message %s in group %s", message.id, message.group_id)
            return False
        self._conversations.append(message)
        self._previews.apply(message, open_group_id=self._conversations.group_id)
        return True

    def handler_for(self, group_id: GroupId) -> PayloadHandler:
        """Build the push handler for one group's subscription."""

        def _on_payload(raw: str) -> None:
            try:
                message = self._decoder(raw, group_id)
            except Exception:
                logger.exception("Undecodable payload on group %s", group_id)
                return
            if message is None:
                return
            self.ingest(message)

        return _on_payload
