"""REST adapter for membership, history and send."""
from __future__ import annotations

import logging

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from group_sync.application.exceptions import (
    HistoryFetchError,
    MembershipFetchError,
    SendFailedError,
)
from group_sync.domain.entities.group import GroupSummary
from group_sync.domain.entities.message import Message
from group_sync.domain.value_objects.ids import GroupId
from group_sync.infrastructure.http.schemas import GroupPayload, MessagePayload, SendMessageBody

logger = logging.getLogger(__name__)

_groups_adapter = TypeAdapter(list[GroupPayload])
_messages_adapter = TypeAdapter(list[MessagePayload])


def create_http_client(base_url: str, token: str, timeout: float) -> httpx.AsyncClient:
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout)


class BackendClient:
    """Implements MembershipSource, HistorySource and SendSource."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def get_my_groups(self) -> list[GroupSummary]:
        try:
            resp = await self._http.get("/groups/my-groups")
            resp.raise_for_status()
            groups = _groups_adapter.validate_json(resp.content)
        except (httpx.HTTPError, PydanticValidationError) as exc:
            raise MembershipFetchError(f"Could not load groups: {exc}") from exc
        return [g.to_entity() for g in groups]

    async def get_group_messages(self, group_id: GroupId) -> list[Message]:
        try:
            resp = await self._http.get(f"/messages/group/{group_id}")
            resp.raise_for_status()
            payloads = _messages_adapter.validate_json(resp.content)
        except (httpx.HTTPError, PydanticValidationError) as exc:
            raise HistoryFetchError(f"Could not load messages for group {group_id}: {exc}") from exc
        return [p.to_entity(group_id) for p in payloads]

    async def send_message(
        self,
        group_id: GroupId,
        content: str,
        attachment_id: int | None = None,
    ) -> Message:
        body = SendMessageBody(
            content=content,
            message_type="FILE" if attachment_id is not None else "TEXT",
            file_id=attachment_id,
        )
        try:
            resp = await self._http.post(
                f"/messages/group/{group_id}",
                json=body.model_dump(by_alias=True, exclude_none=True),
            )
            resp.raise_for_status()
            payload = MessagePayload.model_validate_json(resp.content)
        except (httpx.HTTPError, PydanticValidationError) as exc:
            raise SendFailedError(f"Send to group {group_id} failed: {exc}") from exc
        logger.debug("Sent message %s to group %s", payload.id, group_id)
        return payload.to_entity(group_id)
