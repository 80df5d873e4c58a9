from __future__ import annotations

import json
from typing import Any

from group_sync.domain.entities.message import Message
from group_sync.domain.value_objects.ids import GroupId
from group_sync.infrastructure.http.schemas import MessagePayload

MESSAGE_CREATED = "message.created"


def serialize_event(event_type: str, payload: dict[str, Any]) -> str:
    envelope = {"event": event_type, "data": payload}
    return json.dumps(envelope)


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    """Split a push into (event, data). Bare message objects count as creations."""
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("push payload is not a JSON object")
    if "event" in data and "data" in data:
        return data["event"], data["data"]
    return MESSAGE_CREATED, data


def encode_message(message: Message) -> str:
    payload = MessagePayload.from_entity(message).model_dump(mode="json", by_alias=True)
    return serialize_event(MESSAGE_CREATED, payload)


def decode_push(raw: str | bytes, group_id: GroupId) -> Message | None:
    """Decode a pushed payload for ``group_id``; None for non-message events."""
    event_type, data = deserialize_event(raw)
    if event_type != MESSAGE_CREATED:
        return None
    return MessagePayload.model_validate(data).to_entity(group_id)
