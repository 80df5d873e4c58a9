from __future__ import annotations

from fastapi import APIRouter, Response

from group_sync.api.deps import ViewDep
from group_sync.api.v1.schemas.view import (
    ConversationResponse,
    MessageResponse,
    OutgoingResponse,
    PreviewResponse,
    SendMessageRequest,
)
from group_sync.domain.value_objects.ids import GroupId

router = APIRouter(prefix="/api/v1/view", tags=["view"])


@router.get("/previews", response_model=list[PreviewResponse])
async def list_previews(view: ViewDep) -> list[PreviewResponse]:
    return [PreviewResponse.model_validate(p) for p in view.previews.previews]


@router.post("/membership/refresh", response_model=list[PreviewResponse])
async def refresh_membership(view: ViewDep) -> list[PreviewResponse]:
    previews = await view.refresh_membership()
    return [PreviewResponse.model_validate(p) for p in previews]


@router.get("/conversation", response_model=ConversationResponse)
async def get_conversation(view: ViewDep) -> ConversationResponse:
    return ConversationResponse.from_snapshot(view.conversation())


@router.put("/conversation/{group_id}", response_model=ConversationResponse)
async def open_conversation(group_id: int, view: ViewDep) -> ConversationResponse:
    snapshot = await view.open_conversation(GroupId(group_id))
    return ConversationResponse.from_snapshot(snapshot)


@router.delete("/conversation", status_code=204)
async def close_conversation(view: ViewDep) -> Response:
    view.close_conversation()
    return Response(status_code=204)


@router.post("/groups/{group_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    group_id: int,
    body: SendMessageRequest,
    view: ViewDep,
) -> MessageResponse:
    message = await view.send_and_ingest(GroupId(group_id), body.content, body.attachment_id)
    return MessageResponse.model_validate(message)


@router.get("/outgoing", response_model=list[OutgoingResponse])
async def list_outgoing(view: ViewDep) -> list[OutgoingResponse]:
    return [OutgoingResponse.model_validate(o) for o in view.outgoing]
