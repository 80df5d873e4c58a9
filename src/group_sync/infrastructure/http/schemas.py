"""Backend JSON shapes (camelCase on the wire)."""
from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from group_sync.domain.entities.group import GroupSummary
from group_sync.domain.entities.message import EventRef, FileRef, Message
from group_sync.domain.value_objects.enums import MessageKind
from group_sync.domain.value_objects.ids import GroupId, MessageId, UserId


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class UserRef(_WireModel):
    id: int
    username: str | None = None
    full_name: str | None = Field(default=None, alias="fullName")

    @property
    def display_name(self) -> str:
        return self.full_name or self.username or "Unknown"


class GroupRef(_WireModel):
    id: int
    name: str | None = None


class FileRefPayload(_WireModel):
    id: int
    original_filename: str | None = Field(default=None, alias="originalFilename")
    file_type: str | None = Field(default=None, alias="fileType")
    file_size: int | None = Field(default=None, alias="fileSize")


class EventRefPayload(_WireModel):
    id: int
    title: str | None = None


class MessagePayload(_WireModel):
    id: int
    content: str = ""
    message_type: str = Field(default=MessageKind.TEXT.value, alias="messageType")
    created_at: datetime = Field(alias="createdAt")
    sender: UserRef
    group: GroupRef | None = None
    attached_file: FileRefPayload | None = Field(default=None, alias="attachedFile")
    event: EventRefPayload | None = None

    def to_entity(self, default_group_id: GroupId | None = None) -> Message:
        group_id = self.group.id if self.group is not None else default_group_id
        if group_id is None:
            raise ValueError(f"message {self.id} carries no group")
        created_at = self.created_at
        if created_at.tzinfo is None:
            # The backend serializes server-local LocalDateTime values; treat as UTC.
            created_at = created_at.replace(tzinfo=timezone.utc)
        try:
            kind = MessageKind(self.message_type.lower())
        except ValueError:
            kind = MessageKind.TEXT
        attachment = None
        if self.attached_file is not None:
            attachment = FileRef(
                id=self.attached_file.id,
                filename=self.attached_file.original_filename,
                content_type=self.attached_file.file_type,
                size=self.attached_file.file_size,
            )
        event_ref = None
        if self.event is not None:
            event_ref = EventRef(id=self.event.id, title=self.event.title)
        return Message(
            id=MessageId(self.id),
            group_id=GroupId(group_id),
            sender_id=UserId(self.sender.id),
            sender_name=self.sender.display_name,
            content=self.content,
            kind=kind,
            created_at=created_at,
            attachment=attachment,
            event_ref=event_ref,
        )

    @classmethod
    def from_entity(cls, message: Message) -> MessagePayload:
        attached = None
        if message.attachment is not None:
            attached = FileRefPayload(
                id=message.attachment.id,
                original_filename=message.attachment.filename,
                file_type=message.attachment.content_type,
                file_size=message.attachment.size,
            )
        event = None
        if message.event_ref is not None:
            event = EventRefPayload(id=message.event_ref.id, title=message.event_ref.title)
        return cls(
            id=message.id,
            content=message.content,
            message_type=message.kind.value,
            created_at=message.created_at,
            sender=UserRef(id=message.sender_id, full_name=message.sender_name),
            group=GroupRef(id=message.group_id),
            attached_file=attached,
            event=event,
        )


class GroupPayload(_WireModel):
    id: int
    name: str

    def to_entity(self) -> GroupSummary:
        return GroupSummary(id=GroupId(self.id), name=self.name)


class SendMessageBody(_WireModel):
    content: str
    message_type: str = Field(default="TEXT", alias="messageType")
    file_id: int | None = Field(default=None, alias="fileId")
