"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from group_sync.application.dto.principal import Principal
from group_sync.application.exceptions import (
    HistoryFetchError,
    MembershipFetchError,
    SendFailedError,
)
from group_sync.application.ports.transport import PayloadCallback
from group_sync.domain.entities.group import GroupSummary
from group_sync.domain.entities.message import Message
from group_sync.domain.value_objects.enums import MessageKind
from group_sync.domain.value_objects.ids import GroupId, MessageId, UserId
from group_sync.infrastructure.bus.serializer import decode_push
from group_sync.services.messaging_view import MessagingView
from group_sync.services.transport_session import TransportSession

ME = UserId(7)
OTHER = UserId(8)

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

_message_ids = itertools.count(1000)


def at(minutes: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


def make_message(
    *,
    message_id: int | None = None,
    group_id: int = 1,
    sender_id: int = OTHER,
    sender_name: str = "Ada Lovelace",
    content: str = "hello",
    minutes: int = 0,
) -> Message:
    return Message(
        id=MessageId(message_id if message_id is not None else next(_message_ids)),
        group_id=GroupId(group_id),
        sender_id=UserId(sender_id),
        sender_name=sender_name,
        content=content,
        kind=MessageKind.TEXT,
        created_at=at(minutes),
    )


def make_group(group_id: int, name: str | None = None) -> GroupSummary:
    return GroupSummary(id=GroupId(group_id), name=name or f"Group {group_id}")


async def eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def principal() -> Principal:
    return Principal(user_id=ME, username="me")


class FakeTransport:
    """In-memory broker connection; only subscribed topics receive pushes."""

    def __init__(self) -> None:
        self.fail_opens = 0
        self.rejected_topics: set[str] = set()
        self.ping_fails = False
        self.credentials: list[str] = []
        self.open_count = 0
        self.is_open = False
        self.subscribed: set[str] = set()
        self.subscribe_calls: list[str] = []
        self.unsubscribe_calls: list[str] = []
        self.published: list[tuple[str, str]] = []
        self.on_unsubscribe: dict[str, Callable[[], None]] = {}
        self._on_payload: PayloadCallback | None = None
        self._closed = asyncio.Event()

    async def open(self, credential: str, on_payload: PayloadCallback) -> None:
        self.credentials.append(credential)
        if self.fail_opens > 0:
            self.fail_opens -= 1
            raise ConnectionError("connection refused")
        self.open_count += 1
        self.is_open = True
        self.subscribed = set()
        self._on_payload = on_payload
        self._closed = asyncio.Event()

    async def close(self) -> None:
        self.is_open = False
        self.subscribed.clear()
        self._closed.set()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def subscribe(self, topic: str) -> None:
        self.subscribe_calls.append(topic)
        if not self.is_open:
            raise ConnectionError("not open")
        if topic in self.rejected_topics:
            raise PermissionError(f"not allowed: {topic}")
        self.subscribed.add(topic)

    async def unsubscribe(self, topic: str) -> None:
        self.unsubscribe_calls.append(topic)
        self.subscribed.discard(topic)
        hook = self.on_unsubscribe.pop(topic, None)
        if hook is not None:
            hook()

    async def publish(self, topic: str, payload: str) -> None:
        if not self.is_open:
            raise ConnectionError("not open")
        self.published.append((topic, payload))

    async def ping(self) -> None:
        if self.ping_fails:
            raise ConnectionError("no pong")

    def drop(self) -> None:
        self.is_open = False
        self.subscribed.clear()
        self._closed.set()

    def push(self, topic: str, raw: str) -> None:
        if topic in self.subscribed and self._on_payload is not None:
            self._on_payload(topic, raw)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


def make_session(transport: FakeTransport, credential: str = "token-abc") -> TransportSession:
    return TransportSession(
        transport,
        credential,
        reconnect_delay=0.01,
        heartbeat_interval=0.05,
    )


@dataclass
class FakeBackend:
    """Membership, history and send sources backed by dicts."""

    groups: list[GroupSummary] = field(default_factory=list)
    history: dict[int, list[Message]] = field(default_factory=dict)
    failing_history: set[int] = field(default_factory=set)
    gates: dict[int, asyncio.Event] = field(default_factory=dict)
    membership_error: bool = False
    send_error: Exception | None = None
    sent: list[Message] = field(default_factory=list)
    history_calls: list[int] = field(default_factory=list)
    _minutes: itertools.count = field(default_factory=lambda: itertools.count(100))

    async def get_my_groups(self) -> list[GroupSummary]:
        if self.membership_error:
            raise MembershipFetchError("Could not load groups")
        return list(self.groups)

    async def get_group_messages(self, group_id: GroupId) -> list[Message]:
        self.history_calls.append(group_id)
        gate = self.gates.get(group_id)
        if gate is not None:
            await gate.wait()
        if group_id in self.failing_history:
            raise HistoryFetchError(f"Could not load messages for group {group_id}")
        return list(self.history.get(group_id, []))

    async def send_message(
        self,
        group_id: GroupId,
        content: str,
        attachment_id: int | None = None,
    ) -> Message:
        if self.send_error is not None:
            raise self.send_error
        message = make_message(
            group_id=group_id,
            sender_id=ME,
            sender_name="Me",
            content=content,
            minutes=next(self._minutes),
        )
        self.sent.append(message)
        return message


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend(groups=[make_group(1), make_group(2), make_group(3)])


def make_view(
    transport: FakeTransport,
    backend: FakeBackend,
    principal: Principal,
) -> MessagingView:
    return MessagingView(
        make_session(transport),
        backend,
        backend,
        backend,
        principal,
        decode_push,
    )


@pytest.fixture
def send_failure() -> SendFailedError:
    return SendFailedError("Send to group 1 failed: 403 Forbidden")
