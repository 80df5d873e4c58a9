from __future__ import annotations

import pytest

from group_sync.infrastructure.bus.serializer import decode_push, encode_message
from group_sync.services.conversation_store import ConversationStore
from group_sync.services.ingest_engine import MessageIngestEngine
from group_sync.services.preview_aggregator import PreviewAggregator
from tests.conftest import ME, OTHER, FakeBackend, make_group, make_message


@pytest.fixture
def parts(principal):
    backend = FakeBackend(groups=[make_group(1), make_group(2)])
    store = ConversationStore(backend)
    previews = PreviewAggregator(principal)
    previews.seed(backend.groups, {})
    engine = MessageIngestEngine(store, previews, decode_push)
    return engine, store, previews


@pytest.mark.asyncio
@pytest.mark.parametrize("first", ["send", "push"])
async def test_own_message_twice_is_kept_once(parts, first):
    engine, store, previews = parts
    await store.open(1)
    sent = make_message(group_id=1, sender_id=ME, minutes=1)
    push = engine.handler_for(1)

    if first == "send":
        assert engine.ingest(sent) is True
        push(encode_message(sent))
    else:
        push(encode_message(sent))
        assert engine.ingest(sent) is False

    assert [m.id for m in store.messages] == [sent.id]
    assert previews.get(1).unread_count == 0


@pytest.mark.asyncio
async def test_push_order_is_preserved(parts):
    engine, store, _ = parts
    await store.open(1)
    m1, m2, m3 = (make_message(group_id=1, minutes=m) for m in (1, 2, 3))

    for message in (m1, m2, m3):
        engine.ingest(message)

    assert store.messages == (m1, m2, m3)


@pytest.mark.asyncio
async def test_messages_for_closed_groups_only_touch_previews(parts):
    engine, store, previews = parts
    await store.open(1)

    engine.ingest(make_message(group_id=2, sender_id=OTHER, minutes=1))

    assert store.messages == ()
    assert previews.get(2).unread_count == 1
    assert previews.previews[0].group_id == 2


@pytest.mark.asyncio
async def test_own_message_never_counts_as_unread(parts):
    engine, store, previews = parts
    await store.open(1)

    engine.ingest(make_message(group_id=2, sender_id=ME, minutes=1))

    assert previews.get(2).unread_count == 0
    assert previews.get(2).last_message.is_own is True


@pytest.mark.asyncio
async def test_scenario_message_for_background_group(parts):
    engine, store, previews = parts
    for minute in (1, 2):
        engine.ingest(make_message(group_id=2, sender_id=OTHER, minutes=minute))
    engine.ingest(make_message(group_id=1, sender_id=OTHER, minutes=3))
    previews.mark_read(1)
    await store.open(1)
    assert previews.get(2).unread_count == 2
    assert previews.get(1).unread_count == 0

    engine.ingest(make_message(group_id=2, sender_id=OTHER, minutes=4))

    assert previews.get(2).unread_count == 3
    assert previews.get(1).unread_count == 0
    assert [p.group_id for p in previews.previews] == [2, 1]


def test_undecodable_push_is_dropped(parts):
    engine, store, previews = parts
    before = previews.previews

    engine.handler_for(1)("{not json")
    engine.handler_for(1)('{"event": "typing", "data": {}}')

    assert previews.previews == before


def test_messages_for_non_member_groups_are_dropped(principal):
    backend = FakeBackend(groups=[make_group(1)])
    store = ConversationStore(backend)
    previews = PreviewAggregator(principal)
    previews.seed(backend.groups, {})
    engine = MessageIngestEngine(store, previews, decode_push, is_member=lambda g: g == 1)

    assert engine.ingest(make_message(group_id=3)) is False
    assert engine.ingest(make_message(group_id=1)) is True

    assert [p.group_id for p in previews.previews] == [1]
