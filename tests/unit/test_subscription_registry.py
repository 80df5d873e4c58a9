from __future__ import annotations

import asyncio

import pytest

from group_sync.domain.value_objects.enums import SubscriptionState
from group_sync.services.subscription_registry import SubscriptionRegistry
from tests.conftest import eventually, make_session


def _registry(session, received: list | None = None) -> SubscriptionRegistry:
    sink = received if received is not None else []
    return SubscriptionRegistry(
        session,
        lambda group_id: (lambda raw: sink.append((group_id, raw))),
    )


async def _connected(transport):
    session = make_session(transport)
    await session.connect()
    await eventually(lambda: session.is_connected)
    return session


@pytest.mark.asyncio
async def test_set_membership_subscribes_each_group(transport):
    session = await _connected(transport)
    registry = _registry(session)

    plan = await registry.set_membership({1, 2})

    assert plan.to_add == {1, 2}
    assert transport.subscribed == {"/topic/group/1", "/topic/group/2"}
    assert {s.state for s in registry.subscriptions()} == {SubscriptionState.ACTIVE}
    await session.disconnect()


@pytest.mark.asyncio
async def test_reconcile_twice_makes_no_extra_calls(transport):
    session = await _connected(transport)
    registry = _registry(session)
    await registry.set_membership({1, 2})
    calls = (len(transport.subscribe_calls), len(transport.unsubscribe_calls))

    plan = await registry.set_membership({2, 1})
    await registry.reconcile()

    assert plan.is_noop
    assert (len(transport.subscribe_calls), len(transport.unsubscribe_calls)) == calls
    await session.disconnect()


@pytest.mark.asyncio
async def test_leaving_a_group_unsubscribes_it(transport):
    session = await _connected(transport)
    registry = _registry(session)
    await registry.set_membership({1, 2})

    plan = await registry.set_membership({1})

    assert plan.to_remove == {2}
    assert transport.unsubscribe_calls == ["/topic/group/2"]
    assert registry.get(2) is None
    assert registry.get(1).state is SubscriptionState.ACTIVE
    await session.disconnect()


@pytest.mark.asyncio
async def test_leaving_several_groups_stops_delivery_before_any_unsubscribe(transport):
    session = await _connected(transport)
    received = []
    registry = _registry(session, received)
    await registry.set_membership({1, 2, 3})
    transport.on_unsubscribe["/topic/group/2"] = lambda: transport.push("/topic/group/3", "late")

    await registry.set_membership({1})

    assert received == []
    assert sorted(transport.unsubscribe_calls) == ["/topic/group/2", "/topic/group/3"]
    assert session.topics == frozenset({"/topic/group/1"})
    await session.disconnect()


@pytest.mark.asyncio
async def test_membership_recorded_while_offline_is_restored_on_connect(transport):
    session = make_session(transport)
    registry = _registry(session)

    await registry.set_membership({1, 2})
    assert transport.subscribe_calls == []
    assert {s.state for s in registry.subscriptions()} == {SubscriptionState.PENDING}

    await session.connect()
    await eventually(lambda: transport.subscribed == {"/topic/group/1", "/topic/group/2"})

    assert {s.state for s in registry.subscriptions()} == {SubscriptionState.ACTIVE}
    await session.disconnect()


@pytest.mark.asyncio
async def test_rejected_group_stays_pending_without_blocking_others(transport):
    transport.rejected_topics.add("/topic/group/2")
    session = await _connected(transport)
    registry = _registry(session)

    await registry.set_membership({1, 2, 3})

    assert registry.get(1).state is SubscriptionState.ACTIVE
    assert registry.get(2).state is SubscriptionState.PENDING
    assert registry.get(3).state is SubscriptionState.ACTIVE

    transport.rejected_topics.clear()
    await registry.reconcile()

    assert registry.get(2).state is SubscriptionState.ACTIVE
    await session.disconnect()


@pytest.mark.asyncio
async def test_overlapping_passes_subscribe_each_topic_once(transport):
    session = await _connected(transport)
    registry = _registry(session)

    await asyncio.gather(
        registry.set_membership({1, 2}),
        registry.reconcile(),
        registry.reconcile(),
    )

    assert sorted(transport.subscribe_calls) == ["/topic/group/1", "/topic/group/2"]
    assert len(registry.subscriptions()) == 2
    await session.disconnect()


@pytest.mark.asyncio
async def test_reconnect_restores_subscriptions_without_double_delivery(transport):
    received: list = []
    session = await _connected(transport)
    registry = _registry(session, received)
    await registry.set_membership({1, 2})

    transport.drop()
    await eventually(lambda: transport.open_count == 2)
    await eventually(
        lambda: all(s.state is SubscriptionState.ACTIVE for s in registry.subscriptions())
        and session.is_connected
    )
    transport.push("/topic/group/1", "m1")
    transport.push("/topic/group/2", "m2")

    assert received == [(1, "m1"), (2, "m2")]
    await session.disconnect()


@pytest.mark.asyncio
async def test_clear_drops_every_subscription(transport):
    session = await _connected(transport)
    registry = _registry(session)
    await registry.set_membership({1, 2})

    await registry.clear()

    assert registry.subscriptions() == []
    assert transport.subscribed == set()
    assert session.topics == frozenset()
    await session.disconnect()


def test_topic_for_uses_template(transport):
    registry = SubscriptionRegistry(
        make_session(transport),
        lambda group_id: (lambda raw: None),
        topic_template="group.{group_id}",
    )

    assert registry.topic_for(42) == "group.42"
