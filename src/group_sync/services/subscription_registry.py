"""Keeps one live subscription per member group."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable

from group_sync.domain.entities.subscription import Subscription
from group_sync.domain.value_objects.enums import ConnectionState, SubscriptionState
from group_sync.domain.value_objects.ids import GroupId
from group_sync.services.reconcile import ReconcilePlan, reconcile
from group_sync.services.transport_session import PayloadHandler, TransportSession

logger = logging.getLogger(__name__)

HandlerFactory = Callable[[GroupId], PayloadHandler]

DEFAULT_TOPIC_TEMPLATE = "/topic/group/{group_id}"


class SubscriptionRegistry:
    """Maps member group ids onto subscription handles of one TransportSession.

    Bookkeeping for a pass is applied before any transport call is awaited, so
    overlapping passes (a membership change landing during a reconnect
    restore) always diff against what has already been recorded.
    """

    def __init__(
        self,
        session: TransportSession,
        handler_factory: HandlerFactory,
        *,
        topic_template: str = DEFAULT_TOPIC_TEMPLATE,
    ) -> None:
        self._session = session
        self._handler_factory = handler_factory
        self._topic_template = topic_template
        self._desired: frozenset[GroupId] = frozenset()
        self._subscriptions: dict[GroupId, Subscription] = {}
        session.on_state_change(self._on_state_change)

    @property
    def desired(self) -> frozenset[GroupId]:
        return self._desired

    def topic_for(self, group_id: GroupId) -> str:
        return self._topic_template.format(group_id=group_id)

    def subscriptions(self) -> list[Subscription]:
        return [self._refresh(sub) for sub in self._subscriptions.values()]

    def get(self, group_id: GroupId) -> Subscription | None:
        sub = self._subscriptions.get(group_id)
        return self._refresh(sub) if sub is not None else None

    async def set_membership(self, group_ids: Iterable[GroupId]) -> ReconcilePlan:
        self._desired = frozenset(group_ids)
        return await self.reconcile()

    async def reconcile(self) -> ReconcilePlan:
        plan = reconcile(self._desired, self._subscriptions.keys())

        removed: list[Subscription] = []
        for group_id in sorted(plan.to_remove):
            sub = self._subscriptions.pop(group_id)
            # Pushes for every left group stop here, before the first await.
            self._session.cancel(sub.handle)
            removed.append(sub)
        for group_id in sorted(plan.to_add):
            topic = self.topic_for(group_id)
            handle = self._session.register(topic, self._handler_factory(group_id))
            self._subscriptions[group_id] = Subscription(
                group_id=group_id, topic=topic, handle=handle,
            )

        for sub in removed:
            await self._session.release(sub.topic)
            logger.info("Unsubscribed from group %s", sub.group_id)

        # New and previously rejected subscriptions both get a materialize attempt.
        for group_id in sorted(self._subscriptions):
            sub = self._subscriptions.get(group_id)
            if sub is None or self._session.is_active(sub.handle):
                continue
            await self._materialize(sub)

        if not plan.is_noop:
            logger.debug(
                "Reconciled subscriptions: +%d -%d (total=%d)",
                len(plan.to_add), len(plan.to_remove), len(self._subscriptions),
            )
        return plan

    async def clear(self) -> None:
        self._desired = frozenset()
        await self.reconcile()

    async def _materialize(self, sub: Subscription) -> None:
        if not self._session.is_connected:
            return
        if await self._session.materialize(sub.handle):
            logger.info("Subscribed to group %s", sub.group_id)
        elif self._is_current(sub):
            logger.warning("Subscription for group %s left pending", sub.group_id)

    async def _on_state_change(self, state: ConnectionState) -> None:
        if state is ConnectionState.CONNECTED:
            await self.reconcile()

    def _refresh(self, sub: Subscription) -> Subscription:
        if sub.handle.cancelled:
            state = SubscriptionState.CANCELLED
        elif self._session.is_active(sub.handle):
            state = SubscriptionState.ACTIVE
        else:
            state = SubscriptionState.PENDING
        if state is not sub.state:
            sub = replace(sub, state=state)
            if self._is_current(sub):
                self._subscriptions[sub.group_id] = sub
        return sub

    def _is_current(self, sub: Subscription) -> bool:
        current = self._subscriptions.get(sub.group_id)
        return current is not None and current.handle is sub.handle
