from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from group_sync.domain.value_objects.enums import SubscriptionState
from group_sync.domain.value_objects.ids import GroupId


@dataclass(frozen=True, slots=True)
class Subscription:
    group_id: GroupId
    topic: str
    handle: Any
    state: SubscriptionState = SubscriptionState.PENDING
