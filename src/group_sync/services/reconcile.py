from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet

from group_sync.domain.value_objects.ids import GroupId


@dataclass(frozen=True, slots=True)
class ReconcilePlan:
    to_add: frozenset[GroupId]
    to_remove: frozenset[GroupId]

    @property
    def is_noop(self) -> bool:
        return not self.to_add and not self.to_remove


def reconcile(desired: AbstractSet[GroupId], current: AbstractSet[GroupId]) -> ReconcilePlan:
    """Diff the wanted group set against the recorded subscriptions."""
    return ReconcilePlan(
        to_add=frozenset(desired) - frozenset(current),
        to_remove=frozenset(current) - frozenset(desired),
    )
