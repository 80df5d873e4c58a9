from __future__ import annotations

from dataclasses import dataclass

from group_sync.domain.value_objects.ids import GroupId


@dataclass(frozen=True, slots=True)
class GroupSummary:
    id: GroupId
    name: str
