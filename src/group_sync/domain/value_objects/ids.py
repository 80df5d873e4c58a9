from __future__ import annotations

from typing import NewType

GroupId = NewType("GroupId", int)
MessageId = NewType("MessageId", int)
UserId = NewType("UserId", int)
