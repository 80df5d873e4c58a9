from __future__ import annotations

from typing import Protocol

from group_sync.application.dto.principal import Principal


class TokenReader(Protocol):
    def read(self, token: str) -> Principal: ...
