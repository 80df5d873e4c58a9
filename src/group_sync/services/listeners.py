"""Synchronous listener lists used by the view components."""
from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Listeners(Generic[T]):
    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Callable[[T], None]] = []

    def add(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def emit(self, value: T) -> None:
        # A failing listener must not starve the rest.
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("%s listener failed", self._name)
