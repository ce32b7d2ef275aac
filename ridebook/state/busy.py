"""Per-action busy flags that reject a second submission while one is in flight."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from ridebook.domain.errors import InvalidStateTransition


class BusyFlags:
    def __init__(self) -> None:
        self._active: set[str] = set()

    def is_busy(self, action: str) -> bool:
        return action in self._active

    @property
    def any(self) -> bool:
        return bool(self._active)

    @asynccontextmanager
    async def hold(self, action: str) -> AsyncIterator[None]:
        if action in self._active:
            raise InvalidStateTransition(f"{action} is already in progress")
        self._active.add(action)
        try:
            yield
        finally:
            self._active.discard(action)
