"""
Device position source.

``PositionSource`` is the interface the driver client consumes; the platform
integration (GPS daemon, browser bridge, ...) pushes fixes into a
``QueuePositionSource``.  One-shot acquisition is bounded by a timeout and
fails with ``LocationUnavailable`` instead of hanging.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Protocol

from ridebook.config import settings
from ridebook.domain.errors import LocationUnavailable


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    timestamp: float = field(default_factory=time.time)


class PositionSource(Protocol):
    def watch(self) -> AsyncIterator[Position]: ...

    async def current_position(self) -> Position: ...


class QueuePositionSource:
    """In-process source fed by ``push``.

    A single watcher consumes the queue.  One-shot reads never take from it:
    they return the last fix or wait for the next ``push``.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Position] = asyncio.Queue()
        self._last: Optional[Position] = None
        self._waiters: list[asyncio.Future] = []

    def push(self, position: Position) -> None:
        self._last = position
        self._queue.put_nowait(position)
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(position)

    async def watch(self) -> AsyncIterator[Position]:
        while True:
            yield await self._queue.get()

    async def current_position(self) -> Position:
        if self._last is not None:
            return self._last
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            return await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)


async def acquire_position(
    source: PositionSource,
    timeout: float = settings.geolocation_timeout_seconds,
) -> Position:
    try:
        return await asyncio.wait_for(source.current_position(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise LocationUnavailable(
            f"No position fix within {timeout:g}s"
        ) from exc
