"""
Driver Location Streamer
========================

Pushes the driver's position to the backend while the driver is online or
has an active ride.

Rate limit
----------
The position source may report as often as it likes; at most one push is
sent per ``location_push_interval_seconds`` (default 7 s).  Extra fixes are
dropped, not queued.

Lifecycle
---------
* ``sync(online, has_active_ride)`` is the only toggle the controller calls.
  It starts the watch when either condition holds and stops it immediately
  when neither does.
* There is at most one watch task per streamer.  Starting while running is
  a no-op.
* Push failures are swallowed; the next fix retries implicitly.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from ridebook.config import settings
from ridebook.domain.errors import RidebookError
from ridebook.infrastructure.gateways import DriverGateway
from ridebook.infrastructure.geolocation import Position, PositionSource

logger = logging.getLogger(__name__)


class LocationStreamer:
    def __init__(
        self,
        source: PositionSource,
        drivers: DriverGateway,
        interval: float = settings.location_push_interval_seconds,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.drivers = drivers
        self.interval = interval
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._last_push: Optional[float] = None
        self.pushed = 0

    # ── Public API ────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sync(self, online: bool, has_active_ride: bool) -> None:
        if online or has_active_ride:
            await self.start()
        else:
            await self.stop()

    async def start(self) -> None:
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info("Location streaming started (interval=%gs)", self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if self._stop_event:
            self._stop_event.set()
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Location streaming stopped")

    async def offer(self, position: Position) -> bool:
        """Push ``position`` unless a push happened within the interval."""
        now = self._clock()
        if self._last_push is not None and now - self._last_push < self.interval:
            return False
        self._last_push = now
        try:
            await self.drivers.update_location(position.latitude, position.longitude)
        except RidebookError as exc:
            logger.debug("Location push failed: %s", exc)
            return False
        self.pushed += 1
        return True

    # ── Internals ─────────────────────────────────────────────────────

    async def _loop(self) -> None:
        assert self._stop_event is not None
        async for position in self.source.watch():
            if self._stop_event.is_set():
                break
            try:
                await self.offer(position)
            except Exception:
                logger.exception("Unhandled error in location push")
