"""
Driver Ride Lifecycle Controller
================================

Manages one driver's current ride::

    requested -> accepted -> in_progress -> completed
         \\___________\\______________\\-----> cancelled

Rules
-----
* Every action is guarded locally before the call.  A failed guard raises
  ``InvalidStateTransition`` and no request is sent.
* The controller never computes the next status.  It replaces its ride with
  the backend's response, so local and remote status cannot drift.
* Cancel needs a non-blank reason.
* Online/offline is optimistic with rollback.  The location streamer follows
  ``online or has_active_ride`` after every change.
* ``share_position`` sends one bounded one-shot fix for the current ride.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ridebook.config import settings
from ridebook.domain.entities import Page, Ride
from ridebook.domain.enums import DriverAvailability, RideStatus
from ridebook.domain.errors import (
    InvalidStateTransition,
    LocationUnavailable,
    RidebookError,
)
from ridebook.infrastructure.gateways import DriverGateway, RideGateway
from ridebook.infrastructure.geolocation import Position, acquire_position
from ridebook.state.busy import BusyFlags
from ridebook.state.optimistic import OptimisticUpdate
from ridebook.workers.location_streamer import LocationStreamer

logger = logging.getLogger(__name__)


class DriverRideController:
    def __init__(
        self,
        rides: RideGateway,
        drivers: DriverGateway,
        streamer: Optional[LocationStreamer] = None,
        position_timeout: float = settings.geolocation_timeout_seconds,
    ):
        self.rides = rides
        self.drivers = drivers
        self.streamer = streamer
        self.position_timeout = position_timeout
        self.ride: Optional[Ride] = None
        self.availability = DriverAvailability.OFFLINE
        self.busy = BusyFlags()
        self._availability_update = OptimisticUpdate(
            lambda: self.availability, self._set_availability
        )

    def _set_availability(self, value: DriverAvailability) -> None:
        self.availability = value

    # ── Derived state ─────────────────────────────────────────────────

    @property
    def is_online(self) -> bool:
        return self.availability != DriverAvailability.OFFLINE

    @property
    def has_active_ride(self) -> bool:
        return self.ride is not None and not self.ride.is_terminal

    @property
    def can_start(self) -> bool:
        return self.ride is not None and self.ride.can_start

    @property
    def can_complete(self) -> bool:
        return self.ride is not None and self.ride.can_complete

    @property
    def can_cancel(self) -> bool:
        return self.ride is not None and self.ride.can_cancel

    async def _sync_streamer(self) -> None:
        if self.streamer is not None:
            await self.streamer.sync(self.is_online, self.has_active_ride)

    # ── Loading ───────────────────────────────────────────────────────

    async def load_active(self) -> Optional[Ride]:
        try:
            self.ride = await self.rides.get_active()
        except RidebookError as exc:
            logger.warning("Could not load active ride: %s", exc)
            self.ride = None
        await self._sync_streamer()
        return self.ride

    # ── Transitions ───────────────────────────────────────────────────

    async def accept(self, ride: Ride) -> Ride:
        if ride.status != RideStatus.REQUESTED:
            raise InvalidStateTransition(
                f"Cannot accept ride in status {ride.status.value}"
            )
        if self.has_active_ride:
            raise InvalidStateTransition("Finish the current ride before accepting another")
        async with self.busy.hold("accept"):
            self.ride = await self.rides.accept(ride.id)
        logger.info("Accepted ride %s", self.ride.id)
        await self._sync_streamer()
        return self.ride

    async def start(self) -> Ride:
        if not self.can_start:
            raise InvalidStateTransition(self._refusal("start"))
        async with self.busy.hold("start"):
            self.ride = await self.rides.start(self.ride.id)
        return self.ride

    async def complete(self) -> Ride:
        if not self.can_complete:
            raise InvalidStateTransition(self._refusal("complete"))
        async with self.busy.hold("complete"):
            self.ride = await self.rides.complete(self.ride.id)
        logger.info("Completed ride %s", self.ride.id)
        await self._sync_streamer()
        return self.ride

    async def cancel(self, reason: str) -> Ride:
        if not self.can_cancel:
            raise InvalidStateTransition(self._refusal("cancel"))
        if not reason or not reason.strip():
            raise InvalidStateTransition("A cancellation reason is required")
        async with self.busy.hold("cancel"):
            self.ride = await self.rides.cancel(self.ride.id, reason.strip())
        logger.info("Cancelled ride %s", self.ride.id)
        await self._sync_streamer()
        return self.ride

    def _refusal(self, action: str) -> str:
        if self.ride is None:
            return f"Cannot {action}: no current ride"
        return f"Cannot {action} ride in status {self.ride.status.value}"

    # ── Availability ──────────────────────────────────────────────────

    async def set_online(self, online: bool) -> DriverAvailability:
        target = DriverAvailability.AVAILABLE if online else DriverAvailability.OFFLINE
        async with self.busy.hold("availability"):
            await self._availability_update.run(
                lambda _: target,
                lambda: self.drivers.set_availability(target),
            )
        await self._sync_streamer()
        return self.availability

    async def share_position(self) -> Position:
        """Send one fresh fix for the current ride, outside the streamer's throttle."""
        if self.streamer is None:
            raise LocationUnavailable("No position source configured")
        if not self.has_active_ride:
            raise InvalidStateTransition(self._refusal("share position"))
        async with self.busy.hold("share_position"):
            position = await acquire_position(self.streamer.source, self.position_timeout)
            await self.drivers.update_location(position.latitude, position.longitude)
        logger.info("Shared position for ride %s", self.ride.id)
        return position

    async def earnings(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> dict[str, Any]:
        return await self.drivers.earnings(start_date, end_date)

    async def shutdown(self) -> None:
        if self.streamer is not None:
            await self.streamer.stop()


class AvailableRidesBoard:
    """Paginated list of unclaimed rides.

    Accepting removes the ride locally first, then refetches the same page;
    the backend is trusted to have hidden the claimed ride from everyone.
    """

    def __init__(
        self,
        rides: RideGateway,
        per_page: int = settings.available_rides_per_page,
        vehicle_type: Optional[str] = None,
    ):
        self.rides = rides
        self.per_page = per_page
        self.vehicle_type = vehicle_type
        self.page: Page[Ride] = Page[Ride](per_page=per_page)
        self.accepting_id: Optional[int] = None
        self._optimistic = OptimisticUpdate(lambda: self.page, self._set_page)

    def _set_page(self, page: Page[Ride]) -> None:
        self.page = page

    async def fetch_page(self, page: int = 1) -> Page[Ride]:
        self.page = await self.rides.list_available(page, self.per_page, self.vehicle_type)
        return self.page

    async def accept(self, ride_id: int, controller: DriverRideController) -> Ride:
        ride = next((r for r in self.page.data if r.id == ride_id), None)
        if ride is None:
            raise InvalidStateTransition(f"Ride {ride_id} is not on this page")
        if self.accepting_id is not None:
            raise InvalidStateTransition("accept is already in progress")

        def without_ride(page: Page[Ride]) -> Page[Ride]:
            return page.model_copy(
                update={
                    "data": [r for r in page.data if r.id != ride_id],
                    "total": max(page.total - 1, 0),
                }
            )

        self.accepting_id = ride_id
        try:
            accepted = await self._optimistic.run(
                without_ride, lambda: controller.accept(ride)
            )
        finally:
            self.accepting_id = None
        try:
            await self.fetch_page(self.page.current_page)
        except RidebookError as exc:
            logger.warning("Refetch after accept failed: %s", exc)
        return accepted
