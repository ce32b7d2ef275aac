"""Admin back office: driver verification plus read-mostly audit lists."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ridebook.domain.entities import AdminDriver, Ride, User
from ridebook.domain.errors import InvalidStateTransition
from ridebook.infrastructure.gateways import AdminGateway
from ridebook.state.optimistic import OptimisticUpdate

logger = logging.getLogger(__name__)


class AdminVerificationWorkflow:
    def __init__(self, admin: AdminGateway):
        self.admin = admin
        self.drivers: list[AdminDriver] = []
        self.verifying_id: Optional[int] = None
        self._optimistic = OptimisticUpdate(lambda: self.drivers, self._set_drivers)

    def _set_drivers(self, drivers: list[AdminDriver]) -> None:
        self.drivers = drivers

    @property
    def pending(self) -> list[AdminDriver]:
        return [d for d in self.drivers if not d.verified]

    async def stats(self) -> dict[str, Any]:
        return await self.admin.stats()

    # ── Drivers ───────────────────────────────────────────────────────

    async def fetch_drivers(self) -> list[AdminDriver]:
        self.drivers = await self.admin.list_drivers()
        return self.drivers

    async def driver(self, driver_id: int) -> AdminDriver:
        return await self.admin.get_driver(driver_id)

    async def verify(self, driver_id: int, verified: bool) -> None:
        """Flip the flag locally, call the backend, roll back on failure."""
        if self.verifying_id is not None:
            raise InvalidStateTransition("verify is already in progress")

        def flip(drivers: list[AdminDriver]) -> list[AdminDriver]:
            return [
                d.model_copy(update={"verified": verified}) if d.id == driver_id else d
                for d in drivers
            ]

        self.verifying_id = driver_id
        try:
            await self._optimistic.run(
                flip, lambda: self.admin.verify_driver(driver_id, verified)
            )
        finally:
            self.verifying_id = None
        logger.info("Driver %s verified=%s", driver_id, verified)

    # ── Users / rides / promotions ────────────────────────────────────

    async def users(self) -> list[User]:
        return await self.admin.list_users()

    async def user(self, user_id: int) -> User:
        return await self.admin.get_user(user_id)

    async def toggle_user_status(self, user_id: int) -> bool:
        return await self.admin.toggle_user_status(user_id)

    async def rides(self) -> list[Ride]:
        return await self.admin.list_rides()

    async def ride(self, ride_id: int) -> Ride:
        return await self.admin.get_ride(ride_id)

    async def promotions(self) -> list[dict[str, Any]]:
        return await self.admin.list_promotions()

    async def create_promotion(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self.admin.create_promotion(data)
