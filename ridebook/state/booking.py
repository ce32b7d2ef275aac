"""
Booking Session store.

A single mutable record for one rider booking, persisted on every mutation
and read once at start-up.  ``stage`` only moves forward
(ESTIMATION -> CONFIRMATION -> PAYMENT -> COMPLETED) except through
``reset`` or a new estimate after completion; COMPLETED is only reachable
once a ride has been set.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError

from ridebook.domain.entities import PassengerInfo, PromoCode, Ride, RideDetails
from ridebook.domain.enums import BookingStage, PaymentMethod
from ridebook.domain.errors import InvalidStateTransition
from ridebook.infrastructure.storage import PersistedEntry

logger = logging.getLogger(__name__)


class BookingSession:
    def __init__(self, entry: PersistedEntry):
        self._entry = entry
        self._init_fields()

    def _init_fields(self) -> None:
        self.stage: BookingStage = BookingStage.ESTIMATION
        self.ride_details: Optional[RideDetails] = None
        self.passenger_info: Optional[PassengerInfo] = None
        self.payment_method: Optional[PaymentMethod] = None
        self.promo_code: Optional[PromoCode] = None
        self.current_ride: Optional[Ride] = None
        self.owner_id: Optional[int] = None

    # ── Persistence ───────────────────────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        def dump(model):
            return model.model_dump(by_alias=False) if model is not None else None

        return {
            "stage": self.stage.value,
            "ride_details": dump(self.ride_details),
            "passenger_info": dump(self.passenger_info),
            "payment_method": self.payment_method.value if self.payment_method else None,
            "promo_code": dump(self.promo_code),
            "current_ride": dump(self.current_ride),
            "owner_id": self.owner_id,
        }

    async def hydrate(self, owner_id: Optional[int] = None) -> None:
        """Restore the persisted snapshot unless it belongs to another rider."""
        state = await self._entry.load()
        if not state:
            return
        if state.get("owner_id") is not None and state.get("owner_id") != owner_id:
            logger.info("Dropping booking snapshot owned by another rider")
            await self._entry.clear()
            return
        try:
            self.stage = BookingStage(state.get("stage", BookingStage.ESTIMATION.value))
            self.ride_details = _load(RideDetails, state.get("ride_details"))
            self.passenger_info = _load(PassengerInfo, state.get("passenger_info"))
            method = state.get("payment_method")
            self.payment_method = PaymentMethod(method) if method else None
            self.promo_code = _load(PromoCode, state.get("promo_code"))
            self.current_ride = _load(Ride, state.get("current_ride"))
            self.owner_id = state.get("owner_id")
        except (ValueError, ValidationError):
            logger.warning("Booking snapshot unreadable, starting fresh")
            self._init_fields()

    async def _persist(self) -> None:
        await self._entry.save(self.snapshot())

    # ── Stage ─────────────────────────────────────────────────────────

    def _raise_to(self, stage: BookingStage) -> None:
        if stage.order > self.stage.order:
            self.stage = stage

    async def advance_to(self, stage: BookingStage) -> None:
        if stage.order < self.stage.order:
            raise InvalidStateTransition(
                f"Booking cannot move back from {self.stage.value} to {stage.value}"
            )
        if stage == BookingStage.COMPLETED and self.current_ride is None:
            raise InvalidStateTransition("Booking cannot complete without a ride")
        self.stage = stage
        await self._persist()

    # ── Setters ───────────────────────────────────────────────────────

    async def set_ride_details(self, details: RideDetails) -> None:
        """A new estimate after a completed booking opens a fresh booking."""
        if self.stage == BookingStage.COMPLETED:
            owner_id = self.owner_id
            self._init_fields()
            self.owner_id = owner_id
        self.ride_details = details
        self._raise_to(BookingStage.CONFIRMATION)
        await self._persist()

    async def set_passenger_info(self, info: PassengerInfo) -> None:
        self.passenger_info = info
        self._raise_to(BookingStage.PAYMENT)
        await self._persist()

    async def set_payment_method(self, method: PaymentMethod) -> None:
        self.payment_method = PaymentMethod(method)
        await self._persist()

    async def set_promo_code(self, promo: Optional[PromoCode]) -> None:
        self.promo_code = promo
        await self._persist()

    async def set_current_ride(self, ride: Optional[Ride]) -> None:
        self.current_ride = ride
        await self._persist()

    async def bind_owner(self, owner_id: Optional[int]) -> None:
        """Attach the session to a rider; a different rider starts from scratch."""
        if self.owner_id is not None and self.owner_id != owner_id:
            await self.reset()
        self.owner_id = owner_id
        await self._persist()

    async def clear_booking(self) -> None:
        self.ride_details = None
        self.passenger_info = None
        self.payment_method = None
        self.promo_code = None
        await self._persist()

    async def reset(self) -> None:
        self._init_fields()
        await self._entry.clear()


def _load(model, data):
    return model.model_validate(data) if data else None
