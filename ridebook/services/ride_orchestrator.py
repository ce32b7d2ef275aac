"""
Ride Request Orchestrator
=========================

Turns a completed booking session into a backend ride, then dispatches on
the payment method:

* **cash** -- record a deferred cash payment (best effort) and complete the
  booking immediately;
* **card** -- obtain a hosted checkout session and stop; the booking stays in
  PAYMENT until the processor redirects back to the return URL.

Preflight validation runs before any network call.  Ride creation is atomic
at the backend, so a rejected request leaves nothing behind locally either.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ridebook.domain.entities import CheckoutSession, PromoCode, Ride, Stop
from ridebook.domain.enums import BookingStage, PaymentMethod, VehicleClass
from ridebook.domain.errors import (
    InvalidStateTransition,
    PaymentProcessorError,
    PreflightError,
    humanize_error,
)
from ridebook.infrastructure.gateways import PaymentGateway, PromotionGateway, RideGateway
from ridebook.services.payment_confirmation import process_cash_payment
from ridebook.state.auth import AuthStore
from ridebook.state.booking import BookingSession
from ridebook.state.busy import BusyFlags

logger = logging.getLogger(__name__)

VALID_VEHICLE_TYPES = frozenset(v.value for v in VehicleClass)


@dataclass
class BookingOutcome:
    ride: Ride
    method: PaymentMethod
    checkout: Optional[CheckoutSession] = None


def normalize_stops(stops) -> list[dict[str, Any]]:
    return [Stop.coerce(s).model_dump() for s in stops or [] if s]


def preflight(payload: dict[str, Any], is_guest: bool) -> None:
    """Reject a ride payload locally.  Raises ``PreflightError``."""
    vehicle_type = str(payload.get("vehicle_type") or "")
    if vehicle_type not in VALID_VEHICLE_TYPES:
        raise PreflightError(f"Invalid vehicle type: {vehicle_type!r}")
    if not payload.get("pickup_location") or not payload.get("dropoff_location"):
        raise PreflightError("Pickup and dropoff addresses are required.")
    if payload.get("is_scheduled") and not payload.get("scheduled_at"):
        raise PreflightError("scheduled_at is required when is_scheduled is true.")
    if is_guest and not (
        str(payload.get("guest_name") or "").strip()
        and str(payload.get("guest_phone") or "").strip()
    ):
        raise PreflightError("Guest identity missing: name and phone are required.")


class RideRequestOrchestrator:
    def __init__(
        self,
        booking: BookingSession,
        auth: AuthStore,
        rides: RideGateway,
        payments: PaymentGateway,
        promotions: Optional[PromotionGateway] = None,
    ):
        self.booking = booking
        self.auth = auth
        self.rides = rides
        self.payments = payments
        self.promotions = promotions
        self.busy = BusyFlags()
        self.checkout: Optional[CheckoutSession] = None
        self.last_error: Optional[str] = None

    @property
    def is_guest(self) -> bool:
        return not self.auth.is_authenticated

    def build_payload(self, method: PaymentMethod) -> dict[str, Any]:
        details = self.booking.ride_details
        if details is None:
            raise PreflightError("Ride details are missing.")

        payload: dict[str, Any] = {
            "pickup_location": details.pickup_location,
            "dropoff_location": details.dropoff_location,
            "pickup_lat": details.pickup_lat,
            "pickup_lng": details.pickup_lng,
            "dropoff_lat": details.dropoff_lat,
            "dropoff_lng": details.dropoff_lng,
            "vehicle_type": details.vehicle_type,
            "passenger_count": details.passenger_count,
            "is_scheduled": details.is_scheduled,
            "stops": normalize_stops(details.stops),
            "estimated_distance": details.estimated_distance,
            "estimated_duration": round(details.estimated_duration),
            "estimated_fare": details.estimated_fare,
            "payment_method": method.wire_value,
        }
        if details.is_scheduled and details.scheduled_at:
            payload["scheduled_at"] = details.scheduled_at
        if self.booking.promo_code and self.booking.promo_code.is_valid:
            payload["promo_code"] = self.booking.promo_code.code

        if self.is_guest:
            info = self.booking.passenger_info
            guest = {
                "guest_name": (info.passenger_name or "").strip() if info else "",
                "guest_phone": (info.passenger_phone or "").strip() if info else "",
                "guest_email": (info.passenger_email or "").strip() if info else "",
            }
            payload.update({k: v for k, v in guest.items() if v})
        return payload

    async def request_ride_with_payment(
        self, payload: dict[str, Any], method: PaymentMethod
    ) -> Ride:
        method = PaymentMethod(method)
        preflight(payload, self.is_guest)

        if self.booking.stage.order < BookingStage.PAYMENT.order:
            await self.booking.advance_to(BookingStage.PAYMENT)
        elif self.booking.stage == BookingStage.COMPLETED:
            raise InvalidStateTransition("This booking is already completed.")
        await self.booking.bind_owner(self.auth.user.id if self.auth.user else None)
        await self.booking.set_payment_method(method)

        ride = await self.rides.request_ride(payload)
        await self.booking.set_current_ride(ride)
        logger.info("Ride %s created (payment=%s)", ride.id, method.value)

        if method == PaymentMethod.CASH:
            await process_cash_payment(
                self.payments, ride, guest_phone=payload.get("guest_phone")
            )
            await self.booking.advance_to(BookingStage.COMPLETED)
            await self.booking.clear_booking()
            return ride

        self.checkout = await self.start_checkout(ride)
        return ride

    async def start_checkout(self, ride: Ride) -> CheckoutSession:
        session = await self.payments.create_checkout_session(ride.id)
        if not session.client_secret and not session.url:
            raise PaymentProcessorError(
                "Checkout client secret missing; check the embedded checkout setup."
            )
        return session

    async def confirm_booking(self, method: PaymentMethod) -> BookingOutcome:
        """Confirmation-screen action: validate, create the ride, branch on payment."""
        method = PaymentMethod(method)
        async with self.busy.hold("confirm"):
            self.last_error = None
            self.checkout = None
            try:
                payload = self.build_payload(method)
                ride = await self.request_ride_with_payment(payload, method)
            except Exception as exc:
                self.last_error = humanize_error(exc)
                logger.warning("Booking failed: %s", self.last_error)
                raise
            return BookingOutcome(ride=ride, method=method, checkout=self.checkout)

    # ── Rider-side extras ─────────────────────────────────────────────

    async def apply_promo_code(self, code: str) -> PromoCode:
        if self.promotions is None:
            raise PreflightError("Promotions are not available.")
        amount = self.booking.ride_details.estimated_fare if self.booking.ride_details else None
        promo = await self.promotions.validate(code, amount)
        await self.booking.set_promo_code(promo)
        return promo

    async def clear_promo_code(self) -> None:
        await self.booking.set_promo_code(None)

    async def refresh_current_ride(self) -> Optional[Ride]:
        if self.booking.current_ride is None:
            return None
        ride = await self.rides.get_ride(self.booking.current_ride.id)
        await self.booking.set_current_ride(ride)
        return ride

    async def cancel_ride(self, reason: str) -> Ride:
        ride = self.booking.current_ride
        if ride is None:
            raise InvalidStateTransition("There is no ride to cancel.")
        if not ride.can_cancel:
            raise InvalidStateTransition(f"Cannot cancel ride in status {ride.status.value}")
        updated = await self.rides.cancel(ride.id, reason)
        await self.booking.set_current_ride(updated)
        return updated
