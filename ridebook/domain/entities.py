"""
Domain entities shared by the stores and orchestrators.

Patterns used
-------------
- **State Pattern** on ``Ride``: the driver-side guards (``can_start``,
  ``can_complete``, ``can_cancel``) read the transition table
  (REQUESTED -> ACCEPTED -> IN_PROGRESS -> COMPLETED, CANCELLED from any
  non-terminal state).  The client never computes the next status itself;
  it replaces its copy with the backend's answer.
- Backend projections ignore unknown keys so new server fields never break
  the client.
"""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from .enums import RIDE_TRANSITIONS, PaymentStatus, RideStatus


class _Projection(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ── Value objects ─────────────────────────────────────────────────────


class Stop(_Projection):
    location: str
    lat: Optional[float] = None
    lng: Optional[float] = None

    @classmethod
    def coerce(cls, value: Any) -> "Stop":
        """Accept a bare address, a ``Stop`` or a loosely-keyed mapping."""
        if isinstance(value, Stop):
            return value
        if isinstance(value, str):
            return cls(location=value)
        location = value.get("location") or value.get("address") or ""
        lat = value.get("lat", value.get("latitude"))
        lng = value.get("lng", value.get("longitude"))
        return cls(location=str(location), lat=lat, lng=lng)


class RideStop(Stop):
    order: int = 0


# ── Backend projections ───────────────────────────────────────────────


class DriverProfile(_Projection):
    id: int
    user_id: Optional[int] = None
    license_number: Optional[str] = None
    verified: bool = False


class User(_Projection):
    id: int
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    role: str = "passenger"
    is_active: bool = True
    driver: Optional[DriverProfile] = None

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)


class Ride(_Projection):
    id: int
    passenger_id: Optional[int] = None
    driver_id: Optional[int] = None
    pickup_location: str = ""
    dropoff_location: str = ""
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    dropoff_lat: Optional[float] = None
    dropoff_lng: Optional[float] = None
    stops: list[RideStop] = Field(default_factory=list)
    fare: float = 0.0
    distance: Optional[float] = None
    duration: Optional[float] = None
    status: RideStatus = RideStatus.REQUESTED
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: Optional[str] = None
    cancellation_reason: Optional[str] = None
    is_scheduled: bool = False
    scheduled_at: Optional[str] = None
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    guest_email: Optional[str] = None
    requested_at: Optional[str] = None
    accepted_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def can_transition_to(self, new_status: RideStatus) -> bool:
        return new_status in RIDE_TRANSITIONS.get(self.status, set())

    @property
    def can_start(self) -> bool:
        return self.status == RideStatus.ACCEPTED

    @property
    def can_complete(self) -> bool:
        return self.status == RideStatus.IN_PROGRESS

    @property
    def can_cancel(self) -> bool:
        return self.can_transition_to(RideStatus.CANCELLED)

    @property
    def is_terminal(self) -> bool:
        return not RIDE_TRANSITIONS.get(self.status)


class CheckoutSession(_Projection):
    client_secret: Optional[str] = Field(None, alias="clientSecret")
    checkout_session_id: Optional[str] = Field(None, alias="checkoutSessionId")
    amount: Optional[int] = None  # cents
    currency: Optional[str] = None
    url: Optional[str] = None


class CheckoutSessionStatus(_Projection):
    """Processor status as reported (and reconciled) by the backend."""

    status: Optional[str] = None  # open | complete | expired
    payment_status: Optional[str] = None
    payment_intent_status: Optional[str] = None
    customer_email: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    payment_id: Optional[int] = None
    ride_id: Optional[int] = None
    payment_updated: bool = False
    email_sent: bool = False

    @property
    def is_paid(self) -> bool:
        return (
            self.payment_status == PaymentStatus.PAID.value
            or self.payment_intent_status == "succeeded"
        )


class PromoCode(_Projection):
    code: str
    is_valid: bool = Field(False, alias="isValid")
    discount_amount: float = 0.0
    message: str = ""


class AdminDriver(_Projection):
    id: int
    user_id: Optional[int] = None
    license_number: Optional[str] = None
    verified: bool = False
    created_at: Optional[str] = None
    user: Optional[dict[str, Any]] = None


T = TypeVar("T")


class Page(_Projection, Generic[T]):
    """Laravel-style paginator payload."""

    data: list[T] = Field(default_factory=list)
    current_page: int = 1
    last_page: int = 1
    per_page: int = 10
    total: int = 0


# ── Client-owned booking state ────────────────────────────────────────


class RideDetails(_Projection):
    pickup_location: str = ""
    dropoff_location: str = ""
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    dropoff_lat: Optional[float] = None
    dropoff_lng: Optional[float] = None
    stops: list[Stop] = Field(default_factory=list)
    vehicle_type: str = "standard"
    passenger_count: int = 1
    is_scheduled: bool = False
    scheduled_at: Optional[str] = None
    estimated_distance: float = 0.0
    estimated_duration: float = 0.0
    estimated_fare: float = 0.0


class PassengerInfo(_Projection):
    passenger_name: str = ""
    passenger_phone: str = ""
    passenger_email: Optional[str] = None
