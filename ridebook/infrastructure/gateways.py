"""
Gateway Pattern -- one class per backend resource.

Each gateway receives the shared ``ApiClient`` and exposes the calls the
orchestrators need, already unwrapped and parsed into domain entities.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

from pydantic import BaseModel

from .http_client import ApiClient, unwrap
from ridebook.domain.entities import (
    AdminDriver,
    CheckoutSession,
    CheckoutSessionStatus,
    DriverProfile,
    Page,
    PromoCode,
    Ride,
    User,
)
from ridebook.domain.enums import DriverAvailability, PaymentMethod
from ridebook.domain.errors import NotFoundError


class AuthResult(BaseModel):
    user: User
    token: str


class AuthGateway:
    def __init__(self, client: ApiClient):
        self.client = client

    async def login(self, email: str, password: str) -> AuthResult:
        raw = await self.client.post("/login", {"email": email, "password": password})
        return AuthResult.model_validate(unwrap(raw))

    async def register(self, data: dict[str, Any]) -> AuthResult:
        raw = await self.client.post("/register", data)
        return AuthResult.model_validate(unwrap(raw))

    async def logout(self) -> None:
        await self.client.post("/logout")

    async def current_user(self) -> User:
        raw = await self.client.get("/user")
        return User.model_validate(unwrap(raw, "user"))

    async def update_profile(self, data: dict[str, Any]) -> User:
        raw = await self.client.put("/user/profile", data)
        return User.model_validate(unwrap(raw, "user"))


class RideGateway:
    def __init__(self, client: ApiClient):
        self.client = client

    async def estimate(self, data: dict[str, Any]) -> dict[str, Any]:
        return unwrap(await self.client.post("/rides/estimate", data))

    async def request_ride(self, payload: dict[str, Any]) -> Ride:
        raw = await self.client.post("/rides/request", payload)
        return Ride.model_validate(unwrap(raw, "ride"))

    async def get_ride(self, ride_id: int) -> Ride:
        raw = await self.client.get(f"/rides/{ride_id}")
        return Ride.model_validate(unwrap(raw, "ride"))

    async def list_available(
        self,
        page: int = 1,
        per_page: int = 10,
        vehicle_type: Optional[str] = None,
    ) -> Page[Ride]:
        raw = await self.client.get(
            "/rides/available",
            {"page": page, "per_page": per_page, "vehicle_type": vehicle_type},
        )
        # The paginator itself carries a ``data`` list; do not unwrap it.
        payload = raw if isinstance(raw, dict) and "current_page" in raw else unwrap(raw)
        if isinstance(payload, list):
            return Page[Ride](data=payload, total=len(payload))
        return Page[Ride].model_validate(payload)

    async def get_active(self) -> Optional[Ride]:
        try:
            raw = await self.client.get("/rides/active")
        except NotFoundError:
            return None
        payload = unwrap(raw, "ride")
        return Ride.model_validate(payload) if payload else None

    async def accept(self, ride_id: int) -> Ride:
        return await self._action(ride_id, "accept")

    async def start(self, ride_id: int) -> Ride:
        return await self._action(ride_id, "start")

    async def complete(self, ride_id: int) -> Ride:
        return await self._action(ride_id, "complete")

    async def cancel(self, ride_id: int, reason: str) -> Ride:
        return await self._action(ride_id, "cancel", {"cancellation_reason": reason})

    async def _action(
        self, ride_id: int, action: str, body: Optional[dict[str, Any]] = None
    ) -> Ride:
        raw = await self.client.post(f"/rides/{ride_id}/{action}", body or {})
        return Ride.model_validate(unwrap(raw, "ride"))


class PaymentGateway:
    def __init__(self, client: ApiClient):
        self.client = client

    async def create_checkout_session(self, ride_id: int) -> CheckoutSession:
        raw = await self.client.post(f"/payments/ride/{ride_id}/checkout-session")
        return CheckoutSession.model_validate(unwrap(raw))

    async def confirm_payment(self, session_id: str) -> CheckoutSessionStatus:
        """Backend queries the processor, records ``payment_status`` and mails the receipt."""
        raw = await self.client.get(
            f"/payments/session/{quote(session_id, safe='')}/status"
        )
        return CheckoutSessionStatus.model_validate(unwrap(raw))

    async def process_payment(
        self,
        ride_id: int,
        method: PaymentMethod,
        guest_phone: Optional[str] = None,
    ) -> Any:
        body: dict[str, Any] = {"method": method.wire_value}
        if guest_phone:
            body["guest_phone"] = guest_phone
        return unwrap(await self.client.post(f"/payments/ride/{ride_id}/process", body))


class PromotionGateway:
    def __init__(self, client: ApiClient):
        self.client = client

    async def validate(self, code: str, ride_amount: Optional[float] = None) -> PromoCode:
        raw = await self.client.post(
            "/promotions/validate", {"code": code, "ride_amount": ride_amount}
        )
        payload = unwrap(raw)
        return PromoCode.model_validate({"code": code, **payload})


class LocationGateway:
    MIN_QUERY_LENGTH = 3

    def __init__(self, client: ApiClient):
        self.client = client

    async def autocomplete(self, query: str) -> list[dict[str, Any]]:
        if not query or len(query) < self.MIN_QUERY_LENGTH:
            return []
        return unwrap(await self.client.get("/locations/autocomplete", {"query": query})) or []

    async def geocode(self, address: str) -> dict[str, float]:
        return unwrap(await self.client.get("/locations/geocode", {"address": address}))

    async def reverse_geocode(self, lat: float, lng: float) -> str:
        return unwrap(
            await self.client.get("/locations/reverse-geocode", {"lat": lat, "lng": lng})
        )


class DriverGateway:
    def __init__(self, client: ApiClient):
        self.client = client

    async def register(self, data: dict[str, Any]) -> DriverProfile:
        raw = await self.client.post("/driver/register", data)
        return DriverProfile.model_validate(unwrap(raw, "driver"))

    async def set_availability(self, status: DriverAvailability) -> Any:
        return unwrap(await self.client.put("/driver/availability", {"status": status.value}))

    async def update_location(self, lat: float, lng: float) -> None:
        await self.client.post("/driver/location", {"lat": lat, "lng": lng})

    async def earnings(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> dict[str, Any]:
        raw = await self.client.get(
            "/driver/earnings", {"start_date": start_date, "end_date": end_date}
        )
        return unwrap(raw)


class AdminGateway:
    def __init__(self, client: ApiClient):
        self.client = client

    async def stats(self) -> dict[str, Any]:
        return unwrap(await self.client.get("/admin/dashboard"))

    # drivers
    async def list_drivers(self) -> list[AdminDriver]:
        raw = unwrap(await self.client.get("/admin/drivers")) or []
        return [AdminDriver.model_validate(d) for d in raw]

    async def get_driver(self, driver_id: int) -> AdminDriver:
        raw = await self.client.get(f"/admin/drivers/{driver_id}")
        return AdminDriver.model_validate(unwrap(raw, "driver"))

    async def verify_driver(self, driver_id: int, verified: bool) -> Any:
        return await self.client.put(
            f"/admin/drivers/{driver_id}/verify", {"verified": verified}
        )

    # users
    async def list_users(self) -> list[User]:
        raw = unwrap(await self.client.get("/admin/users")) or []
        return [User.model_validate(u) for u in raw]

    async def get_user(self, user_id: int) -> User:
        raw = await self.client.get(f"/admin/users/{user_id}")
        return User.model_validate(unwrap(raw, "user"))

    async def toggle_user_status(self, user_id: int) -> bool:
        raw = await self.client.put(f"/admin/users/{user_id}/toggle-status", {})
        return bool(unwrap(raw).get("is_active"))

    # rides
    async def list_rides(self) -> list[Ride]:
        raw = unwrap(await self.client.get("/admin/rides")) or []
        return [Ride.model_validate(r) for r in raw]

    async def get_ride(self, ride_id: int) -> Ride:
        raw = await self.client.get(f"/admin/rides/{ride_id}")
        return Ride.model_validate(unwrap(raw, "ride"))

    # promotions
    async def list_promotions(self) -> list[dict[str, Any]]:
        return unwrap(await self.client.get("/admin/promotions")) or []

    async def create_promotion(self, data: dict[str, Any]) -> dict[str, Any]:
        raw = await self.client.post("/admin/promotions", data)
        return unwrap(raw, "promotion")
