"""
Shared test fixtures.

Everything runs in-process: persisted state uses ``InMemoryStore``, backend
gateways are ``AsyncMock`` objects, and the HTTP client is exercised through
``httpx.MockTransport``.  No backend, Redis or mapping provider is needed.
"""

from typing import Any, Callable
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from ridebook.domain.entities import (
    CheckoutSession,
    CheckoutSessionStatus,
    PassengerInfo,
    Ride,
    RideDetails,
    User,
)
from ridebook.domain.enums import RideStatus
from ridebook.infrastructure.gateways import AuthResult
from ridebook.infrastructure.http_client import ApiClient
from ridebook.infrastructure.storage import InMemoryStore, PersistedEntry
from ridebook.state.auth import AuthStore
from ridebook.state.booking import BookingSession


# ── Builders ──────────────────────────────────────────────────────────


@pytest.fixture
def make_ride() -> Callable[..., Ride]:
    def _make(ride_id: int = 1, status: RideStatus = RideStatus.REQUESTED, **extra: Any) -> Ride:
        return Ride(
            id=ride_id,
            pickup_location="Gare de Lyon, Paris",
            dropoff_location="Orly Airport",
            fare=39.0,
            status=status,
            **extra,
        )

    return _make


@pytest.fixture
def ride_details() -> RideDetails:
    return RideDetails(
        pickup_location="Gare de Lyon, Paris",
        dropoff_location="Orly Airport",
        pickup_lat=48.844,
        pickup_lng=2.373,
        dropoff_lat=48.726,
        dropoff_lng=2.365,
        vehicle_type="standard",
        estimated_distance=12.0,
        estimated_duration=20,
        estimated_fare=39.0,
    )


@pytest.fixture
def guest_info() -> PassengerInfo:
    return PassengerInfo(
        passenger_name="Camille Martin",
        passenger_phone="+33612345678",
        passenger_email="camille@example.com",
    )


@pytest.fixture
def passenger() -> User:
    return User(id=7, email="rider@example.com", first_name="Sam", role="passenger")


@pytest.fixture
def paid_status() -> CheckoutSessionStatus:
    return CheckoutSessionStatus(
        status="complete",
        payment_status="paid",
        amount_total=3900,
        currency="eur",
        ride_id=1,
        email_sent=False,
    )


# ── Stores ────────────────────────────────────────────────────────────


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def booking(store) -> BookingSession:
    return BookingSession(PersistedEntry(store, "booking-storage", 1))


@pytest.fixture
def auth_gateway(passenger) -> AsyncMock:
    gateway = AsyncMock()
    gateway.login.return_value = AuthResult(user=passenger, token="tok-1")
    gateway.register.return_value = AuthResult(user=passenger, token="tok-1")
    gateway.current_user.return_value = passenger
    return gateway


@pytest_asyncio.fixture
async def api_client():
    """ApiClient whose transport always answers 200 ``{}``."""
    client = ApiClient(
        base_url="http://backend.test/api",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
    )
    yield client
    await client.aclose()


@pytest.fixture
def auth(api_client, auth_gateway, store) -> AuthStore:
    return AuthStore(api_client, auth_gateway, PersistedEntry(store, "auth-storage", 1))


# ── Gateways ──────────────────────────────────────────────────────────


@pytest.fixture
def rides(make_ride) -> AsyncMock:
    gateway = AsyncMock()
    gateway.request_ride.return_value = make_ride()
    return gateway


@pytest.fixture
def payments() -> AsyncMock:
    gateway = AsyncMock()
    gateway.create_checkout_session.return_value = CheckoutSession(
        clientSecret="cs_secret", checkoutSessionId="cs_test_1"
    )
    return gateway
