"""Explicit wiring of one client: HTTP client, gateways, stores and services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

from ridebook.config import Settings, settings
from ridebook.domain.pricing import DistanceTimeFare, PricingEngine
from ridebook.infrastructure.gateways import (
    AdminGateway,
    AuthGateway,
    DriverGateway,
    LocationGateway,
    PaymentGateway,
    PromotionGateway,
    RideGateway,
)
from ridebook.infrastructure.geolocation import PositionSource, QueuePositionSource
from ridebook.infrastructure.http_client import ApiClient
from ridebook.infrastructure.maps import GoogleDistanceMatrix
from ridebook.infrastructure.redis_client import get_redis
from ridebook.infrastructure.storage import (
    InMemoryStore,
    KeyValueStore,
    PersistedEntry,
    RedisStore,
)
from ridebook.services.admin_verification import AdminVerificationWorkflow
from ridebook.services.driver_lifecycle import AvailableRidesBoard, DriverRideController
from ridebook.services.fare_estimator import FareEstimator
from ridebook.services.ride_orchestrator import RideRequestOrchestrator
from ridebook.state.auth import AuthStore
from ridebook.state.booking import BookingSession
from ridebook.workers.location_streamer import LocationStreamer


@dataclass
class ClientContext:
    client: ApiClient
    auth: AuthStore
    booking: BookingSession
    rides: RideGateway
    payments: PaymentGateway
    promotions: PromotionGateway
    locations: LocationGateway
    drivers: DriverGateway
    admin: AdminGateway
    estimator: FareEstimator
    orchestrator: RideRequestOrchestrator
    driver: DriverRideController
    available_rides: AvailableRidesBoard
    admin_workflow: AdminVerificationWorkflow

    async def hydrate(self) -> None:
        """Read both persisted entries once, auth first (it owns the booking)."""
        await self.auth.hydrate()
        await self.booking.hydrate(self.auth.user.id if self.auth.user else None)

    async def aclose(self) -> None:
        await self.driver.shutdown()
        await self.client.aclose()


async def _make_store(cfg: Settings) -> KeyValueStore:
    if cfg.storage_backend == "redis":
        return RedisStore(await get_redis(cfg.redis_url))
    return InMemoryStore()


async def build_context(
    cfg: Settings = settings,
    *,
    store: Optional[KeyValueStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    http: Optional[httpx.AsyncClient] = None,
    position_source: Optional[PositionSource] = None,
) -> ClientContext:
    # 1) Backend client and gateways
    client = ApiClient(cfg.api_base_url, cfg.api_timeout_seconds, transport=transport, http=http)
    auth_gateway = AuthGateway(client)
    rides = RideGateway(client)
    payments = PaymentGateway(client)
    promotions = PromotionGateway(client)
    locations = LocationGateway(client)
    drivers = DriverGateway(client)
    admin = AdminGateway(client)

    # 2) Persisted stores
    store = store or await _make_store(cfg)
    auth = AuthStore(
        client,
        auth_gateway,
        PersistedEntry(store, cfg.auth_storage_key, cfg.storage_schema_version),
    )
    booking = BookingSession(
        PersistedEntry(store, cfg.booking_storage_key, cfg.storage_schema_version)
    )

    # 3) Rider side
    pricing = PricingEngine(
        base_prices=cfg.base_prices,
        default_base_price=cfg.default_base_price,
        strategy=DistanceTimeFare(cfg.rate_per_km, cfg.rate_per_minute),
    )
    maps = (
        GoogleDistanceMatrix(cfg.google_maps_api_key, cfg.distance_matrix_url)
        if cfg.google_maps_api_key
        else None
    )
    estimator = FareEstimator(maps, booking, pricing)
    orchestrator = RideRequestOrchestrator(booking, auth, rides, payments, promotions)

    # 4) Driver side
    streamer = LocationStreamer(
        position_source or QueuePositionSource(),
        drivers,
        interval=cfg.location_push_interval_seconds,
    )
    driver = DriverRideController(
        rides, drivers, streamer, position_timeout=cfg.geolocation_timeout_seconds
    )
    available_rides = AvailableRidesBoard(rides, per_page=cfg.available_rides_per_page)

    return ClientContext(
        client=client,
        auth=auth,
        booking=booking,
        rides=rides,
        payments=payments,
        promotions=promotions,
        locations=locations,
        drivers=drivers,
        admin=admin,
        estimator=estimator,
        orchestrator=orchestrator,
        driver=driver,
        available_rides=available_rides,
        admin_workflow=AdminVerificationWorkflow(admin),
    )
