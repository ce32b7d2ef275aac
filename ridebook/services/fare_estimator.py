"""
Fare Estimator.

Primary path asks the mapping provider for the whole waypoint chain; any
failure falls back to the deterministic offline estimate, so estimation
itself never fails.  The result is written into the booking session, which
moves it to the CONFIRMATION stage.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ridebook.domain.entities import RideDetails, Stop
from ridebook.domain.pricing import PricingEngine, TripMetrics
from ridebook.infrastructure.maps import DistanceMatrixProvider
from ridebook.state.booking import BookingSession

logger = logging.getLogger(__name__)


@dataclass
class EstimateRequest:
    pickup_location: str
    dropoff_location: str
    vehicle_type: str = "standard"
    stops: Sequence = field(default_factory=list)
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    dropoff_lat: Optional[float] = None
    dropoff_lng: Optional[float] = None
    passenger_count: int = 1
    is_scheduled: bool = False
    scheduled_at: Optional[str] = None


class FareEstimator:
    def __init__(
        self,
        maps: Optional[DistanceMatrixProvider],
        booking: BookingSession,
        pricing: Optional[PricingEngine] = None,
    ):
        self.maps = maps
        self.booking = booking
        self.pricing = pricing or PricingEngine()

    async def _metrics(self, waypoints: list[str], stop_count: int) -> TripMetrics:
        if self.maps is not None:
            try:
                return await self.maps.route_metrics(waypoints)
            except Exception as exc:
                logger.warning("Distance matrix failed, using fallback: %s", exc)
        return self.pricing.fallback_metrics(stop_count)

    async def estimate(self, request: EstimateRequest) -> RideDetails:
        stops = [
            s for s in (Stop.coerce(raw) for raw in request.stops)
            if s.location.strip()
        ]
        waypoints = [
            request.pickup_location,
            *(s.location for s in stops),
            request.dropoff_location,
        ]
        metrics = await self._metrics(waypoints, len(stops))
        fare = self.pricing.calculate_fare(
            metrics.distance_km, metrics.duration_min, request.vehicle_type
        )

        details = RideDetails(
            pickup_location=request.pickup_location,
            dropoff_location=request.dropoff_location,
            pickup_lat=request.pickup_lat,
            pickup_lng=request.pickup_lng,
            dropoff_lat=request.dropoff_lat,
            dropoff_lng=request.dropoff_lng,
            stops=stops,
            vehicle_type=getattr(request.vehicle_type, "value", request.vehicle_type),
            passenger_count=request.passenger_count,
            is_scheduled=request.is_scheduled,
            scheduled_at=request.scheduled_at if request.is_scheduled else None,
            estimated_distance=round(metrics.distance_km, 1),
            estimated_duration=round(metrics.duration_min),
            estimated_fare=fare,
        )
        await self.booking.set_ride_details(details)
        return details
