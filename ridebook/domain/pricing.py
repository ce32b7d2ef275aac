"""
Fare Pricing Engine  (Strategy Pattern)
=======================================

Formula
-------
Fare = max(Base_Price, Base_Price + Distance x Rate_Per_KM + Duration x Rate_Per_Minute)

* **Base_Price** depends on the vehicle class (table in settings).
* The offline fallback synthesises distance and duration from the number of
  stops only: ``distance = 10 + 5 x stops`` km, ``duration = 2 x distance`` min.

Complexity: O(1) per fare.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping, Optional

from ridebook.config import settings


@dataclass(frozen=True)
class TripMetrics:
    distance_km: float
    duration_min: float


# ── Strategy hierarchy ────────────────────────────────────────────────


class FareStrategy(ABC):
    @abstractmethod
    def calculate(
        self, distance_km: float, duration_min: float, base_price: float
    ) -> float: ...


class DistanceTimeFare(FareStrategy):
    def __init__(self, rate_per_km: float = 1.5, rate_per_minute: float = 0.3):
        self.rate_per_km = rate_per_km
        self.rate_per_minute = rate_per_minute

    def calculate(
        self, distance_km: float, duration_min: float, base_price: float
    ) -> float:
        raw = (
            base_price
            + distance_km * self.rate_per_km
            + duration_min * self.rate_per_minute
        )
        return round(max(base_price, raw), 2)


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """High-level API used by the fare estimator."""

    def __init__(
        self,
        base_prices: Optional[Mapping[str, float]] = None,
        default_base_price: float = settings.default_base_price,
        strategy: Optional[FareStrategy] = None,
    ):
        self.base_prices = dict(
            settings.base_prices if base_prices is None else base_prices
        )
        self.default_base_price = default_base_price
        self.strategy = strategy or DistanceTimeFare(
            settings.rate_per_km, settings.rate_per_minute
        )

    def base_price_for(self, vehicle_class: str) -> float:
        key = getattr(vehicle_class, "value", vehicle_class)
        return self.base_prices.get(key, self.default_base_price)

    def calculate_fare(
        self, distance_km: float, duration_min: float, vehicle_class: str
    ) -> float:
        return self.strategy.calculate(
            distance_km, duration_min, self.base_price_for(vehicle_class)
        )

    @staticmethod
    def fallback_metrics(
        stop_count: int,
        base_distance_km: float = settings.fallback_base_distance_km,
        km_per_stop: float = settings.fallback_km_per_stop,
    ) -> TripMetrics:
        """Deterministic estimate used when the mapping provider fails."""
        distance = base_distance_km + km_per_stop * stop_count
        return TripMetrics(distance_km=distance, duration_min=2 * distance)
