"""
Mapping provider client (Google Distance Matrix over httpx).

The waypoint chain ``pickup -> stop_1 -> ... -> stop_n -> dropoff`` is sent
as ``origins = chain[:-1]`` and ``destinations = chain[1:]``; leg *i* is the
diagonal element ``rows[i].elements[i]``.  Elements whose status is not
``OK`` contribute nothing.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence, runtime_checkable

import httpx

from ridebook.config import settings
from ridebook.domain.errors import RidebookError
from ridebook.domain.pricing import TripMetrics

logger = logging.getLogger(__name__)


class MappingProviderError(RidebookError):
    """Non-success answer or transport failure from the mapping provider."""


@runtime_checkable
class DistanceMatrixProvider(Protocol):
    async def route_metrics(self, waypoints: Sequence[str]) -> TripMetrics: ...


class GoogleDistanceMatrix:
    def __init__(
        self,
        api_key: str = settings.google_maps_api_key,
        url: str = settings.distance_matrix_url,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.url = url
        self._http = http
        self.timeout = timeout

    async def route_metrics(self, waypoints: Sequence[str]) -> TripMetrics:
        if len(waypoints) < 2:
            raise MappingProviderError("At least two waypoints are required")

        params = {
            "origins": "|".join(waypoints[:-1]),
            "destinations": "|".join(waypoints[1:]),
            "mode": "driving",
            "units": "metric",
            "key": self.api_key,
        }
        try:
            if self._http is not None:
                response = await self._http.get(self.url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.url, params=params)
        except httpx.HTTPError as exc:
            raise MappingProviderError(f"Distance matrix unreachable: {exc}") from exc

        if response.status_code != 200:
            raise MappingProviderError(
                f"Distance matrix HTTP {response.status_code}"
            )
        body = response.json()
        if body.get("status") != "OK":
            raise MappingProviderError(
                f"Distance matrix status {body.get('status')}"
            )

        distance_m = 0.0
        duration_s = 0.0
        rows = body.get("rows", [])
        for i, row in enumerate(rows):
            elements = row.get("elements", [])
            if i >= len(elements):
                continue
            leg = elements[i]
            if leg.get("status") != "OK":
                logger.debug("Skipping leg %d with status %s", i, leg.get("status"))
                continue
            distance_m += leg["distance"]["value"]
            duration_s += leg["duration"]["value"]

        return TripMetrics(distance_km=distance_m / 1000, duration_min=duration_s / 60)
