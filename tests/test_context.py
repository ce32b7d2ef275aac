"""Tests for client wiring and start-up hydration."""

import json

import httpx
import pytest

from ridebook.config import Settings
from ridebook.context import build_context
from ridebook.domain.enums import BookingStage
from ridebook.infrastructure.storage import InMemoryStore


@pytest.mark.asyncio
async def test_hydrates_auth_then_booking():
    store = InMemoryStore({
        "auth-storage": json.dumps({
            "version": 1,
            "state": {"token": "tok-1", "user": {"id": 7, "role": "passenger"}},
        }),
        "booking-storage": json.dumps({
            "version": 1,
            "state": {"stage": "confirmation", "owner_id": 7,
                      "ride_details": {"pickup_location": "A", "dropoff_location": "B"}},
        }),
    })
    ctx = await build_context(
        Settings(google_maps_api_key=""),
        store=store,
        transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})),
    )

    await ctx.hydrate()

    assert ctx.auth.is_authenticated
    assert ctx.client.token == "tok-1"
    assert ctx.booking.stage == BookingStage.CONFIRMATION
    assert ctx.estimator.maps is None
    await ctx.aclose()
