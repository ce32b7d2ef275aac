"""Tests for the backend gateways against a scripted transport."""

import json

import httpx
import pytest

from ridebook.domain.enums import DriverAvailability, PaymentMethod, RideStatus
from ridebook.infrastructure.gateways import (
    DriverGateway,
    LocationGateway,
    PaymentGateway,
    RideGateway,
)
from ridebook.infrastructure.http_client import ApiClient


class Backend:
    """Records requests and answers from a ``(method, path) -> response`` table."""

    def __init__(self, routes):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        status, body = self.routes.get((request.method, path), (404, {"message": "Not found"}))
        return httpx.Response(status, json=body)

    def client(self) -> ApiClient:
        return ApiClient(base_url="http://backend.test/api", transport=httpx.MockTransport(self))


class TestRideGateway:
    @pytest.mark.asyncio
    async def test_available_rides_paginator(self):
        backend = Backend({
            ("GET", "/rides/available"): (200, {
                "current_page": 2, "last_page": 3, "per_page": 10, "total": 21,
                "data": [{"id": 11, "status": "requested"}],
            }),
        })
        page = await RideGateway(backend.client()).list_available(page=2)
        assert page.current_page == 2
        assert page.data[0].id == 11

    @pytest.mark.asyncio
    async def test_available_rides_plain_list(self):
        backend = Backend({("GET", "/rides/available"): (200, {"data": [{"id": 1}, {"id": 2}]})})
        page = await RideGateway(backend.client()).list_available()
        assert page.total == 2

    @pytest.mark.asyncio
    async def test_no_active_ride(self):
        backend = Backend({})
        assert await RideGateway(backend.client()).get_active() is None

    @pytest.mark.asyncio
    async def test_action_unwraps_ride(self):
        backend = Backend({
            ("POST", "/rides/4/cancel"): (200, {
                "message": "Ride cancelled", "ride": {"id": 4, "status": "cancelled"},
            }),
        })
        ride = await RideGateway(backend.client()).cancel(4, "no-show")
        assert ride.status == RideStatus.CANCELLED
        assert json.loads(backend.requests[0].content) == {"cancellation_reason": "no-show"}


class TestPaymentGateway:
    @pytest.mark.asyncio
    async def test_checkout_session_aliases(self):
        backend = Backend({
            ("POST", "/payments/ride/3/checkout-session"): (200, {
                "data": {"clientSecret": "sec", "checkoutSessionId": "cs_1", "amount": 3900},
            }),
        })
        session = await PaymentGateway(backend.client()).create_checkout_session(3)
        assert session.client_secret == "sec"
        assert session.checkout_session_id == "cs_1"

    @pytest.mark.asyncio
    async def test_card_sent_as_processor_name(self):
        backend = Backend({("POST", "/payments/ride/3/process"): (200, {"data": {}})})
        await PaymentGateway(backend.client()).process_payment(3, PaymentMethod.CARD)
        assert json.loads(backend.requests[0].content) == {"method": "stripe"}

    @pytest.mark.asyncio
    async def test_session_status(self):
        backend = Backend({
            ("GET", "/payments/session/cs_1/status"): (200, {
                "payment_status": "paid", "email_sent": True, "ride_id": 3,
            }),
        })
        status = await PaymentGateway(backend.client()).confirm_payment("cs_1")
        assert status.is_paid and status.email_sent


class TestLocationAndDriverGateways:
    @pytest.mark.asyncio
    async def test_short_query_makes_no_call(self):
        backend = Backend({})
        assert await LocationGateway(backend.client()).autocomplete("Or") == []
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_autocomplete(self):
        backend = Backend({
            ("GET", "/locations/autocomplete"): (200, {"data": [{"description": "Orly"}]}),
        })
        results = await LocationGateway(backend.client()).autocomplete("Orl")
        assert results == [{"description": "Orly"}]
        assert backend.requests[0].url.params["query"] == "Orl"

    @pytest.mark.asyncio
    async def test_availability_payload(self):
        backend = Backend({("PUT", "/driver/availability"): (200, {"data": {"status": "available"}})})
        await DriverGateway(backend.client()).set_availability(DriverAvailability.AVAILABLE)
        assert json.loads(backend.requests[0].content) == {"status": "available"}
