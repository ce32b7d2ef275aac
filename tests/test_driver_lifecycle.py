"""Tests for the driver ride controller, available-rides board and location streamer."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from ridebook.domain.entities import Page, Ride
from ridebook.domain.enums import DriverAvailability, RideStatus
from ridebook.domain.errors import (
    ConflictError,
    InvalidStateTransition,
    LocationUnavailable,
    NetworkError,
)
from ridebook.infrastructure.geolocation import Position, QueuePositionSource
from ridebook.services.driver_lifecycle import AvailableRidesBoard, DriverRideController
from ridebook.workers.location_streamer import LocationStreamer


class FakeClock:
    def __init__(self, *ticks: float):
        self.ticks = list(ticks)
        self.now = 0.0

    def __call__(self) -> float:
        if self.ticks:
            self.now = self.ticks.pop(0)
        return self.now


@pytest.fixture
def drivers():
    return AsyncMock()


@pytest.fixture
def streamer():
    return AsyncMock()


@pytest.fixture
def controller(rides, drivers, streamer):
    return DriverRideController(rides, drivers, streamer)


class TestGuards:
    @pytest.mark.asyncio
    async def test_scenario_complete_while_accepted_makes_no_call(
        self, controller, rides, make_ride
    ):
        controller.ride = make_ride(status=RideStatus.ACCEPTED)
        assert not controller.can_complete
        with pytest.raises(InvalidStateTransition):
            await controller.complete()
        rides.complete.assert_not_awaited()
        assert controller.ride.status == RideStatus.ACCEPTED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["", "   "])
    async def test_scenario_cancel_without_reason_makes_no_call(
        self, controller, rides, make_ride, reason
    ):
        controller.ride = make_ride(status=RideStatus.ACCEPTED)
        with pytest.raises(InvalidStateTransition):
            await controller.cancel(reason)
        rides.cancel.assert_not_awaited()
        assert controller.ride.status == RideStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_start_requires_accepted(self, controller, rides, make_ride):
        controller.ride = make_ride(status=RideStatus.REQUESTED)
        with pytest.raises(InvalidStateTransition):
            await controller.start()
        rides.start.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_ride_no_action(self, controller):
        with pytest.raises(InvalidStateTransition, match="no current ride"):
            await controller.start()

    @pytest.mark.asyncio
    async def test_completed_ride_cannot_be_cancelled(self, controller, rides, make_ride):
        controller.ride = make_ride(status=RideStatus.COMPLETED)
        with pytest.raises(InvalidStateTransition):
            await controller.cancel("flat tyre")
        rides.cancel.assert_not_awaited()


class TestTransitions:
    @pytest.mark.asyncio
    async def test_full_lifecycle_takes_server_state(self, controller, rides, streamer, make_ride):
        rides.accept.return_value = make_ride(status=RideStatus.ACCEPTED, driver_id=3)
        rides.start.return_value = make_ride(status=RideStatus.IN_PROGRESS, driver_id=3)
        rides.complete.return_value = make_ride(status=RideStatus.COMPLETED, driver_id=3)

        await controller.accept(make_ride())
        streamer.sync.assert_awaited_with(False, True)
        await controller.start()
        assert controller.ride.status == RideStatus.IN_PROGRESS
        await controller.complete()

        assert controller.ride.status == RideStatus.COMPLETED
        assert controller.ride.driver_id == 3
        streamer.sync.assert_awaited_with(False, False)

    @pytest.mark.asyncio
    async def test_cancel_sends_trimmed_reason(self, controller, rides, make_ride):
        controller.ride = make_ride(status=RideStatus.IN_PROGRESS)
        rides.cancel.return_value = make_ride(status=RideStatus.CANCELLED)
        await controller.cancel("  passenger no-show ")
        rides.cancel.assert_awaited_once_with(1, "passenger no-show")
        assert controller.ride.status == RideStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_backend_conflict_leaves_ride_untouched(self, controller, rides, make_ride):
        controller.ride = make_ride(status=RideStatus.ACCEPTED)
        rides.start.side_effect = ConflictError("Ride was cancelled", 409)
        with pytest.raises(ConflictError):
            await controller.start()
        assert controller.ride.status == RideStatus.ACCEPTED
        assert not controller.busy.any

    @pytest.mark.asyncio
    async def test_load_active_failure_means_no_ride(self, controller, rides):
        rides.get_active.side_effect = NetworkError("down")
        assert await controller.load_active() is None


class TestAvailability:
    @pytest.mark.asyncio
    async def test_going_online_starts_streaming(self, controller, drivers, streamer):
        assert await controller.set_online(True) == DriverAvailability.AVAILABLE
        drivers.set_availability.assert_awaited_once_with(DriverAvailability.AVAILABLE)
        streamer.sync.assert_awaited_once_with(True, False)

    @pytest.mark.asyncio
    async def test_failed_toggle_rolls_back(self, controller, drivers, streamer):
        seen = []

        async def failing(status):
            seen.append(controller.availability)
            raise NetworkError("down")

        drivers.set_availability.side_effect = failing
        with pytest.raises(NetworkError):
            await controller.set_online(True)

        assert seen == [DriverAvailability.AVAILABLE]
        assert controller.availability == DriverAvailability.OFFLINE
        streamer.sync.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_earnings(self, controller, drivers):
        drivers.earnings.return_value = {"total": 120.5}
        assert await controller.earnings("2026-01-01", "2026-01-31") == {"total": 120.5}


class TestAvailableRidesBoard:
    @pytest.mark.asyncio
    async def test_accept_removes_then_refetches(self, controller, rides, make_ride):
        first_page = Page[Ride](data=[make_ride(1), make_ride(2)], total=2)
        rides.list_available.side_effect = [first_page, Page[Ride](data=[make_ride(2)], total=1)]
        rides.accept.return_value = make_ride(1, status=RideStatus.ACCEPTED)
        board = AvailableRidesBoard(rides, per_page=10)
        await board.fetch_page()

        during = []

        async def accept(ride_id):
            during.append([r.id for r in board.page.data])
            return make_ride(1, status=RideStatus.ACCEPTED)

        rides.accept.side_effect = accept
        accepted = await board.accept(1, controller)

        assert during == [[2]]
        assert accepted.status == RideStatus.ACCEPTED
        assert [r.id for r in board.page.data] == [2]
        assert rides.list_available.await_args.args == (1, 10, None)

    @pytest.mark.asyncio
    async def test_accept_failure_restores_page(self, controller, rides, make_ride):
        rides.list_available.return_value = Page[Ride](data=[make_ride(1)], total=1)
        rides.accept.side_effect = ConflictError("Ride already taken", 409)
        board = AvailableRidesBoard(rides)
        await board.fetch_page()

        with pytest.raises(ConflictError):
            await board.accept(1, controller)

        assert [r.id for r in board.page.data] == [1]
        assert board.accepting_id is None


class TestLocationStreamer:
    @pytest.mark.asyncio
    async def test_throttled_to_one_push_per_interval(self, drivers):
        streamer = LocationStreamer(
            QueuePositionSource(), drivers, interval=7.0, clock=FakeClock(0, 3, 6.9, 7.5, 9)
        )
        results = [await streamer.offer(Position(48.8, 2.3)) for _ in range(5)]
        assert results == [True, False, False, True, False]
        assert drivers.update_location.await_count == 2

    @pytest.mark.asyncio
    async def test_push_failure_swallowed(self, drivers):
        drivers.update_location.side_effect = NetworkError("offline")
        streamer = LocationStreamer(QueuePositionSource(), drivers, clock=FakeClock(0))
        assert await streamer.offer(Position(48.8, 2.3)) is False

    @pytest.mark.asyncio
    async def test_single_watch_and_immediate_stop(self, drivers):
        source = QueuePositionSource()
        streamer = LocationStreamer(source, drivers, interval=7.0, clock=FakeClock(0, 1, 2))

        await streamer.sync(online=True, has_active_ride=False)
        task = streamer._task
        await streamer.sync(online=False, has_active_ride=True)
        assert streamer._task is task

        for lat in (48.80, 48.81, 48.82):
            source.push(Position(lat, 2.3))
        for _ in range(5):
            await asyncio.sleep(0)
        drivers.update_location.assert_awaited_once_with(48.80, 2.3)

        await streamer.sync(online=False, has_active_ride=False)
        assert not streamer.running
        assert task.cancelled()


class TestSharePosition:
    @pytest.fixture
    def source(self):
        return QueuePositionSource()

    @pytest.fixture
    def sharing_controller(self, rides, drivers, source):
        return DriverRideController(
            rides, drivers, LocationStreamer(source, drivers), position_timeout=0.01
        )

    @pytest.mark.asyncio
    async def test_sends_current_fix(self, sharing_controller, drivers, source, make_ride):
        sharing_controller.ride = make_ride(status=RideStatus.IN_PROGRESS)
        source.push(Position(48.84, 2.37))

        position = await sharing_controller.share_position()

        assert position.latitude == 48.84
        drivers.update_location.assert_awaited_once_with(48.84, 2.37)
        assert not sharing_controller.busy.any

    @pytest.mark.asyncio
    async def test_no_fix_raises_location_unavailable(self, sharing_controller, drivers, make_ride):
        sharing_controller.ride = make_ride(status=RideStatus.ACCEPTED)
        with pytest.raises(LocationUnavailable):
            await sharing_controller.share_position()
        drivers.update_location.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_requires_active_ride(self, sharing_controller, drivers, source):
        source.push(Position(48.84, 2.37))
        with pytest.raises(InvalidStateTransition):
            await sharing_controller.share_position()
        drivers.update_location.assert_not_awaited()
