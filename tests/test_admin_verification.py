"""Tests for the admin driver-verification workflow."""

from unittest.mock import AsyncMock

import pytest

from ridebook.domain.entities import AdminDriver
from ridebook.domain.errors import ApiError
from ridebook.services.admin_verification import AdminVerificationWorkflow


@pytest.fixture
def admin():
    gateway = AsyncMock()
    gateway.list_drivers.return_value = [
        AdminDriver(id=1, license_number="B-1001", verified=False),
        AdminDriver(id=2, license_number="B-1002", verified=True),
    ]
    return gateway


class TestVerification:
    @pytest.mark.asyncio
    async def test_pending_lists_unverified(self, admin):
        workflow = AdminVerificationWorkflow(admin)
        await workflow.fetch_drivers()
        assert [d.id for d in workflow.pending] == [1]

    @pytest.mark.asyncio
    async def test_verify_applies_before_call(self, admin):
        workflow = AdminVerificationWorkflow(admin)
        await workflow.fetch_drivers()
        seen = {}

        async def verify(driver_id, verified):
            seen["verifying_id"] = workflow.verifying_id
            seen["flag"] = workflow.drivers[0].verified

        admin.verify_driver.side_effect = verify
        await workflow.verify(1, True)

        assert seen == {"verifying_id": 1, "flag": True}
        assert workflow.pending == []
        assert workflow.verifying_id is None

    @pytest.mark.asyncio
    async def test_failed_verify_rolls_back(self, admin):
        admin.verify_driver.side_effect = ApiError("Server error", 500)
        workflow = AdminVerificationWorkflow(admin)
        await workflow.fetch_drivers()

        with pytest.raises(ApiError):
            await workflow.verify(2, False)

        assert workflow.drivers[1].verified is True
        assert workflow.verifying_id is None


class TestAuditLists:
    @pytest.mark.asyncio
    async def test_pass_through_calls(self, admin):
        admin.toggle_user_status.return_value = False
        workflow = AdminVerificationWorkflow(admin)

        assert await workflow.toggle_user_status(5) is False
        await workflow.rides()
        await workflow.promotions()
        await workflow.create_promotion({"code": "SUMMER", "discount": 10})

        admin.toggle_user_status.assert_awaited_once_with(5)
        admin.list_rides.assert_awaited_once()
        admin.create_promotion.assert_awaited_once_with({"code": "SUMMER", "discount": 10})
