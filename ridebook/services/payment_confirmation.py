"""
Payment Confirmation Protocol
=============================

Two paths:

* **Cash** -- ``process_cash_payment`` records the method with the backend.
  Failure is logged and ignored: the ride stands with
  ``payment_status=pending`` and is settled in person.
* **Card** -- ``PaymentConfirmation`` is the return-URL screen.  It asks the
  backend (never the processor directly) to confirm the checkout session; the
  backend is the only writer of ``payment_status`` and also sends the receipt.

Screen state machine::

    LOADING --(paid | intent succeeded)--> SUCCESS
            \\-(anything else / failure)--> ERROR

Receipt e-mail state machine (only meaningful in SUCCESS)::

    PENDING_EMAIL --(email_sent)--> SENT
                  \\-(retry failed)--> RETRY_EXHAUSTED

When SUCCESS arrives without ``email_sent``, exactly one delayed replay of
the confirmation call is scheduled per screen.  The replay only updates the
e-mail state; it never re-decides SUCCESS / ERROR.  The manual retry replays
the same call and never schedules anything.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ridebook.config import settings
from ridebook.domain.entities import CheckoutSessionStatus, Ride
from ridebook.domain.enums import (
    BookingStage,
    ConfirmationFailure,
    ConfirmationState,
    EmailDispatch,
    PaymentMethod,
)
from ridebook.domain.errors import (
    ApiError,
    InvalidStateTransition,
    NetworkError,
    RidebookError,
)
from ridebook.infrastructure.gateways import PaymentGateway
from ridebook.state.booking import BookingSession
from ridebook.state.busy import BusyFlags

logger = logging.getLogger(__name__)

# Values seen when the processor's template variable was never substituted.
PLACEHOLDER_SESSION_IDS = frozenset(
    {"{CHECKOUT_SESSION_ID}", "CHECKOUT_SESSION_ID", "undefined", "null"}
)


async def process_cash_payment(
    payments: PaymentGateway, ride: Ride, guest_phone: Optional[str] = None
) -> bool:
    """Record a cash payment.  Never raises for backend or network failures."""
    try:
        await payments.process_payment(ride.id, PaymentMethod.CASH, guest_phone)
    except RidebookError as exc:
        logger.warning(
            "Cash payment for ride %s not recorded, settling in person: %s",
            ride.id,
            exc,
        )
        return False
    return True


class EmailRetry:
    """Receipt e-mail tracker; allows one automatic retry per screen."""

    def __init__(self) -> None:
        self.state = EmailDispatch.PENDING_EMAIL
        self.scheduled = False

    def observe(self, email_sent: bool) -> None:
        if email_sent:
            self.state = EmailDispatch.SENT

    def settle(self, email_sent: bool) -> None:
        self.state = EmailDispatch.SENT if email_sent else EmailDispatch.RETRY_EXHAUSTED

    def claim_automatic_retry(self) -> bool:
        if self.scheduled or self.state == EmailDispatch.SENT:
            return False
        self.scheduled = True
        return True


class PaymentConfirmation:
    def __init__(
        self,
        payments: PaymentGateway,
        booking: Optional[BookingSession] = None,
        retry_delay: float = settings.email_retry_delay_seconds,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.payments = payments
        self.booking = booking
        self.retry_delay = retry_delay
        self._sleep = sleep

        self.session_id: Optional[str] = None
        self.state = ConfirmationState.LOADING
        self.failure: Optional[ConfirmationFailure] = None
        self.error: Optional[str] = None
        self.details: Optional[CheckoutSessionStatus] = None
        self.email = EmailRetry()
        self.mounted = True
        self.busy = BusyFlags()
        self._retry_task: Optional[asyncio.Task] = None

    @property
    def retryable(self) -> bool:
        return self.failure == ConfirmationFailure.UNREACHABLE

    @property
    def retry_task(self) -> Optional[asyncio.Task]:
        return self._retry_task

    def _fail(self, failure: ConfirmationFailure, message: str) -> ConfirmationState:
        self.state = ConfirmationState.ERROR
        self.failure = failure
        self.error = message
        return self.state

    # ── Entry ─────────────────────────────────────────────────────────

    async def start(self, session_id: Optional[str]) -> ConfirmationState:
        self.session_id = session_id
        if not session_id or session_id.strip() in PLACEHOLDER_SESSION_IDS:
            return self._fail(
                ConfirmationFailure.MISSING_SESSION,
                "No checkout session id found in the return URL.",
            )

        try:
            status = await self.payments.confirm_payment(session_id)
        except NetworkError as exc:
            if not self.mounted:
                return self.state
            return self._fail(
                ConfirmationFailure.UNREACHABLE,
                f"Payment confirmation unavailable: {exc}",
            )
        except ApiError as exc:
            if not self.mounted:
                return self.state
            failure = (
                ConfirmationFailure.UNREACHABLE
                if exc.status >= 500
                else ConfirmationFailure.REJECTED
            )
            return self._fail(failure, exc.humanize())

        if not self.mounted:
            return self.state

        self.details = status
        self.email.observe(status.email_sent)
        if not status.is_paid:
            return self._fail(
                ConfirmationFailure.NOT_COMPLETED,
                f"Payment status: {status.payment_status}",
            )

        self.state = ConfirmationState.SUCCESS
        logger.info("Checkout %s confirmed for ride %s", session_id, status.ride_id)
        await self._complete_booking(status)
        if not status.email_sent:
            self._schedule_email_retry()
        return self.state

    async def _complete_booking(self, status: CheckoutSessionStatus) -> None:
        if self.booking is None or self.booking.current_ride is None:
            return
        if status.ride_id is not None and status.ride_id != self.booking.current_ride.id:
            return
        await self.booking.advance_to(BookingStage.COMPLETED)
        await self.booking.clear_booking()

    # ── Receipt e-mail ────────────────────────────────────────────────

    def _schedule_email_retry(self) -> None:
        if not self.email.claim_automatic_retry():
            return
        self._retry_task = asyncio.create_task(self._delayed_email_retry())

    async def _delayed_email_retry(self) -> None:
        await self._sleep(self.retry_delay)
        if not self.mounted:
            return
        await self._replay_for_email()

    async def _replay_for_email(self) -> None:
        try:
            status = await self.payments.confirm_payment(self.session_id)
        except RidebookError as exc:
            logger.warning("Receipt e-mail retry failed: %s", exc)
            if self.mounted:
                self.email.settle(False)
            return
        if not self.mounted:
            return
        self.email.settle(status.email_sent or self.email.state == EmailDispatch.SENT)
        if self.details is not None:
            self.details = self.details.model_copy(
                update={"email_sent": self.email.state == EmailDispatch.SENT}
            )

    async def retry_email(self) -> EmailDispatch:
        """Manual 'retry' action.  Idempotent at the backend; never schedules."""
        if self.state != ConfirmationState.SUCCESS:
            raise InvalidStateTransition("Receipt can only be resent after a successful payment")
        async with self.busy.hold("retry_email"):
            if self.email.state != EmailDispatch.SENT:
                self.email.state = EmailDispatch.PENDING_EMAIL
            await self._replay_for_email()
        return self.email.state

    # ── Lifecycle ─────────────────────────────────────────────────────

    def unmount(self) -> None:
        """Discard every late result from this screen."""
        self.mounted = False
        if self._retry_task is not None and not self._retry_task.done():
            self._retry_task.cancel()

    def view(self) -> dict[str, Any]:
        details = self.details
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "failure": self.failure.value if self.failure else None,
            "error": self.error,
            "retryable": self.retryable,
            "email_status": self.email.state.value,
            "ride_id": details.ride_id if details else None,
            "amount_total": details.amount_total if details else None,
            "currency": details.currency if details else None,
            "customer_email": details.customer_email if details else None,
        }
