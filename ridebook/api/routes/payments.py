"""
Payment endpoints
=================

POST /api/create-checkout-session                -- proxy to the backend checkout-session call
GET  /payment-success?session_id=...              -- run the confirmation protocol
POST /payment-success/{session_id}/retry-email    -- resend the receipt e-mail
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from ridebook.api.confirmations import ConfirmationRegistry
from ridebook.api.dependencies import get_confirmations, get_payment_gateway
from ridebook.api.middleware import limiter
from ridebook.api.schemas import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    ConfirmationResponse,
)
from ridebook.domain.errors import (
    ApiError,
    AuthorizationError,
    ConflictError,
    InvalidStateTransition,
    NetworkError,
    NotFoundError,
    PaymentProcessorError,
    PreflightError,
    RidebookError,
)
from ridebook.infrastructure.gateways import PaymentGateway
from ridebook.services.payment_confirmation import PaymentConfirmation

router = APIRouter(tags=["payments"])


def _http_error(exc: RidebookError) -> HTTPException:
    if isinstance(exc, AuthorizationError):
        return HTTPException(status_code=401, detail=exc.humanize())
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=exc.humanize())
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=exc.status or 409, detail=exc.humanize())
    if isinstance(exc, PreflightError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, InvalidStateTransition):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ApiError):
        return HTTPException(status_code=502, detail=exc.humanize())
    if isinstance(exc, (NetworkError, PaymentProcessorError)):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@router.post(
    "/api/create-checkout-session",
    response_model=CheckoutSessionResponse,
    summary="Create a hosted checkout session for a ride",
)
@limiter.limit("30/minute")
async def create_checkout_session(
    request: Request,
    body: CheckoutSessionRequest,
    payments: PaymentGateway = Depends(get_payment_gateway),
):
    try:
        session = await payments.create_checkout_session(body.ride_id)
    except RidebookError as exc:
        raise _http_error(exc)
    if not session.client_secret and not session.url:
        raise HTTPException(status_code=502, detail="Checkout client secret missing")
    return CheckoutSessionResponse(
        client_secret=session.client_secret,
        checkout_session_id=session.checkout_session_id,
        url=session.url,
    )


@router.get(
    "/payment-success",
    response_model=ConfirmationResponse,
    summary="Confirm a checkout session after the processor redirect",
)
@limiter.limit("60/minute")
async def payment_success(
    request: Request,
    session_id: Optional[str] = None,
    payments: PaymentGateway = Depends(get_payment_gateway),
    confirmations: ConfirmationRegistry = Depends(get_confirmations),
):
    screen = PaymentConfirmation(payments)
    await screen.start(session_id)
    if session_id:
        confirmations.mount(session_id, screen)
    return screen.view()


@router.post(
    "/payment-success/{session_id}/retry-email",
    response_model=ConfirmationResponse,
    summary="Resend the payment receipt e-mail",
)
@limiter.limit("10/minute")
async def retry_email(
    request: Request,
    session_id: str,
    confirmations: ConfirmationRegistry = Depends(get_confirmations),
):
    screen = confirmations.get(session_id)
    if screen is None:
        raise HTTPException(status_code=404, detail="No confirmation screen for this session")
    try:
        await screen.retry_email()
    except RidebookError as exc:
        raise _http_error(exc)
    return screen.view()
