"""Pydantic request / response schemas for the client shell."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Requests ──────────────────────────────────────────────────────────


class CheckoutSessionRequest(BaseModel):
    ride_id: int = Field(..., alias="rideId", gt=0)

    model_config = ConfigDict(populate_by_name=True)


# ── Responses ─────────────────────────────────────────────────────────


class CheckoutSessionResponse(BaseModel):
    client_secret: Optional[str] = Field(None, serialization_alias="clientSecret")
    checkout_session_id: Optional[str] = Field(
        None, serialization_alias="checkoutSessionId"
    )
    url: Optional[str] = None


class ConfirmationResponse(BaseModel):
    session_id: Optional[str] = None
    state: str
    failure: Optional[str] = None
    error: Optional[str] = None
    retryable: bool = False
    email_status: str
    ride_id: Optional[int] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    customer_email: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    backend: str
    storage: str
