"""FastAPI dependency injection helpers."""

from __future__ import annotations

import httpx
from fastapi import Depends, Request

from ridebook.infrastructure.gateways import PaymentGateway
from ridebook.infrastructure.http_client import ApiClient


def get_http(request: Request) -> httpx.AsyncClient:
    return request.app.state.http


def get_api_client(
    request: Request, http: httpx.AsyncClient = Depends(get_http)
) -> ApiClient:
    """Backend client for one request, carrying the caller's bearer token."""
    client = ApiClient(http=http)
    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        client.set_token(token.strip())
    return client


def get_payment_gateway(client: ApiClient = Depends(get_api_client)) -> PaymentGateway:
    return PaymentGateway(client)


def get_confirmations(request: Request):
    return request.app.state.confirmations
