"""
FastAPI application factory for the client shell.

* Registers the payment and health routes.
* Opens one shared backend HTTP client for the app's lifetime.
* Unmounts every live payment screen (and its e-mail retry) on shutdown.
* Applies rate-limiting middleware.
"""

from contextlib import asynccontextmanager
import logging
from typing import Optional

import httpx
from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from ridebook.api.confirmations import ConfirmationRegistry
from ridebook.api.middleware import limiter
from ridebook.api.routes import health, payments
from ridebook.config import settings

logging.basicConfig(level=logging.INFO)


def create_app(transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the backend client on startup; release everything on shutdown."""
        app.state.http = httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=settings.api_timeout_seconds,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        yield
        app.state.confirmations.close()
        await app.state.http.aclose()

    app = FastAPI(
        title="Ridebook Client Shell",
        description=(
            "Hosted-checkout hand-off and payment confirmation for the "
            "ride booking client."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.confirmations = ConfirmationRegistry()

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(payments.router)
    app.include_router(health.router)

    return app
