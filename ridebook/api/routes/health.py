"""GET /health -- liveness plus the configured collaborators."""

from fastapi import APIRouter, Request

from ridebook.api.middleware import limiter
from ridebook.api.schemas import HealthResponse
from ridebook.config import settings

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
@limiter.limit("100/minute")
async def health(request: Request):
    return HealthResponse(backend=settings.api_base_url, storage=settings.storage_backend)
