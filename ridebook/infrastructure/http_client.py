"""
Backend HTTP client (httpx).

* Adds the bearer credential to every request when one is set.
* Normalises failures into the ``ridebook.domain.errors`` taxonomy.
* Broadcasts a 401 exactly once per credential to every subscriber, so the
  auth store can clear itself without each caller inspecting status codes.
"""

from __future__ import annotations

import logging
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from ridebook.config import settings
from ridebook.domain.errors import (
    ApiError,
    AuthorizationError,
    ConflictError,
    NetworkError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

UnauthorizedHandler = Callable[[], Union[None, Awaitable[None]]]


def unwrap(raw: Any, key: Optional[str] = None) -> Any:
    """
    Return the inner payload of a response.

    Accepts a bare payload, a ``{"message", "data"}`` envelope, and, when
    *key* is given, a ``{"message", key: ...}`` wrapper (e.g. ``ride``).
    """
    payload = raw
    if isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]
    if key and isinstance(payload, dict) and key in payload:
        payload = payload[key]
    return payload


class ApiClient:
    def __init__(
        self,
        base_url: str = settings.api_base_url,
        timeout: float = settings.api_timeout_seconds,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._token: Optional[str] = None
        self._unauthorized_handlers: list[UnauthorizedHandler] = []
        self._unauthorized_fired = False

    # ── Credential ────────────────────────────────────────────────────

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token
        if token:
            self._unauthorized_fired = False

    def clear_token(self) -> None:
        self._token = None

    def on_unauthorized(self, handler: UnauthorizedHandler) -> Callable[[], None]:
        """Subscribe to 401 events. Returns an unsubscribe callable."""
        self._unauthorized_handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._unauthorized_handlers:
                self._unauthorized_handlers.remove(handler)

        return unsubscribe

    async def _notify_unauthorized(self) -> None:
        if self._unauthorized_fired:
            return
        self._unauthorized_fired = True
        self.clear_token()
        for handler in list(self._unauthorized_handlers):
            try:
                result = handler()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Unauthorized handler failed")

    # ── HTTP helpers ──────────────────────────────────────────────────

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        headers = {}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await self._http.request(
                method, url, json=json, params=params, headers=headers
            )
        except httpx.TimeoutException as exc:
            raise NetworkError("Request timed out") from exc
        except httpx.TransportError as exc:
            raise NetworkError(str(exc) or "Network error") from exc

        if response.status_code >= 400:
            error = self._format_error(response)
            if isinstance(error, AuthorizationError):
                await self._notify_unauthorized()
            raise error
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def _format_error(self, response: httpx.Response) -> ApiError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or body.get("error") or "An error occurred"
        errors = body.get("errors")
        status = response.status_code

        if status == 401:
            return AuthorizationError(message, status, errors)
        if status == 404:
            return NotFoundError(message, status, errors)
        if status in (409, 422):
            return ConflictError(message, status, errors)
        return ApiError(message, status, errors)

    async def get(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        return await self.request("GET", url, params=params)

    async def post(self, url: str, data: Any = None) -> Any:
        return await self.request("POST", url, json=data)

    async def put(self, url: str, data: Any = None) -> Any:
        return await self.request("PUT", url, json=data)

    async def patch(self, url: str, data: Any = None) -> Any:
        return await self.request("PATCH", url, json=data)

    async def delete(self, url: str) -> Any:
        return await self.request("DELETE", url)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()
