"""
Error taxonomy shared by the stores, gateways and orchestrators.

* ``PreflightError``         -- local validation, raised before any network call
* ``InvalidStateTransition`` -- a guarded action was attempted in the wrong state
* ``ApiError``               -- the backend answered with an error status
* ``NetworkError``           -- the backend could not be reached
* ``PaymentProcessorError``  -- checkout session missing / payment not completed
* ``LocationUnavailable``    -- no device position within the allowed wait
"""

from __future__ import annotations

from typing import Any, Optional


class RidebookError(Exception):
    """Base class for every error raised by this package."""


class PreflightError(RidebookError):
    """Raised when a request is rejected locally, before any I/O."""


class InvalidStateTransition(RidebookError):
    """Raised when a ride or booking change violates the state machine."""


class ApiError(RidebookError):
    """The backend rejected a call."""

    def __init__(
        self,
        message: str,
        status: int = 0,
        errors: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = errors or {}

    def humanize(self) -> str:
        """Flatten field-level errors into one readable string."""
        if not self.errors:
            return self.message
        lines = []
        for field, messages in self.errors.items():
            if isinstance(messages, (list, tuple)):
                messages = ", ".join(str(m) for m in messages)
            lines.append(f"{field}: {messages}")
        return "\n".join(lines)


class AuthorizationError(ApiError):
    """401 -- the stored credential is no longer valid."""


class ConflictError(ApiError):
    """409 / 422 -- business rule or validation rejection."""


class NotFoundError(ApiError):
    """404 -- the resource does not exist."""


class NetworkError(RidebookError):
    """Transport failure or timeout; the caller may retry."""

    retryable = True


class PaymentProcessorError(RidebookError):
    """The hosted checkout cannot be used or did not complete."""


class LocationUnavailable(RidebookError):
    """Device position could not be acquired in time."""


def humanize_error(exc: BaseException) -> str:
    """Message shown to the rider for any failure surfaced by an orchestrator."""
    if isinstance(exc, ApiError):
        return exc.humanize()
    return str(exc) or "An error occurred"
