"""
lunarwave.services.errors — Service Error Taxonomy
====================================================

Services raise these; :mod:`lunarwave.api.main` renders them as
``{"detail": message, ...extra}`` with the matching HTTP status.
"""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Base class carrying an HTTP status and optional extra payload."""

    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra


class ValidationFailed(ServiceError):
    status_code = 400


class NotAuthenticated(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409


class CooldownActive(ServiceError):
    """Raised when an action is retried before its cooldown has elapsed."""

    status_code = 429

    def __init__(self, message: str, *, remaining_ms: int) -> None:
        retry_after = max(1, -(-remaining_ms // 1000))
        super().__init__(
            message,
            remaining_ms=remaining_ms,
            remaining_minutes=remaining_ms // 60_000,
            retry_after=retry_after,
        )
        self.retry_after = retry_after


class UpstreamError(ServiceError):
    """A Discord API lookup failed; status mirrors the upstream response."""
