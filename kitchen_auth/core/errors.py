"""Error taxonomy for the authentication core.

Services raise these; the HTTP boundary renders them as
``{"message": ..., "code": ..., **extra}`` through ``register_exception_handlers``.
Authentication messages stay generic so callers cannot enumerate accounts.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AuthError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "auth_error"
    default_message = "Request could not be processed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code
        if status_code is not None:
            self.status_code = status_code
        self.extra = dict(extra or {})
        self.headers = dict(headers or {})
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"message": self.message, "code": self.code, **self.extra}


class ValidationError(AuthError):
    """Malformed or missing input; safe to detail to the caller."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "validation_error"
    default_message = "Invalid request"


class AuthenticationError(AuthError):
    """Bad credentials or token. Message is deliberately generic."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "invalid_credentials"
    default_message = "Invalid credentials"


class AuthorizationError(AuthError):
    """Valid identity without the required status, role, tenant or capability."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "access_denied"
    default_message = "Access denied"


class NotFoundError(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"
    default_message = "Not found"


class ConflictError(AuthError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"
    default_message = "Conflict"


class RateLimitedError(AuthError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_code = "rate_limited"
    default_message = "Too many login attempts. Please try again later."

    def __init__(self, retry_after_seconds: int, message: Optional[str] = None) -> None:
        self.retry_after_seconds = max(1, int(retry_after_seconds))
        super().__init__(
            message,
            extra={"retryAfter": self.retry_after_seconds},
            headers={"Retry-After": str(self.retry_after_seconds)},
        )


class AuthSystemError(AuthError):
    """Store or hashing failure. Full detail is logged, the caller sees an opaque 500."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "system_error"
    default_message = "Internal server error"


async def _auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    if isinstance(exc, AuthSystemError):
        logger.error(
            "System error on %s %s: %s",
            request.method,
            request.url.path,
            exc.__cause__ or exc,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=exc.headers or None)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, _auth_error_handler)
