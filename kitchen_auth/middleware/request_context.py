from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from kitchen_auth.core.request_context import clear_request_context, set_request_context

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        set_request_context(request_id=request_id)

        status_code = 500
        endpoint = request.url.path
        method = request.method

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            tenant_id = _extract_tenant_id(request)
            user_id = _extract_user_id(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 2)

            logger.info(
                "request completed",
                extra={
                    "request_id": request_id,
                    "tenant_id": tenant_id,
                    "user_id": user_id,
                    "endpoint": endpoint,
                    "method": method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )
            clear_request_context()


def _extract_tenant_id(request: Request) -> str | None:
    identity = getattr(request.state, "identity", None)
    if identity is not None and getattr(identity, "tenant_id", None):
        return str(identity.tenant_id)
    tenant = request.path_params.get("tenant_id")
    return str(tenant) if tenant else None


def _extract_user_id(request: Request) -> str | None:
    identity = getattr(request.state, "identity", None)
    if identity is None:
        return None
    identity_id = getattr(identity, "id", None)
    return str(identity_id) if identity_id is not None else None
