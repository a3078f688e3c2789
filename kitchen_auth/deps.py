# kitchen_auth/deps.py
from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from kitchen_auth.core import config
from kitchen_auth.core.database import get_db
from kitchen_auth.core.errors import AuthenticationError, AuthorizationError
from kitchen_auth.core.request_context import set_request_context
from kitchen_auth.models.identity import Identity
from kitchen_auth.services.auth_failures import record_auth_failure
from kitchen_auth.services.authentication import ensure_identity_status
from kitchen_auth.services.capabilities import is_known_capability
from kitchen_auth.services.identity_store import IdentityStore
from kitchen_auth.services.lockout import LockoutTracker
from kitchen_auth.services.permissions import PermissionEvaluator
from kitchen_auth.services.roles import is_head_chef
from kitchen_auth.services.tokens import TokenIssuer

# Swagger "Authorize" envia o header Authorization: Bearer <token>
bearer_scheme = HTTPBearer(auto_error=False)

logger = logging.getLogger(__name__)


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_lockout_tracker(request: Request) -> LockoutTracker:
    return request.app.state.lockout_tracker


def get_client_key(request: Request) -> str:
    """Client address used for lockout accounting."""
    if config.TRUST_FORWARDED_FOR:
        forwarded = request.headers.get("x-forwarded-for", "")
        first = forwarded.split(",")[0].strip()
        if first:
            set_request_context(client_key=first)
            return first
    host = request.client.host if request.client else None
    client_key = host or "unknown"
    set_request_context(client_key=client_key)
    return client_key


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    if credentials is None or not credentials.credentials:
        return None
    return credentials.credentials.strip() or None


def _reject(
    error,
    *,
    request: Request,
    db: Session,
    identity_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
):
    record_auth_failure(
        reason=error.code,
        action=f"{request.method} {request.url.path}",
        client_key=get_client_key(request),
        db=db,
        identity_id=identity_id,
        tenant_id=tenant_id,
        count_attempt=False,
    )
    return error


def get_current_identity(
    request: Request,
    token: Optional[str] = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> Identity:
    """Bearer token → claims → stored identity → status gate."""
    if not token:
        missing = AuthenticationError("Authentication required", code="missing_token")
        raise _reject(missing, request=request, db=db)

    invalid = AuthenticationError("Invalid or expired token", code="invalid_token")
    claims = issuer.verify(token)
    if claims is None:
        raise _reject(invalid, request=request, db=db)

    identity = IdentityStore(db).find_by_id(claims.identity_id)
    if identity is None:
        raise _reject(invalid, request=request, db=db, identity_id=claims.identity_id)
    if claims.tenant_id is not None and str(identity.tenant_id) != str(claims.tenant_id):
        raise _reject(invalid, request=request, db=db, identity_id=identity.id, tenant_id=claims.tenant_id)

    try:
        ensure_identity_status(identity)
    except AuthorizationError as exc:
        raise _reject(exc, request=request, db=db, identity_id=identity.id, tenant_id=identity.tenant_id)

    set_request_context(tenant_id=str(identity.tenant_id), user_id=str(identity.id))
    request.state.identity = identity
    return identity


def _log_access_denied(*, reason: str, identity: Identity, tenant_id: str | None, request: Request) -> None:
    endpoint = f"{request.method} {request.url.path}"
    logger.warning(
        "Access denied (%s): identity_id=%s role=%s identity_tenant=%s tenant_id=%s endpoint=%s",
        reason,
        getattr(identity, "id", None),
        getattr(identity, "role", None),
        getattr(identity, "tenant_id", None),
        tenant_id,
        endpoint,
    )


def _path_tenant(request: Request) -> Optional[str]:
    tenant_id = request.path_params.get("tenant_id")
    return str(tenant_id) if tenant_id is not None else None


def ensure_tenant_access(*, request: Request, identity: Identity, tenant_id: Optional[str]) -> None:
    """Token validity never implies tenant membership; compare against the stored tenant."""
    if tenant_id is None:
        return
    if str(identity.tenant_id) != str(tenant_id):
        _log_access_denied(reason="tenant_mismatch", identity=identity, tenant_id=tenant_id, request=request)
        raise AuthorizationError("Access denied", code="access_denied")


def require_tenant_access(
    request: Request,
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    ensure_tenant_access(request=request, identity=identity, tenant_id=_path_tenant(request))
    return identity


def require_head_chef(
    request: Request,
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    if not is_head_chef(identity):
        _log_access_denied(reason="role_denied", identity=identity, tenant_id=_path_tenant(request), request=request)
        raise AuthorizationError("Only head chefs can perform this action", code="head_chef_required")
    return identity


def require_tenant_owner(
    request: Request,
    identity: Identity = Depends(require_head_chef),
) -> Identity:
    ensure_tenant_access(request=request, identity=identity, tenant_id=_path_tenant(request))
    return identity


def _capability_dependency(capability: str, check: Callable[[Identity, str], bool]):
    if not is_known_capability(capability):
        # nome desconhecido nunca libera acesso; avisa cedo na montagem das rotas
        logger.warning("Guard registered for unknown capability %s", capability)

    def dependency(
        request: Request,
        identity: Identity = Depends(get_current_identity),
    ) -> Identity:
        ensure_tenant_access(request=request, identity=identity, tenant_id=_path_tenant(request))
        if not check(identity, capability):
            _log_access_denied(
                reason=f"missing_capability:{capability}",
                identity=identity,
                tenant_id=_path_tenant(request),
                request=request,
            )
            raise AuthorizationError(
                "Insufficient permissions",
                code="insufficient_permissions",
                extra={"required": capability},
            )
        return identity

    return dependency


def require_capability(capability: str):
    return _capability_dependency(capability, PermissionEvaluator.can)


def require_read_only_capability(capability: str):
    return _capability_dependency(capability, PermissionEvaluator.can_read_only)
