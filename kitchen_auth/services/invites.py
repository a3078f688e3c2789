from __future__ import annotations

import time
from typing import Any, Dict

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from kitchen_auth.core.config import CHEF_INVITE_SECRET, INVITE_MAX_AGE_SECONDS
from kitchen_auth.core.errors import ValidationError
from kitchen_auth.services.roles import TenantId

CHEF_INVITE_SALT = "chef-invite"


def _serializer() -> URLSafeTimedSerializer:
    if not CHEF_INVITE_SECRET:
        raise RuntimeError("CHEF_INVITE_SECRET não configurado.")
    return URLSafeTimedSerializer(CHEF_INVITE_SECRET, salt=CHEF_INVITE_SALT)


def create_invite(tenant_id: TenantId, invited_by: str) -> Dict[str, Any]:
    payload = {"tenant_id": str(tenant_id), "invited_by": str(invited_by)}
    return {
        "token": _serializer().dumps(payload),
        "expires_at": int(time.time()) + INVITE_MAX_AGE_SECONDS,
    }


def decode_invite(token: str, max_age: int | None = None) -> TenantId:
    """Return the tenant an invite points to, rejecting bad or expired tokens."""
    try:
        payload = _serializer().loads(token, max_age=INVITE_MAX_AGE_SECONDS if max_age is None else max_age)
    except SignatureExpired as exc:
        raise ValidationError("Invite has expired", code="invite_expired") from exc
    except BadSignature as exc:
        raise ValidationError("Invalid or expired invite", code="invalid_invite") from exc
    tenant_id = payload.get("tenant_id") if isinstance(payload, dict) else None
    if not tenant_id:
        raise ValidationError("Invalid or expired invite", code="invalid_invite")
    return TenantId(tenant_id)
