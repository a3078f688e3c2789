from __future__ import annotations

import json
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from kitchen_auth.models.auth_audit_log import AuthAuditLog


def log_auth_event(
    db: Session,
    *,
    action: str,
    tenant_id: Optional[str] = None,
    identity_id: Optional[str] = None,
    reason: Optional[str] = None,
    client_key: Optional[str] = None,
    meta: Optional[Mapping[str, Any]] = None,
) -> AuthAuditLog:
    entry = AuthAuditLog(
        tenant_id=tenant_id,
        identity_id=identity_id,
        action=action,
        reason=reason,
        client_key=client_key,
        meta_json=json.dumps(meta) if meta else None,
    )
    db.add(entry)
    return entry
