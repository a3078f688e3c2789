# kitchen_auth/routers/join_requests.py
from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from kitchen_auth.core.database import get_db
from kitchen_auth.deps import require_tenant_owner
from kitchen_auth.models.identity import Identity
from kitchen_auth.models.join_request import JoinRequest
from kitchen_auth.schemas.auth import JoinRequestPayload, JoinRequestRead
from kitchen_auth.services.invites import create_invite, decode_invite
from kitchen_auth.services.join_requests import JoinRequestStore
from kitchen_auth.services.roles import TenantId

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["join-requests"])


def _serialize(join_request: JoinRequest) -> Dict[str, Any]:
    return JoinRequestRead.model_validate(join_request).model_dump(mode="json", by_alias=True)


@router.post("/tenants/{tenant_id}/join-requests", status_code=status.HTTP_201_CREATED)
def create_join_request(tenant_id: str, payload: JoinRequestPayload, db: Session = Depends(get_db)):
    join_request = JoinRequestStore(db).create(TenantId(tenant_id), payload.first_name, payload.last_name)
    return {"message": "Request sent to head chef", "request": _serialize(join_request)}


@router.get("/tenants/{tenant_id}/join-requests")
def list_join_requests(
    tenant_id: str,
    db: Session = Depends(get_db),
    _owner: Identity = Depends(require_tenant_owner),
):
    requests = JoinRequestStore(db).list_pending(TenantId(tenant_id))
    return {"requests": [_serialize(item) for item in requests]}


@router.post("/tenants/{tenant_id}/join-requests/{request_id}/approve")
def approve_join_request(
    tenant_id: str,
    request_id: int,
    db: Session = Depends(get_db),
    _owner: Identity = Depends(require_tenant_owner),
):
    join_request = JoinRequestStore(db).approve(TenantId(tenant_id), request_id)
    return {"message": "Request approved successfully", "request": _serialize(join_request)}


@router.post("/tenants/{tenant_id}/join-requests/{request_id}/reject")
def reject_join_request(
    tenant_id: str,
    request_id: int,
    db: Session = Depends(get_db),
    _owner: Identity = Depends(require_tenant_owner),
):
    join_request = JoinRequestStore(db).reject(TenantId(tenant_id), request_id)
    return {"message": "Request rejected successfully", "request": _serialize(join_request)}


@router.post("/tenants/{tenant_id}/invites", status_code=status.HTTP_201_CREATED)
def create_chef_invite(
    tenant_id: str,
    owner: Identity = Depends(require_tenant_owner),
):
    invite = create_invite(TenantId(tenant_id), invited_by=owner.id)
    logger.info("Chef invite created tenant_id=%s", tenant_id)
    return {"token": invite["token"], "expiresAt": invite["expires_at"]}


@router.post("/invites/{token}/accept", status_code=status.HTTP_201_CREATED)
def accept_chef_invite(token: str, payload: JoinRequestPayload, db: Session = Depends(get_db)):
    tenant_id = decode_invite(token)
    join_request = JoinRequestStore(db).create(tenant_id, payload.first_name, payload.last_name)
    return {"message": "Chef invite accepted successfully", "request": _serialize(join_request)}
