# kitchen_auth/routers/team.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kitchen_auth.core.database import get_db
from kitchen_auth.deps import require_capability, require_tenant_owner
from kitchen_auth.models.identity import Identity
from kitchen_auth.routers.auth import serialize_identity
from kitchen_auth.schemas.auth import TeamMemberUpdate
from kitchen_auth.services.capabilities import CAN_MANAGE_TEAM
from kitchen_auth.services.identity_store import IdentityStore
from kitchen_auth.services.roles import TenantId
from kitchen_auth.services.team import TeamService

router = APIRouter(prefix="/api/tenants/{tenant_id}/team", tags=["team"])


@router.get("")
def list_team(
    tenant_id: str,
    db: Session = Depends(get_db),
    _identity: Identity = Depends(require_capability(CAN_MANAGE_TEAM)),
):
    members = TeamService(IdentityStore(db)).list_members(TenantId(tenant_id))
    return {"members": [serialize_identity(member) for member in members]}


@router.patch("/{member_id}")
def update_team_member(
    tenant_id: str,
    member_id: str,
    payload: TeamMemberUpdate,
    db: Session = Depends(get_db),
    _owner: Identity = Depends(require_tenant_owner),
):
    member = TeamService(IdentityStore(db)).update_member(
        TenantId(tenant_id),
        member_id,
        status=payload.status,
        role=payload.role,
        capabilities=payload.capabilities,
    )
    return {"message": "Team member updated successfully", "member": serialize_identity(member)}


@router.delete("/{member_id}")
def remove_team_member(
    tenant_id: str,
    member_id: str,
    db: Session = Depends(get_db),
    _owner: Identity = Depends(require_tenant_owner),
):
    TeamService(IdentityStore(db)).remove_member(TenantId(tenant_id), member_id)
    return {"message": "Team member removed successfully"}
