from __future__ import annotations

import logging
from typing import List, Mapping, Optional

from kitchen_auth.core.errors import NotFoundError, ValidationError
from kitchen_auth.models.identity import Identity
from kitchen_auth.services.capabilities import is_known_capability, merge_capability_overrides
from kitchen_auth.services.identity_store import IdentityStore
from kitchen_auth.services.roles import (
    IDENTITY_STATUSES,
    ROLE_TEAM_MEMBER,
    TenantId,
    is_team_member,
    normalize_role,
    normalize_status,
)

logger = logging.getLogger(__name__)


class TeamService:
    """Head-chef management of the team members inside its own tenant."""

    def __init__(self, store: IdentityStore) -> None:
        self.store = store

    def list_members(self, tenant_id: TenantId) -> List[Identity]:
        return self.store.list_team_members(tenant_id)

    def get_member(self, tenant_id: TenantId, member_id: str) -> Identity:
        member = self.store.find_by_id(member_id)
        if member is None or str(member.tenant_id) != str(tenant_id) or not is_team_member(member):
            raise NotFoundError("Team member not found", code="member_not_found")
        return member

    def update_member(
        self,
        tenant_id: TenantId,
        member_id: str,
        *,
        status: Optional[str] = None,
        role: Optional[str] = None,
        capabilities: Optional[Mapping[str, object]] = None,
    ) -> Identity:
        member = self.get_member(tenant_id, member_id)

        new_status = None
        if status is not None:
            new_status = normalize_status(status)
            if new_status not in IDENTITY_STATUSES:
                raise ValidationError("Unknown status", code="invalid_status")
        if role is not None and normalize_role(role) != ROLE_TEAM_MEMBER:
            raise ValidationError("Team members can only hold the team-member role", code="invalid_role")
        unknown = sorted(name for name in (capabilities or {}) if not is_known_capability(name))
        if unknown:
            raise ValidationError(f"Unknown capabilities: {', '.join(unknown)}", code="unknown_capability")

        if role is not None and member.role != ROLE_TEAM_MEMBER:
            # troca de papel (inclusive o legado "user"): save() volta às capacidades padrão
            member.role = ROLE_TEAM_MEMBER
            member = self.store.save(member)

        if new_status is not None:
            member.status = new_status

        if capabilities:
            member.capabilities = merge_capability_overrides(member.capabilities, capabilities)

        saved = self.store.save(member)
        logger.info("Team member updated tenant_id=%s member_id=%s", tenant_id, member_id)
        return saved

    def remove_member(self, tenant_id: TenantId, member_id: str) -> Identity:
        member = self.get_member(tenant_id, member_id)
        removed = self.store.soft_delete(member)
        logger.info("Team member removed tenant_id=%s member_id=%s", tenant_id, member_id)
        return removed
