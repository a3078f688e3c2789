from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from fastapi import status

from kitchen_auth.core.errors import AuthenticationError, AuthorizationError, ValidationError
from kitchen_auth.core.logging_setup import mask_identifier
from kitchen_auth.models.identity import Identity
from kitchen_auth.services.identity_store import IdentityStore
from kitchen_auth.services.roles import (
    STATUS_ACTIVE,
    STATUS_APPROVED,
    STATUS_INACTIVE,
    STATUS_PENDING,
    STATUS_REJECTED,
    TenantId,
    normalize_status,
)

logger = logging.getLogger(__name__)

_STATUS_RANK = {STATUS_ACTIVE: 0, STATUS_APPROVED: 1}


def _status_rank(identity: Identity) -> int:
    return _STATUS_RANK.get(normalize_status(identity.status), 2)


def select_team_member(candidates: Sequence[Identity]) -> Identity:
    """Pick one identity among same-name matches.

    ``active`` wins over ``approved`` which wins over anything else; ties go to
    the most recently updated row and finally to the smallest id, so repeated
    calls over the same rows always return the same identity.
    """
    if not candidates:
        raise ValueError("select_team_member needs at least one candidate")
    # sort estável: cada passada preserva a ordem das anteriores nos empates
    ordered = sorted(candidates, key=lambda identity: str(identity.id))
    ordered.sort(key=lambda identity: identity.updated_at or datetime.min, reverse=True)
    ordered.sort(key=_status_rank)
    return ordered[0]


def ensure_member_status(identity: Identity) -> None:
    current = normalize_status(identity.status)
    if current in (STATUS_APPROVED, STATUS_ACTIVE):
        return
    if current == STATUS_PENDING:
        raise AuthorizationError("Your account is waiting for approval", code="not_approved")
    if current == STATUS_REJECTED:
        raise AuthorizationError("Your request to join was rejected", code="account_rejected")
    if current != STATUS_INACTIVE:
        logger.warning("Unexpected identity status identity_id=%s status=%s", identity.id, current)
    raise AuthorizationError("Your account is inactive", code="account_inactive")


@dataclass(frozen=True)
class ResolvedMember:
    identity: Identity
    head_chef: Identity
    organization: str


class CredentialResolver:
    """First-name / last-name login for team members inside one tenant."""

    def __init__(self, store: IdentityStore) -> None:
        self.store = store

    def resolve(self, tenant_id: TenantId, username: str | None, password: str | None) -> ResolvedMember:
        first = (username or "").strip()
        last = (password or "").strip()
        if not tenant_id or not first or not last:
            raise ValidationError("Username and password are required", code="missing_credentials")

        head_chef = self.store.find_head_chef(tenant_id)
        # o próprio head chef precisa estar "active" para o tenant aceitar logins
        if head_chef is None or normalize_status(head_chef.status) != STATUS_ACTIVE:
            raise AuthenticationError(
                "Restaurant not found",
                code="restaurant_not_found",
                status_code=status.HTTP_404_NOT_FOUND,
            )

        candidates = self.store.find_team_members(tenant_id, first, last)
        if not candidates:
            raise AuthenticationError(
                "Invalid credentials",
                code="invalid_credentials",
                status_code=status.HTTP_404_NOT_FOUND,
            )

        if len(candidates) > 1:
            selected = select_team_member(candidates)
            logger.warning(
                "Duplicate team member names tenant_id=%s username=%s matches=%s selected=%s",
                tenant_id,
                mask_identifier(first),
                len(candidates),
                selected.id,
            )
        else:
            selected = candidates[0]

        ensure_member_status(selected)

        if str(selected.tenant_id) != str(tenant_id):
            raise AuthorizationError("Access denied", code="access_denied")

        return ResolvedMember(
            identity=selected,
            head_chef=head_chef,
            organization=self.store.organization_name(head_chef),
        )
