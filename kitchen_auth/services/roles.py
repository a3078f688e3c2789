from __future__ import annotations

from typing import NewType

TenantId = NewType("TenantId", str)

ROLE_HEAD_CHEF = "head-chef"
ROLE_TEAM_MEMBER = "team-member"
# Valor legado ainda presente em dados antigos; nunca gravado por código novo.
ROLE_LEGACY_USER = "user"

TEAM_ROLES = frozenset({ROLE_TEAM_MEMBER, ROLE_LEGACY_USER})
KNOWN_ROLES = frozenset({ROLE_HEAD_CHEF, ROLE_TEAM_MEMBER, ROLE_LEGACY_USER})

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_REJECTED = "rejected"

LOGIN_STATUSES = frozenset({STATUS_APPROVED, STATUS_ACTIVE})
IDENTITY_STATUSES = frozenset({STATUS_PENDING, STATUS_APPROVED, STATUS_ACTIVE, STATUS_INACTIVE})


def normalize_role(role: str | None) -> str:
    """Map stored role values onto the canonical tags, folding the legacy alias."""
    value = (role or "").strip().lower()
    if value in TEAM_ROLES:
        return ROLE_TEAM_MEMBER
    return value


def normalize_status(status: str | None) -> str:
    return (status or "").strip().lower()


def is_head_chef(identity) -> bool:
    return normalize_role(getattr(identity, "role", None)) == ROLE_HEAD_CHEF


def is_team_member(identity) -> bool:
    return normalize_role(getattr(identity, "role", None)) == ROLE_TEAM_MEMBER


def can_login(identity) -> bool:
    return normalize_status(getattr(identity, "status", None)) in LOGIN_STATUSES
