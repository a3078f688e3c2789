from __future__ import annotations

from typing import Dict, Mapping

from kitchen_auth.services.roles import ROLE_HEAD_CHEF, ROLE_TEAM_MEMBER, normalize_role

RESOURCES = ("recipes", "plateups", "notifications", "panels")
ACTIONS = ("view", "create", "update", "delete")

CAN_MANAGE_TEAM = "can_manage_team"
CAN_ACCESS_ADMIN = "can_access_admin"

CAPABILITY_NAMES = tuple(f"can_{action}_{resource}" for resource in RESOURCES for action in ACTIONS) + (
    CAN_MANAGE_TEAM,
    CAN_ACCESS_ADMIN,
)
KNOWN_CAPABILITIES = frozenset(CAPABILITY_NAMES)

# Lista fixa de leitura para membros da equipe.
READ_ONLY_CAPABILITIES = frozenset(f"can_view_{resource}" for resource in RESOURCES)


def is_known_capability(name: str | None) -> bool:
    return name in KNOWN_CAPABILITIES


def default_capabilities(role: str | None) -> Dict[str, bool]:
    """Capability set derived from the role alone; unknown roles get nothing."""
    canonical = normalize_role(role)
    if canonical == ROLE_HEAD_CHEF:
        return {name: True for name in CAPABILITY_NAMES}
    if canonical == ROLE_TEAM_MEMBER:
        return {name: name in READ_ONLY_CAPABILITIES for name in CAPABILITY_NAMES}
    return {name: False for name in CAPABILITY_NAMES}


def merge_capability_overrides(current: Mapping[str, bool] | None, overrides: Mapping[str, object]) -> Dict[str, bool]:
    unknown = sorted(name for name in overrides if name not in KNOWN_CAPABILITIES)
    if unknown:
        raise ValueError(f"Unknown capabilities: {', '.join(unknown)}")
    merged = {name: bool((current or {}).get(name, False)) for name in CAPABILITY_NAMES}
    for name, value in overrides.items():
        merged[name] = bool(value)
    return merged
