from __future__ import annotations

import logging

from kitchen_auth.services.capabilities import READ_ONLY_CAPABILITIES, is_known_capability
from kitchen_auth.services.roles import can_login, is_head_chef

logger = logging.getLogger(__name__)


class PermissionEvaluator:
    """Capability decisions for an already authenticated identity. Always fails closed."""

    @staticmethod
    def can(identity, capability: str) -> bool:
        if identity is None or not is_known_capability(capability):
            return False
        if is_head_chef(identity):
            return True
        if not can_login(identity):
            return False
        return bool((getattr(identity, "capabilities", None) or {}).get(capability, False))

    @classmethod
    def can_read_only(cls, identity, capability: str) -> bool:
        if identity is None or not is_known_capability(capability):
            return False
        if is_head_chef(identity):
            return True
        if capability not in READ_ONLY_CAPABILITIES:
            return False
        return cls.can(identity, capability)
