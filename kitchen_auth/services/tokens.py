from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from jose import JWTError, jwt

from kitchen_auth.core import config
from kitchen_auth.services.roles import (
    ROLE_HEAD_CHEF,
    ROLE_TEAM_MEMBER,
    TenantId,
    normalize_role,
)

logger = logging.getLogger(__name__)


class TokenFamily(str, Enum):
    HEAD_CHEF = "head-chef"
    TEAM = "team"
    DEFAULT = "default"
    REFRESH = "refresh"


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


ACCESS_FAMILIES = (TokenFamily.HEAD_CHEF, TokenFamily.TEAM, TokenFamily.DEFAULT)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    family: TokenFamily
    kind: TokenKind
    expires_at: int
    jti: str


@dataclass(frozen=True)
class TokenPair:
    access: IssuedToken
    refresh: IssuedToken

    def as_response(self, now: int) -> Dict[str, Any]:
        return {
            "accessToken": self.access.token,
            "refreshToken": self.refresh.token,
            "tokenType": "Bearer",
            "expiresIn": max(0, self.access.expires_at - now),
        }


@dataclass(frozen=True)
class TokenClaims:
    identity_id: str
    role: Optional[str]
    tenant_id: Optional[TenantId]
    family: TokenFamily
    kind: TokenKind
    expires_at: int
    jti: Optional[str] = None


def _default_secrets() -> Dict[TokenFamily, str]:
    return {
        TokenFamily.HEAD_CHEF: config.HEAD_CHEF_JWT_SECRET,
        TokenFamily.TEAM: config.TEAM_JWT_SECRET,
        TokenFamily.DEFAULT: config.JWT_SECRET,
        TokenFamily.REFRESH: config.JWT_REFRESH_SECRET,
    }


def _default_lifetimes() -> Dict[TokenFamily, int]:
    return {
        TokenFamily.HEAD_CHEF: config.SESSION_TIMEOUT,
        TokenFamily.TEAM: config.TEAM_SESSION_TIMEOUT,
        TokenFamily.DEFAULT: config.SESSION_TIMEOUT,
    }


class TokenIssuer:
    """
    Mints and verifies bearer tokens.

    Every token carries its signing family in the ``kid`` header, so
    verification picks exactly one secret instead of trying them all.
    Refresh tokens of every family share the refresh secret and lifetime;
    the ``family`` claim remembers which access family to mint on refresh.
    """

    def __init__(
        self,
        secrets: Optional[Mapping[TokenFamily, str]] = None,
        lifetimes: Optional[Mapping[TokenFamily, int]] = None,
        refresh_lifetime: Optional[int] = None,
        algorithm: Optional[str] = None,
        now: Callable[[], float] = time.time,
    ) -> None:
        self._secrets = dict(secrets or _default_secrets())
        missing = [family.value for family in TokenFamily if not self._secrets.get(family)]
        if missing:
            raise ValueError(f"Missing signing secrets for: {', '.join(missing)}")
        self._lifetimes = dict(lifetimes or _default_lifetimes())
        self._refresh_lifetime = int(refresh_lifetime or config.REFRESH_TOKEN_EXPIRY)
        self._algorithm = algorithm or config.JWT_ALGORITHM
        self._now = now

    def now(self) -> int:
        return int(self._now())

    def _encode(
        self,
        *,
        identity_id: str,
        role: Optional[str],
        tenant_id: Optional[str],
        family: TokenFamily,
        kind: TokenKind,
    ) -> IssuedToken:
        issued_at = self.now()
        signing_family = TokenFamily.REFRESH if kind is TokenKind.REFRESH else family
        lifetime = self._refresh_lifetime if kind is TokenKind.REFRESH else self._lifetimes[family]
        jti = uuid.uuid4().hex
        claims: Dict[str, Any] = {
            "sub": str(identity_id),
            "role": role,
            "tenant_id": str(tenant_id) if tenant_id else None,
            "type": kind.value,
            "family": family.value,
            "iat": issued_at,
            "exp": issued_at + int(lifetime),
            "jti": jti,
        }
        token = jwt.encode(
            claims,
            self._secrets[signing_family],
            algorithm=self._algorithm,
            headers={"kid": signing_family.value},
        )
        return IssuedToken(token=token, family=family, kind=kind, expires_at=claims["exp"], jti=jti)

    def _pair(self, identity_id: str, role: Optional[str], tenant_id: Optional[str], family: TokenFamily) -> TokenPair:
        return TokenPair(
            access=self._encode(
                identity_id=identity_id, role=role, tenant_id=tenant_id, family=family, kind=TokenKind.ACCESS
            ),
            refresh=self._encode(
                identity_id=identity_id, role=role, tenant_id=tenant_id, family=family, kind=TokenKind.REFRESH
            ),
        )

    def issue_for_head_chef(self, identity_id: str) -> TokenPair:
        return self._pair(str(identity_id), ROLE_HEAD_CHEF, str(identity_id), TokenFamily.HEAD_CHEF)

    def issue_for_team_member(
        self, identity_id: str, tenant_id: TenantId, role: str = ROLE_TEAM_MEMBER
    ) -> TokenPair:
        return self._pair(str(identity_id), normalize_role(role) or ROLE_TEAM_MEMBER, tenant_id, TokenFamily.TEAM)

    def issue_default(self, identity_id: str, role: Optional[str] = None, tenant_id: Optional[str] = None) -> TokenPair:
        return self._pair(str(identity_id), role, tenant_id, TokenFamily.DEFAULT)

    def issue_for_identity(self, identity) -> TokenPair:
        role = normalize_role(identity.role)
        if role == ROLE_HEAD_CHEF:
            return self.issue_for_head_chef(identity.id)
        if role == ROLE_TEAM_MEMBER:
            return self.issue_for_team_member(identity.id, TenantId(identity.tenant_id), role)
        return self.issue_default(identity.id, role or None, identity.tenant_id)

    def _decode(self, token: str, allowed: tuple) -> Optional[TokenClaims]:
        if not token:
            return None
        try:
            header = jwt.get_unverified_header(token)
            family = TokenFamily(header.get("kid"))
        except (JWTError, ValueError):
            return None
        if family not in allowed:
            return None

        try:
            # exp conferido abaixo com o relógio injetado
            payload = jwt.decode(
                token,
                self._secrets[family],
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            return None

        sub = payload.get("sub")
        exp = payload.get("exp")
        if not isinstance(sub, str) or not sub or not isinstance(exp, int):
            return None
        if exp <= self.now():
            return None

        try:
            kind = TokenKind(payload.get("type"))
            claimed_family = TokenFamily(payload.get("family"))
        except ValueError:
            return None
        if claimed_family not in ACCESS_FAMILIES:
            return None
        expected_kind = TokenKind.REFRESH if family is TokenFamily.REFRESH else TokenKind.ACCESS
        if kind is not expected_kind:
            return None
        if kind is TokenKind.ACCESS and claimed_family is not family:
            return None

        tenant_id = payload.get("tenant_id")
        return TokenClaims(
            identity_id=sub,
            role=payload.get("role"),
            tenant_id=TenantId(tenant_id) if tenant_id else None,
            family=claimed_family,
            kind=kind,
            expires_at=exp,
            jti=payload.get("jti"),
        )

    def verify(self, token: str) -> Optional[TokenClaims]:
        """Return the claims of a valid access token, or None."""
        return self._decode(token, ACCESS_FAMILIES)

    def verify_refresh(self, token: str) -> Optional[TokenClaims]:
        return self._decode(token, (TokenFamily.REFRESH,))
