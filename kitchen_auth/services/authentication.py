from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from kitchen_auth.core.errors import (
    AuthError,
    AuthenticationError,
    AuthorizationError,
    RateLimitedError,
    ValidationError,
)
from kitchen_auth.models.identity import Identity
from kitchen_auth.services.auth_failures import apply_failure_delay, record_auth_failure, record_auth_success
from kitchen_auth.services.credential_resolver import CredentialResolver
from kitchen_auth.services.identity_store import IdentityStore
from kitchen_auth.services.lockout import LockoutTracker
from kitchen_auth.services.passwords import MIN_PASSWORD_LENGTH, burn_password_check, verify_password
from kitchen_auth.services.roles import (
    STATUS_ACTIVE,
    STATUS_PENDING,
    TenantId,
    can_login,
    is_head_chef,
    normalize_status,
)
from kitchen_auth.services.tokens import TokenIssuer, TokenPair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    identity: Identity
    tokens: TokenPair
    organization: Optional[str] = None


def ensure_head_chef_status(identity: Identity) -> None:
    current = normalize_status(identity.status)
    if current == STATUS_ACTIVE:
        return
    if current == STATUS_PENDING:
        raise AuthorizationError("Your account is waiting for approval", code="not_approved")
    raise AuthorizationError("Your account is inactive", code="account_inactive")


def ensure_identity_status(identity: Identity) -> None:
    """Status gate shared by login, refresh and the request dependencies."""
    if is_head_chef(identity):
        ensure_head_chef_status(identity)
        return
    if can_login(identity):
        return
    if normalize_status(identity.status) == STATUS_PENDING:
        raise AuthorizationError("Your account is waiting for approval", code="not_approved")
    raise AuthorizationError("Your account is inactive", code="account_inactive")


class AuthenticationService:
    def __init__(
        self,
        db: Session,
        tokens: TokenIssuer,
        tracker: LockoutTracker,
        client_key: Optional[str] = None,
    ) -> None:
        self.db = db
        self.store = IdentityStore(db)
        self.tokens = tokens
        self.tracker = tracker
        self.client_key = client_key

    def _fail(
        self,
        error: AuthError,
        *,
        action: str,
        identifier: Optional[str] = None,
        tenant_id: Optional[str] = None,
        identity_id: Optional[str] = None,
        count_attempt: bool = True,
    ) -> AuthError:
        record_auth_failure(
            reason=error.code,
            action=action,
            client_key=self.client_key,
            tracker=self.tracker,
            db=self.db,
            identifier=identifier,
            tenant_id=tenant_id,
            identity_id=identity_id,
            count_attempt=count_attempt,
        )
        return error

    def _ensure_not_locked(self, *, action: str, identifier: Optional[str], tenant_id: Optional[str] = None) -> None:
        if not self.client_key:
            return
        try:
            self.tracker.ensure_not_locked(self.client_key)
        except RateLimitedError as exc:
            raise self._fail(
                exc,
                action=action,
                identifier=identifier,
                tenant_id=tenant_id,
                count_attempt=False,
            )

    def _succeed(self, identity: Identity, *, action: str) -> None:
        self.store.record_login(identity)
        record_auth_success(
            action=action,
            client_key=self.client_key,
            identity_id=identity.id,
            tenant_id=identity.tenant_id,
            tracker=self.tracker,
            db=self.db,
        )

    def login_with_email(self, email: Optional[str], password: Optional[str]) -> LoginResult:
        action = "login"
        self._ensure_not_locked(action=action, identifier=email)
        if not (email or "").strip() or not password:
            raise self._fail(
                ValidationError("Email and password are required", code="missing_credentials"),
                action=action,
                identifier=email,
            )

        identity = self.store.find_by_email(email)
        if identity is None:
            burn_password_check(password)
            apply_failure_delay()
            raise self._fail(AuthenticationError(), action=action, identifier=email)
        if not identity.password_hash:
            # membros da equipe não têm senha; mesmo custo de um e-mail desconhecido
            burn_password_check(password)
            apply_failure_delay()
            raise self._fail(AuthenticationError(), action=action, identifier=email, identity_id=identity.id)
        if not verify_password(password, identity.password_hash):
            apply_failure_delay()
            raise self._fail(AuthenticationError(), action=action, identifier=email, identity_id=identity.id)

        # Só revela o status depois que a senha confere.
        try:
            ensure_identity_status(identity)
        except AuthorizationError as exc:
            raise self._fail(
                exc,
                action=action,
                identifier=email,
                tenant_id=identity.tenant_id,
                identity_id=identity.id,
            )

        self._succeed(identity, action=action)
        return LoginResult(
            identity=identity,
            tokens=self.tokens.issue_for_identity(identity),
            organization=identity.organization,
        )

    def login_team_member(self, tenant_id: TenantId, username: Optional[str], password: Optional[str]) -> LoginResult:
        action = "team_login"
        self._ensure_not_locked(action=action, identifier=username, tenant_id=tenant_id)
        try:
            resolved = CredentialResolver(self.store).resolve(tenant_id, username, password)
        except AuthError as exc:
            if exc.code == "invalid_credentials":
                apply_failure_delay()
            raise self._fail(exc, action=action, identifier=username, tenant_id=tenant_id)

        identity = resolved.identity
        self._succeed(identity, action=action)
        return LoginResult(
            identity=identity,
            tokens=self.tokens.issue_for_team_member(identity.id, TenantId(identity.tenant_id), identity.role),
            organization=resolved.organization,
        )

    def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        """Mint a new pair from a refresh token after re-checking the identity."""
        action = "refresh"
        invalid = AuthenticationError("Invalid refresh token", code="invalid_refresh_token")
        claims = self.tokens.verify_refresh(refresh_token or "")
        if claims is None:
            raise self._fail(invalid, action=action, count_attempt=False)

        identity = self.store.find_by_id(claims.identity_id)
        if identity is None:
            raise self._fail(invalid, action=action, identity_id=claims.identity_id, count_attempt=False)
        if claims.tenant_id and str(identity.tenant_id) != str(claims.tenant_id):
            raise self._fail(invalid, action=action, identity_id=identity.id, count_attempt=False)
        try:
            ensure_identity_status(identity)
        except AuthorizationError:
            raise self._fail(
                invalid,
                action=action,
                identity_id=identity.id,
                tenant_id=identity.tenant_id,
                count_attempt=False,
            )

        logger.info("Token refreshed identity_id=%s", identity.id)
        return self.tokens.issue_for_identity(identity)

    def register_head_chef(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str = "",
        restaurant_name: Optional[str] = None,
        restaurant_type: Optional[str] = None,
    ) -> LoginResult:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
                code="weak_password",
            )
        if not (first_name or "").strip():
            raise ValidationError("First name is required", code="missing_name")

        identity = self.store.create_head_chef(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            restaurant_name=restaurant_name,
            restaurant_type=restaurant_type,
        )
        return LoginResult(
            identity=identity,
            tokens=self.tokens.issue_for_head_chef(identity.id),
            organization=identity.organization,
        )

    def change_password(self, identity: Identity, current_password: str, new_password: str) -> Identity:
        action = "change_password"
        if not identity.password_hash or not verify_password(current_password, identity.password_hash):
            raise self._fail(
                AuthenticationError("Current password is incorrect", code="invalid_credentials"),
                action=action,
                identity_id=identity.id,
                tenant_id=identity.tenant_id,
                count_attempt=False,
            )
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
                code="weak_password",
            )
        updated = self.store.set_password(identity, new_password)
        logger.info("Password changed identity_id=%s", identity.id)
        return updated
