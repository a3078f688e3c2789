from __future__ import annotations

import logging
import re
import secrets
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, inspect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from kitchen_auth.core.errors import AuthSystemError, ConflictError, ValidationError
from kitchen_auth.models.identity import Identity
from kitchen_auth.models.restaurant import Restaurant
from kitchen_auth.services.capabilities import default_capabilities
from kitchen_auth.services.passwords import hash_password
from kitchen_auth.services.roles import (
    IDENTITY_STATUSES,
    KNOWN_ROLES,
    ROLE_HEAD_CHEF,
    ROLE_TEAM_MEMBER,
    STATUS_ACTIVE,
    STATUS_APPROVED,
    TEAM_ROLES,
    TenantId,
    normalize_role,
    normalize_status,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL_DOMAIN = "chef.local"
_SLUG_RE = re.compile(r"[^a-z0-9]+")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _clean_name(value: str | None) -> str:
    return (value or "").strip()


def placeholder_email(first_name: str, last_name: str) -> str:
    first = _SLUG_RE.sub("", first_name.lower()) or "member"
    last = _SLUG_RE.sub("", last_name.lower()) or "member"
    return f"{first}.{last}.{secrets.token_hex(4)}@{PLACEHOLDER_EMAIL_DOMAIN}"


class IdentityStore:
    """Durable access to head chefs and team members (table ``users``)."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _active_query(self):
        return self.db.query(Identity).filter(Identity.is_active.is_(True))

    def find_by_email(self, email: str | None) -> Optional[Identity]:
        normalized = normalize_email(email)
        if not normalized:
            return None
        try:
            return self._active_query().filter(Identity.email == normalized).first()
        except SQLAlchemyError as exc:
            logger.exception("Identity lookup by email failed")
            raise AuthSystemError() from exc

    def find_by_id(self, identity_id: str | None) -> Optional[Identity]:
        if not identity_id:
            return None
        try:
            return self._active_query().filter(Identity.id == str(identity_id)).first()
        except SQLAlchemyError as exc:
            logger.exception("Identity lookup by id failed")
            raise AuthSystemError() from exc

    def find_head_chef(self, tenant_id: TenantId | str | None) -> Optional[Identity]:
        identity = self.find_by_id(tenant_id)
        if identity is None or normalize_role(identity.role) != ROLE_HEAD_CHEF:
            return None
        return identity

    def find_team_members(self, tenant_id: TenantId, first_name: str, last_name: str) -> List[Identity]:
        first = _clean_name(first_name).lower()
        last = _clean_name(last_name).lower()
        if not tenant_id or not first or not last:
            return []
        try:
            return (
                self._active_query()
                .filter(
                    Identity.tenant_id == str(tenant_id),
                    Identity.role.in_(sorted(TEAM_ROLES)),
                    func.lower(Identity.first_name) == first,
                    func.lower(Identity.last_name) == last,
                )
                .all()
            )
        except SQLAlchemyError as exc:
            logger.exception("Team member lookup failed tenant_id=%s", tenant_id)
            raise AuthSystemError() from exc

    def list_team_members(self, tenant_id: TenantId) -> List[Identity]:
        try:
            return (
                self._active_query()
                .filter(Identity.tenant_id == str(tenant_id), Identity.role.in_(sorted(TEAM_ROLES)))
                .order_by(Identity.created_at.asc(), Identity.id.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            logger.exception("Team listing failed tenant_id=%s", tenant_id)
            raise AuthSystemError() from exc

    def _role_changed(self, identity: Identity) -> bool:
        state = inspect(identity)
        if state.transient or state.pending:
            return True
        return state.attrs.role.history.has_changes()

    def _validate(self, identity: Identity) -> None:
        if not identity.first_name or not identity.last_name:
            raise ValidationError("First and last name are required", code="missing_name")
        if not identity.email:
            raise ValidationError("Email is required", code="missing_email")
        if identity.role not in KNOWN_ROLES:
            raise ValidationError("Unknown role", code="invalid_role")
        if normalize_status(identity.status) not in IDENTITY_STATUSES:
            raise ValidationError("Unknown status", code="invalid_status")

        if normalize_role(identity.role) == ROLE_HEAD_CHEF:
            if not identity.id or identity.tenant_id != identity.id:
                raise ValidationError("Head chef must own its tenant", code="invalid_tenant")
            return

        owner = self.find_head_chef(identity.tenant_id)
        if owner is None or owner.id == identity.id:
            raise ValidationError("Team member must belong to an existing head chef", code="invalid_tenant")

    def save(self, identity: Identity, *, commit: bool = True) -> Identity:
        """Persist an identity, recomputing capabilities on creation or role change only."""
        if not identity.id:
            identity.id = str(uuid.uuid4())
        identity.first_name = _clean_name(identity.first_name)
        identity.last_name = _clean_name(identity.last_name)
        identity.name = f"{identity.first_name} {identity.last_name}".strip()
        identity.email = normalize_email(identity.email)
        identity.status = normalize_status(identity.status)
        if identity.is_active is None:
            identity.is_active = True

        if self._role_changed(identity):
            identity.capabilities = default_capabilities(identity.role)

        self._validate(identity)

        self.db.add(identity)
        if not commit:
            return identity
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("Email already registered", code="email_exists") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Identity save failed identity_id=%s", identity.id)
            raise AuthSystemError() from exc
        self.db.refresh(identity)
        return identity

    def create_head_chef(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str = "",
        organization: str | None = None,
        restaurant_name: str | None = None,
        restaurant_type: str | None = None,
        status: str = STATUS_ACTIVE,
    ) -> Identity:
        if self.find_by_email(email) is not None:
            raise ConflictError("Email already registered", code="email_exists")

        # id gerado aqui para que tenant_id = id saia no mesmo INSERT.
        identity_id = str(uuid.uuid4())
        identity = Identity(
            id=identity_id,
            tenant_id=identity_id,
            email=email,
            first_name=first_name,
            last_name=last_name or first_name,
            organization=organization or restaurant_name,
            password_hash=hash_password(password),
            role=ROLE_HEAD_CHEF,
            status=status,
        )
        self.save(identity, commit=False)
        if restaurant_name:
            self.db.add(
                Restaurant(
                    head_chef_id=identity_id,
                    restaurant_name=restaurant_name.strip(),
                    restaurant_type=restaurant_type,
                )
            )
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("Email already registered", code="email_exists") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Head chef provisioning failed")
            raise AuthSystemError() from exc
        self.db.refresh(identity)
        logger.info("Head chef provisioned identity_id=%s", identity.id)
        return identity

    def create_team_member(
        self,
        *,
        tenant_id: TenantId,
        first_name: str,
        last_name: str,
        status: str = STATUS_APPROVED,
        organization: str | None = None,
        commit: bool = True,
    ) -> Identity:
        identity = Identity(
            tenant_id=str(tenant_id),
            email=placeholder_email(_clean_name(first_name), _clean_name(last_name)),
            first_name=first_name,
            last_name=last_name,
            organization=organization,
            role=ROLE_TEAM_MEMBER,
            status=status,
        )
        return self.save(identity, commit=commit)

    def record_login(self, identity: Identity) -> Identity:
        identity.last_login_at = datetime.utcnow()
        return self.save(identity)

    def set_password(self, identity: Identity, new_password: str) -> Identity:
        identity.password_hash = hash_password(new_password)
        return self.save(identity)

    def soft_delete(self, identity: Identity) -> Identity:
        identity.is_active = False
        identity.status = "inactive"
        return self.save(identity)

    def organization_name(self, head_chef: Identity) -> str:
        try:
            restaurant = self.db.query(Restaurant).filter(Restaurant.head_chef_id == head_chef.id).first()
        except SQLAlchemyError as exc:
            logger.exception("Restaurant lookup failed head_chef_id=%s", head_chef.id)
            raise AuthSystemError() from exc
        if restaurant is not None and restaurant.restaurant_name:
            return restaurant.restaurant_name
        return head_chef.organization or head_chef.name
