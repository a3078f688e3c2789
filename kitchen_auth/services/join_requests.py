from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kitchen_auth.core.errors import AuthSystemError, ConflictError, NotFoundError, ValidationError
from kitchen_auth.models.join_request import JoinRequest
from kitchen_auth.services.identity_store import IdentityStore
from kitchen_auth.services.roles import STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED, TenantId

logger = logging.getLogger(__name__)


class JoinRequestStore:
    def __init__(self, db: Session, identities: IdentityStore | None = None) -> None:
        self.db = db
        self.identities = identities or IdentityStore(db)

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Join request %s failed", action)
            raise AuthSystemError() from exc

    def find_pending(self, tenant_id: TenantId, first_name: str, last_name: str) -> Optional[JoinRequest]:
        try:
            return (
                self.db.query(JoinRequest)
                .filter(
                    JoinRequest.tenant_id == str(tenant_id),
                    JoinRequest.status == STATUS_PENDING,
                    func.lower(JoinRequest.first_name) == first_name.strip().lower(),
                    func.lower(JoinRequest.last_name) == last_name.strip().lower(),
                )
                .order_by(JoinRequest.id.asc())
                .first()
            )
        except SQLAlchemyError as exc:
            logger.exception("Join request lookup failed tenant_id=%s", tenant_id)
            raise AuthSystemError() from exc

    def get(self, tenant_id: TenantId, request_id: int) -> JoinRequest:
        try:
            join_request = (
                self.db.query(JoinRequest)
                .filter(JoinRequest.id == request_id, JoinRequest.tenant_id == str(tenant_id))
                .first()
            )
        except SQLAlchemyError as exc:
            logger.exception("Join request lookup failed request_id=%s", request_id)
            raise AuthSystemError() from exc
        if join_request is None:
            raise NotFoundError("Join request not found", code="join_request_not_found")
        return join_request

    def create(self, tenant_id: TenantId, first_name: str, last_name: str) -> JoinRequest:
        """Open a request to join ``tenant_id``; an identical pending request is reused."""
        first = (first_name or "").strip()
        last = (last_name or "").strip()
        if not first or not last:
            raise ValidationError("First and last name are required", code="missing_credentials")

        head_chef = self.identities.find_head_chef(tenant_id)
        if head_chef is None:
            raise NotFoundError("Restaurant not found", code="restaurant_not_found")

        existing = self.find_pending(tenant_id, first, last)
        if existing is not None:
            logger.info("Reusing pending join request request_id=%s tenant_id=%s", existing.id, tenant_id)
            return existing

        join_request = JoinRequest(
            tenant_id=str(tenant_id),
            first_name=first,
            last_name=last,
            organization=self.identities.organization_name(head_chef),
            status=STATUS_PENDING,
        )
        self.db.add(join_request)
        self._commit("create")
        self.db.refresh(join_request)
        logger.info("Join request created request_id=%s tenant_id=%s", join_request.id, tenant_id)
        return join_request

    def list_pending(self, tenant_id: TenantId) -> List[JoinRequest]:
        try:
            return (
                self.db.query(JoinRequest)
                .filter(JoinRequest.tenant_id == str(tenant_id), JoinRequest.status == STATUS_PENDING)
                .order_by(JoinRequest.created_at.asc(), JoinRequest.id.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            logger.exception("Join request listing failed tenant_id=%s", tenant_id)
            raise AuthSystemError() from exc

    def approve(self, tenant_id: TenantId, request_id: int) -> JoinRequest:
        join_request = self.get(tenant_id, request_id)
        if join_request.status != STATUS_PENDING:
            raise ConflictError("Join request already processed", code="join_request_processed")

        identity = self.identities.create_team_member(
            tenant_id=tenant_id,
            first_name=join_request.first_name,
            last_name=join_request.last_name,
            status=STATUS_APPROVED,
            organization=join_request.organization,
            commit=False,
        )
        join_request.status = STATUS_APPROVED
        join_request.approved_at = datetime.utcnow()
        join_request.identity_id = identity.id
        self._commit("approve")
        self.db.refresh(join_request)
        logger.info(
            "Join request approved request_id=%s tenant_id=%s identity_id=%s",
            join_request.id,
            tenant_id,
            identity.id,
        )
        return join_request

    def reject(self, tenant_id: TenantId, request_id: int) -> JoinRequest:
        join_request = self.get(tenant_id, request_id)
        if join_request.status != STATUS_PENDING:
            raise ConflictError("Join request already processed", code="join_request_processed")
        join_request.status = STATUS_REJECTED
        join_request.rejected_at = datetime.utcnow()
        self._commit("reject")
        self.db.refresh(join_request)
        logger.info("Join request rejected request_id=%s tenant_id=%s", join_request.id, tenant_id)
        return join_request
