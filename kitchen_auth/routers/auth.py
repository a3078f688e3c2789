# kitchen_auth/routers/auth.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from kitchen_auth.core.database import get_db
from kitchen_auth.deps import (
    get_client_key,
    get_current_identity,
    get_lockout_tracker,
    get_token_issuer,
)
from kitchen_auth.models.identity import Identity
from kitchen_auth.schemas.auth import (
    ChangePasswordPayload,
    EmailLoginPayload,
    IdentityRead,
    RefreshPayload,
    RegisterPayload,
    TeamLoginPayload,
)
from kitchen_auth.services.authentication import AuthenticationService, LoginResult
from kitchen_auth.services.capabilities import CAPABILITY_NAMES
from kitchen_auth.services.lockout import LockoutTracker
from kitchen_auth.services.permissions import PermissionEvaluator
from kitchen_auth.services.roles import TenantId
from kitchen_auth.services.tokens import TokenIssuer

router = APIRouter(prefix="/api/auth", tags=["auth"])


def get_auth_service(
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
    tracker: LockoutTracker = Depends(get_lockout_tracker),
    client_key: str = Depends(get_client_key),
) -> AuthenticationService:
    return AuthenticationService(db, issuer, tracker, client_key=client_key)


def serialize_identity(identity: Identity) -> Dict[str, Any]:
    return IdentityRead.model_validate(identity).model_dump(mode="json", by_alias=True)


def _login_response(result: LoginResult, issuer: TokenIssuer, message: str) -> Dict[str, Any]:
    return {
        "message": message,
        "user": serialize_identity(result.identity),
        **result.tokens.as_response(issuer.now()),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterPayload,
    service: AuthenticationService = Depends(get_auth_service),
):
    result = service.register_head_chef(
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        restaurant_name=payload.restaurant_name,
        restaurant_type=payload.restaurant_type,
    )
    return _login_response(result, service.tokens, "Head chef registered successfully")


@router.post("/login")
def login(
    payload: EmailLoginPayload,
    service: AuthenticationService = Depends(get_auth_service),
):
    result = service.login_with_email(payload.email, payload.password)
    return _login_response(result, service.tokens, "Login successful")


@router.post("/team/{tenant_id}/login")
def team_login(
    tenant_id: str,
    payload: TeamLoginPayload,
    service: AuthenticationService = Depends(get_auth_service),
):
    result = service.login_team_member(TenantId(tenant_id), payload.username, payload.password)
    response = _login_response(result, service.tokens, "Team login successful")
    response["tenantId"] = result.identity.tenant_id
    response["organization"] = result.organization
    return response


@router.post("/refresh")
def refresh(
    payload: RefreshPayload,
    service: AuthenticationService = Depends(get_auth_service),
):
    pair = service.refresh(payload.refresh_token)
    return pair.as_response(service.tokens.now())


@router.post("/logout")
def logout(identity: Identity = Depends(get_current_identity)):
    # tokens são stateless; o cliente descarta o par
    return {"message": "Logged out successfully"}


@router.get("/me")
def me(identity: Identity = Depends(get_current_identity)):
    return {"user": serialize_identity(identity)}


@router.post("/change-password")
def change_password(
    payload: ChangePasswordPayload,
    identity: Identity = Depends(get_current_identity),
    service: AuthenticationService = Depends(get_auth_service),
):
    service.change_password(identity, payload.current_password, payload.new_password)
    return {"message": "Password changed successfully"}


@router.get("/permissions")
def my_permissions(identity: Identity = Depends(get_current_identity)):
    """Effective capability decisions for the caller, as the guards would evaluate them."""
    return {
        "role": identity.role,
        "capabilities": {name: PermissionEvaluator.can(identity, name) for name in CAPABILITY_NAMES},
        "readOnly": {name: PermissionEvaluator.can_read_only(identity, name) for name in CAPABILITY_NAMES},
    }
