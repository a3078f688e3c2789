from types import SimpleNamespace

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from kitchen_auth.core.database import get_db
from kitchen_auth.core.errors import AuthorizationError, register_exception_handlers
from kitchen_auth.deps import (
    ensure_tenant_access,
    get_current_identity,
    require_capability,
    require_head_chef,
    require_read_only_capability,
    require_tenant_access,
)
from kitchen_auth.models.auth_audit_log import AuthAuditLog
from kitchen_auth.services.capabilities import default_capabilities
from kitchen_auth.services.identity_store import IdentityStore
from tests.support import auth_header, build_session_factory, build_token_issuer


def _build_request(path="/api/tenants/t-1/resource", tenant_id="t-1"):
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "query_string": b"",
        "headers": [],
        "path_params": {"tenant_id": tenant_id} if tenant_id is not None else {},
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


def test_ensure_tenant_access_denies_mismatch():
    identity = SimpleNamespace(id="m-1", tenant_id="t-1", role="team-member")

    with pytest.raises(AuthorizationError) as exc:
        ensure_tenant_access(request=_build_request(tenant_id="t-2"), identity=identity, tenant_id="t-2")

    assert exc.value.status_code == 403
    assert exc.value.code == "access_denied"


def test_head_chef_is_only_owner_of_its_own_tenant():
    chef = SimpleNamespace(id="t-1", tenant_id="t-1", role="head-chef", status="active")

    with pytest.raises(AuthorizationError):
        ensure_tenant_access(request=_build_request(tenant_id="t-9"), identity=chef, tenant_id="t-9")


def test_require_head_chef_rejects_team_member():
    member = SimpleNamespace(id="m-1", tenant_id="t-1", role="user", status="approved")

    with pytest.raises(AuthorizationError) as exc:
        require_head_chef(request=_build_request(), identity=member)

    assert exc.value.code == "head_chef_required"


def test_capability_guard_names_the_missing_capability():
    member = SimpleNamespace(
        id="m-1",
        tenant_id="t-1",
        role="team-member",
        status="approved",
        capabilities=default_capabilities("team-member"),
    )
    dependency = require_capability("can_delete_recipes")

    with pytest.raises(AuthorizationError) as exc:
        dependency(request=_build_request(), identity=member)

    assert exc.value.to_payload()["required"] == "can_delete_recipes"


def test_capability_guard_checks_tenant_before_capability():
    chef = SimpleNamespace(id="t-1", tenant_id="t-1", role="head-chef", status="active", capabilities={})
    dependency = require_capability("can_view_recipes")

    with pytest.raises(AuthorizationError) as exc:
        dependency(request=_build_request(tenant_id="t-2"), identity=chef)

    assert exc.value.code == "access_denied"


def _build_guarded_client():
    session_factory = build_session_factory()
    issuer = build_token_issuer()
    app = FastAPI()
    register_exception_handlers(app)
    app.state.token_issuer = issuer

    @app.get("/whoami")
    def whoami(identity=Depends(get_current_identity)):
        return {"id": identity.id}

    @app.get("/tenants/{tenant_id}/recipes")
    def list_recipes(tenant_id: str, identity=Depends(require_read_only_capability("can_view_recipes"))):
        return {"tenant_id": tenant_id}

    @app.delete("/tenants/{tenant_id}/recipes")
    def delete_recipes(tenant_id: str, identity=Depends(require_capability("can_delete_recipes"))):
        return {"deleted": True}

    @app.get("/tenants/{tenant_id}/dashboard")
    def dashboard(tenant_id: str, identity=Depends(require_tenant_access)):
        return {"ok": True}

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    db = session_factory()
    store = IdentityStore(db)
    chef = store.create_head_chef(email="a@x.com", password="secret1", first_name="Ana", last_name="Souza")
    other_chef = store.create_head_chef(email="b@y.com", password="secret2", first_name="Bia", last_name="Reis")
    member = store.create_team_member(tenant_id=chef.id, first_name="John", last_name="Smith")
    ids = SimpleNamespace(chef=chef.id, other_chef=other_chef.id, member=member.id)
    db.close()
    return TestClient(app), issuer, session_factory, ids


def test_chain_rejects_missing_and_invalid_tokens():
    client, _, _, _ = _build_guarded_client()

    missing = client.get("/whoami")
    invalid = client.get("/whoami", headers=auth_header("garbage"))

    assert missing.status_code == 401
    assert missing.json()["code"] == "missing_token"
    assert invalid.status_code == 401
    assert invalid.json()["code"] == "invalid_token"


def test_chain_rejections_are_audited():
    client, _, session_factory, _ = _build_guarded_client()

    client.get("/whoami")
    client.get("/whoami", headers=auth_header("garbage"))

    db = session_factory()
    try:
        reasons = [row.reason for row in db.query(AuthAuditLog).order_by(AuthAuditLog.id.asc()).all()]
    finally:
        db.close()
    assert reasons == ["missing_token", "invalid_token"]


def test_chain_rejects_token_for_deleted_identity():
    client, issuer, session_factory, ids = _build_guarded_client()
    token = issuer.issue_for_team_member(ids.member, ids.chef).access.token
    db = session_factory()
    store = IdentityStore(db)
    store.soft_delete(store.find_by_id(ids.member))
    db.close()

    response = client.get("/whoami", headers=auth_header(token))

    assert response.status_code == 401
    assert response.json()["code"] == "invalid_token"


def test_chain_rejects_token_with_forged_tenant_context():
    client, issuer, _, ids = _build_guarded_client()
    token = issuer.issue_for_team_member(ids.member, ids.other_chef).access.token

    response = client.get("/whoami", headers=auth_header(token))

    assert response.status_code == 401
    assert response.json()["code"] == "invalid_token"


@pytest.mark.parametrize("status,code", [("pending", "not_approved"), ("inactive", "account_inactive")])
def test_chain_applies_status_gate(status, code):
    client, issuer, session_factory, ids = _build_guarded_client()
    token = issuer.issue_for_team_member(ids.member, ids.chef).access.token
    db = session_factory()
    store = IdentityStore(db)
    member = store.find_by_id(ids.member)
    member.status = status
    store.save(member)
    db.close()

    response = client.get("/whoami", headers=auth_header(token))

    assert response.status_code == 403
    assert response.json()["code"] == code


def test_head_chef_must_be_active_to_pass_chain():
    client, issuer, session_factory, ids = _build_guarded_client()
    token = issuer.issue_for_head_chef(ids.chef).access.token
    db = session_factory()
    store = IdentityStore(db)
    chef = store.find_by_id(ids.chef)
    chef.status = "approved"
    store.save(chef)
    db.close()

    response = client.get("/whoami", headers=auth_header(token))

    assert response.status_code == 403
    assert response.json()["code"] == "account_inactive"


def test_cross_tenant_request_is_denied_even_with_valid_token():
    client, issuer, _, ids = _build_guarded_client()
    token = issuer.issue_for_head_chef(ids.chef).access.token

    own = client.get(f"/tenants/{ids.chef}/dashboard", headers=auth_header(token))
    foreign = client.get(f"/tenants/{ids.other_chef}/dashboard", headers=auth_header(token))

    assert own.status_code == 200
    assert foreign.status_code == 403
    assert foreign.json()["code"] == "access_denied"


def test_capability_routes_for_team_member():
    client, issuer, _, ids = _build_guarded_client()
    token = issuer.issue_for_team_member(ids.member, ids.chef).access.token

    view = client.get(f"/tenants/{ids.chef}/recipes", headers=auth_header(token))
    delete = client.delete(f"/tenants/{ids.chef}/recipes", headers=auth_header(token))

    assert view.status_code == 200
    assert delete.status_code == 403
    assert delete.json() == {
        "message": "Insufficient permissions",
        "code": "insufficient_permissions",
        "required": "can_delete_recipes",
    }


def test_head_chef_passes_every_capability_route():
    client, issuer, _, ids = _build_guarded_client()
    token = issuer.issue_for_head_chef(ids.chef).access.token

    response = client.delete(f"/tenants/{ids.chef}/recipes", headers=auth_header(token))

    assert response.status_code == 200
