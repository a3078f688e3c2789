"""The legacy ``user`` role must pass every check a ``team-member`` passes."""

from types import SimpleNamespace

import pytest
from starlette.requests import Request

from kitchen_auth.services.capabilities import CAPABILITY_NAMES, default_capabilities
from kitchen_auth.services.credential_resolver import ensure_member_status
from kitchen_auth.services.authentication import ensure_identity_status
from kitchen_auth.services.permissions import PermissionEvaluator
from kitchen_auth.services.roles import is_team_member, normalize_role
from kitchen_auth.deps import ensure_tenant_access
from tests.support import build_token_issuer


def _member(role, status="approved"):
    return SimpleNamespace(
        id="member-1",
        tenant_id="chef-1",
        role=role,
        status=status,
        capabilities=default_capabilities(role),
    )


def _request(tenant_id="chef-1"):
    scope = {
        "type": "http",
        "method": "GET",
        "path": f"/api/tenants/{tenant_id}/resource",
        "query_string": b"",
        "headers": [],
        "path_params": {"tenant_id": tenant_id},
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
        "scheme": "http",
    }
    return Request(scope)


@pytest.mark.parametrize("role", ["team-member", "user", " User "])
def test_role_normalizes_to_team_member(role):
    assert normalize_role(role) == "team-member"
    assert is_team_member(_member(role))


@pytest.mark.parametrize("capability", CAPABILITY_NAMES)
def test_alias_and_canonical_role_get_same_decisions(capability):
    legacy = _member("user")
    canonical = _member("team-member")

    assert PermissionEvaluator.can(legacy, capability) == PermissionEvaluator.can(canonical, capability)
    assert PermissionEvaluator.can_read_only(legacy, capability) == PermissionEvaluator.can_read_only(
        canonical, capability
    )


@pytest.mark.parametrize("role", ["team-member", "user"])
def test_status_gates_accept_both_roles(role):
    member = _member(role)

    ensure_member_status(member)
    ensure_identity_status(member)
    ensure_tenant_access(request=_request(), identity=member, tenant_id="chef-1")


@pytest.mark.parametrize("role", ["team-member", "user"])
def test_team_tokens_issue_canonical_role(role):
    issuer = build_token_issuer()

    pair = issuer.issue_for_identity(_member(role))
    claims = issuer.verify(pair.access.token)

    assert claims.role == "team-member"
    assert claims.family.value == "team"
