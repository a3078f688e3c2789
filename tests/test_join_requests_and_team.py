import pytest
from itsdangerous import URLSafeTimedSerializer

from kitchen_auth.core.errors import ValidationError
from kitchen_auth.services.invites import CHEF_INVITE_SALT, decode_invite
from tests.fixtures_data import HEAD_CHEF_SIGNUP, OTHER_HEAD_CHEF_SIGNUP, TEAM_LOGIN_JOHN, TEAM_MEMBER_JOHN
from tests.support import auth_header, build_client, build_session_factory


def _setup():
    client = build_client(build_session_factory())
    chef = client.post("/api/auth/register", json=HEAD_CHEF_SIGNUP).json()
    other = client.post("/api/auth/register", json=OTHER_HEAD_CHEF_SIGNUP).json()
    return client, chef, other


def _join(client, tenant_id, first="John", last="Smith"):
    return client.post(
        f"/api/tenants/{tenant_id}/join-requests",
        json={"firstName": first, "lastName": last},
    )


def test_join_request_is_reused_while_pending():
    client, chef, _ = _setup()
    tenant_id = chef["user"]["id"]

    first = _join(client, tenant_id)
    again = _join(client, tenant_id, first="JOHN", last=" smith ")

    assert first.status_code == 201
    assert again.json()["request"]["id"] == first.json()["request"]["id"]
    assert first.json()["request"]["organization"] == HEAD_CHEF_SIGNUP["restaurantName"]


def test_join_request_for_unknown_tenant_is_not_found():
    client, _, _ = _setup()

    response = _join(client, "missing")

    assert response.status_code == 404
    assert response.json()["code"] == "restaurant_not_found"


def test_join_request_requires_names():
    client, chef, _ = _setup()

    response = _join(client, chef["user"]["id"], first=" ", last="Smith")

    assert response.status_code == 400


def test_owner_lists_and_approves_then_member_logs_in():
    client, chef, _ = _setup()
    tenant_id = chef["user"]["id"]
    headers = auth_header(chef["accessToken"])
    request_id = _join(client, tenant_id).json()["request"]["id"]

    pending = client.get(f"/api/tenants/{tenant_id}/join-requests", headers=headers)
    approved = client.post(f"/api/tenants/{tenant_id}/join-requests/{request_id}/approve", headers=headers)
    again = client.post(f"/api/tenants/{tenant_id}/join-requests/{request_id}/approve", headers=headers)
    login = client.post(f"/api/auth/team/{tenant_id}/login", json=TEAM_LOGIN_JOHN)

    assert [item["id"] for item in pending.json()["requests"]] == [request_id]
    assert approved.status_code == 200
    assert approved.json()["request"]["status"] == "approved"
    assert approved.json()["request"]["identityId"]
    assert again.status_code == 409
    assert login.status_code == 200
    assert login.json()["user"]["id"] == approved.json()["request"]["identityId"]
    assert login.json()["user"]["status"] == "approved"


def test_rejected_request_creates_no_identity():
    client, chef, _ = _setup()
    tenant_id = chef["user"]["id"]
    headers = auth_header(chef["accessToken"])
    request_id = _join(client, tenant_id).json()["request"]["id"]

    rejected = client.post(f"/api/tenants/{tenant_id}/join-requests/{request_id}/reject", headers=headers)
    login = client.post(f"/api/auth/team/{tenant_id}/login", json=TEAM_LOGIN_JOHN)
    fresh = _join(client, tenant_id)

    assert rejected.json()["request"]["status"] == "rejected"
    assert rejected.json()["request"]["rejectedAt"]
    assert login.status_code == 404
    assert fresh.json()["request"]["id"] != request_id


def test_other_head_chef_cannot_manage_foreign_requests():
    client, chef, other = _setup()
    tenant_id = chef["user"]["id"]
    request_id = _join(client, tenant_id).json()["request"]["id"]
    foreign_headers = auth_header(other["accessToken"])

    listing = client.get(f"/api/tenants/{tenant_id}/join-requests", headers=foreign_headers)
    approve = client.post(
        f"/api/tenants/{tenant_id}/join-requests/{request_id}/approve",
        headers=foreign_headers,
    )
    cross = client.post(
        f"/api/tenants/{other['user']['id']}/join-requests/{request_id}/approve",
        headers=foreign_headers,
    )

    assert listing.status_code == 403
    assert approve.status_code == 403
    assert cross.status_code == 404


def test_team_member_cannot_approve_requests():
    client, chef, _ = _setup()
    tenant_id = chef["user"]["id"]
    headers = auth_header(chef["accessToken"])
    first_id = _join(client, tenant_id).json()["request"]["id"]
    client.post(f"/api/tenants/{tenant_id}/join-requests/{first_id}/approve", headers=headers)
    member = client.post(f"/api/auth/team/{tenant_id}/login", json=TEAM_LOGIN_JOHN).json()
    second_id = _join(client, tenant_id, first="Mary", last="Jane").json()["request"]["id"]

    response = client.post(
        f"/api/tenants/{tenant_id}/join-requests/{second_id}/approve",
        headers=auth_header(member["accessToken"]),
    )

    assert response.status_code == 403
    assert response.json()["code"] == "head_chef_required"


def test_invite_round_trip_creates_join_request():
    client, chef, _ = _setup()
    tenant_id = chef["user"]["id"]

    invite = client.post(f"/api/tenants/{tenant_id}/invites", headers=auth_header(chef["accessToken"]))
    accepted = client.post(
        f"/api/invites/{invite.json()['token']}/accept",
        json={"firstName": TEAM_MEMBER_JOHN["first_name"], "lastName": TEAM_MEMBER_JOHN["last_name"]},
    )

    assert invite.status_code == 201
    assert accepted.status_code == 201
    assert accepted.json()["request"]["tenantId"] == tenant_id
    assert accepted.json()["request"]["status"] == "pending"


def test_forged_and_expired_invites_are_rejected():
    client, chef, _ = _setup()
    forged = URLSafeTimedSerializer("other-secret", salt=CHEF_INVITE_SALT).dumps({"tenant_id": chef["user"]["id"]})
    invite = client.post(
        f"/api/tenants/{chef['user']['id']}/invites",
        headers=auth_header(chef["accessToken"]),
    ).json()

    bad = client.post(f"/api/invites/{forged}/accept", json={"firstName": "John", "lastName": "Smith"})

    assert bad.status_code == 400
    assert bad.json()["code"] == "invalid_invite"
    assert decode_invite(invite["token"]) == chef["user"]["id"]
    with pytest.raises(ValidationError) as exc:
        decode_invite(invite["token"], max_age=-1)
    assert exc.value.code == "invite_expired"


def _approved_member(client, chef):
    tenant_id = chef["user"]["id"]
    headers = auth_header(chef["accessToken"])
    request_id = _join(client, tenant_id).json()["request"]["id"]
    member_id = client.post(
        f"/api/tenants/{tenant_id}/join-requests/{request_id}/approve",
        headers=headers,
    ).json()["request"]["identityId"]
    return tenant_id, headers, member_id


def test_owner_widens_capabilities_and_team_listing_requires_manage_team():
    client, chef, _ = _setup()
    tenant_id, headers, member_id = _approved_member(client, chef)
    member_token = client.post(f"/api/auth/team/{tenant_id}/login", json=TEAM_LOGIN_JOHN).json()["accessToken"]

    denied = client.get(f"/api/tenants/{tenant_id}/team", headers=auth_header(member_token))
    updated = client.patch(
        f"/api/tenants/{tenant_id}/team/{member_id}",
        json={"capabilities": {"can_manage_team": True}},
        headers=headers,
    )
    allowed = client.get(f"/api/tenants/{tenant_id}/team", headers=auth_header(member_token))

    assert denied.status_code == 403
    assert denied.json()["required"] == "can_manage_team"
    assert updated.json()["member"]["capabilities"]["can_manage_team"] is True
    assert allowed.status_code == 200
    assert [item["id"] for item in allowed.json()["members"]] == [member_id]


def test_team_update_rejects_unknown_capability_and_role():
    client, chef, _ = _setup()
    tenant_id, headers, member_id = _approved_member(client, chef)

    unknown = client.patch(
        f"/api/tenants/{tenant_id}/team/{member_id}",
        json={"capabilities": {"can_fly": True}},
        headers=headers,
    )
    promote = client.patch(
        f"/api/tenants/{tenant_id}/team/{member_id}",
        json={"role": "head-chef"},
        headers=headers,
    )

    assert unknown.status_code == 400
    assert unknown.json()["code"] == "unknown_capability"
    assert promote.status_code == 400
    assert promote.json()["code"] == "invalid_role"


def test_deactivated_member_cannot_login_and_removed_member_disappears():
    client, chef, _ = _setup()
    tenant_id, headers, member_id = _approved_member(client, chef)

    client.patch(f"/api/tenants/{tenant_id}/team/{member_id}", json={"status": "inactive"}, headers=headers)
    inactive_login = client.post(f"/api/auth/team/{tenant_id}/login", json=TEAM_LOGIN_JOHN)
    removed = client.delete(f"/api/tenants/{tenant_id}/team/{member_id}", headers=headers)
    after_removal = client.post(f"/api/auth/team/{tenant_id}/login", json=TEAM_LOGIN_JOHN)

    assert inactive_login.status_code == 403
    assert inactive_login.json()["code"] == "account_inactive"
    assert removed.status_code == 200
    assert after_removal.status_code == 404
