from __future__ import annotations

from urocareerz.modules.moderation import OpportunityStatus, UserStatus
from urocareerz.repositories import opportunities_repo, opportunity_types_repo, users_repo


def test_deleted_users_drop_out_of_admin_listing(client, make_session):
    _, ah = make_session("ADMIN")
    keep, _ = make_session("MENTEE")
    drop, _ = make_session("MENTOR")

    r = client.delete(f"/api/admin/users/{drop['id']}", headers=ah)
    assert r.status_code == 200

    ids = {u["id"] for u in client.get("/api/admin/users", headers=ah).json()["users"]}
    assert keep["id"] in ids
    assert drop["id"] not in ids
    assert users_repo.get_user(drop["id"]) is None
    # The record is kept for the audit trail.
    assert users_repo.get_user(drop["id"], include_deleted=True)["deletedAt"]

    # A deleted account can no longer sign in.
    r = client.post("/api/login/send-otp", json={"email": drop["email"]})
    assert r.status_code == 404


def test_rejected_users_are_listed_only_when_asked_for(client, make_session):
    _, ah = make_session("ADMIN")
    pending, _ = make_session("MENTEE", status=UserStatus.PENDING)

    r = client.post(f"/api/admin/users/{pending['id']}/reject", headers=ah)
    assert r.status_code == 200
    assert r.json()["user"]["status"] == UserStatus.REJECTED.value

    default_ids = {u["id"] for u in client.get("/api/admin/users", headers=ah).json()["users"]}
    assert pending["id"] not in default_ids
    rejected = client.get("/api/admin/users?status=rejected", headers=ah).json()["users"]
    assert [u["id"] for u in rejected] == [pending["id"]]


def test_approve_user_sends_welcome_and_records_audit(client, make_session, outbox):
    admin, ah = make_session("ADMIN")
    pending, _ = make_session("MENTOR", status=UserStatus.PENDING)

    r = client.post(f"/api/admin/users/{pending['id']}/approve", headers=ah)
    assert r.status_code == 200
    assert r.json()["user"]["status"] == UserStatus.ACTIVE.value
    assert [m["to_email"] for m in outbox] == [pending["email"]]

    logs = client.get("/api/admin/audit-logs?action=USER_APPROVED", headers=ah).json()
    assert [log["entityId"] for log in logs["auditLogs"]] == [pending["id"]]
    assert logs["auditLogs"][0]["userId"] == admin["id"]


def test_status_change_accepts_only_active_or_inactive(client, make_session):
    _, ah = make_session("ADMIN")
    user, uh = make_session("MENTEE")

    bad = client.put(f"/api/admin/users/{user['id']}/status", json={"status": "rejected"}, headers=ah)
    assert bad.status_code == 400
    r = client.put(f"/api/admin/users/{user['id']}/status", json={"status": "INACTIVE"}, headers=ah)
    assert r.status_code == 200
    assert r.json()["user"]["status"] == UserStatus.INACTIVE.value

    r = client.post("/api/login/send-otp", json={"email": user["email"]})
    assert r.status_code == 403


def test_deleted_opportunities_are_hidden_everywhere(client, make_session):
    _, ah = make_session("ADMIN")
    mentor, _ = make_session("MENTOR")
    _, mh = make_session("MENTEE")
    t = opportunity_types_repo.create_type(name="Research")
    live = opportunities_repo.create_opportunity(
        title="Live",
        description="Still open.",
        opportunity_type_id=t["id"],
        creator_id=mentor["id"],
        creator_role="MENTOR",
        status=OpportunityStatus.APPROVED,
    )
    gone = opportunities_repo.create_opportunity(
        title="Gone",
        description="Withdrawn by admin.",
        opportunity_type_id=t["id"],
        creator_id=mentor["id"],
        creator_role="MENTOR",
        status=OpportunityStatus.APPROVED,
    )

    assert client.delete(f"/api/admin/opportunities/{gone['id']}", headers=ah).status_code == 200

    admin_ids = [o["id"] for o in client.get("/api/admin/opportunities", headers=ah).json()["opportunities"]]
    board_ids = [o["id"] for o in client.get("/api/opportunities", headers=mh).json()["opportunities"]]
    assert admin_ids == [live["id"]]
    assert board_ids == [live["id"]]
    assert client.get(f"/api/opportunities/{gone['id']}", headers=mh).status_code == 404
    assert client.post("/api/saved-opportunities", json={"opportunityId": gone["id"]}, headers=mh).status_code == 404


def test_mentee_deletes_own_pending_submission(client, make_session):
    _, mh = make_session("MENTEE")
    _, other = make_session("MENTEE")
    t = opportunity_types_repo.create_type(name="Research")
    r = client.post(
        "/api/mentee-opportunities",
        json={"title": "Poster session", "description": "AUA poster help", "opportunityTypeId": t["id"]},
        headers=mh,
    )
    opp_id = r.json()["opportunity"]["id"]

    # Someone else's submission is indistinguishable from a missing one.
    assert client.delete(f"/api/mentee-opportunities/{opp_id}", headers=other).status_code == 404

    assert client.delete(f"/api/mentee-opportunities/{opp_id}", headers=mh).status_code == 200
    assert client.get("/api/mentee-opportunities", headers=mh).json()["opportunities"] == []
    assert opportunities_repo.get_opportunity(opp_id, include_deleted=True)["deletedAt"]


def test_type_in_use_cannot_be_deleted(client, make_session):
    _, ah = make_session("ADMIN")
    mentor, _ = make_session("MENTOR")
    used = opportunity_types_repo.create_type(name="Research")
    unused = opportunity_types_repo.create_type(name="Scholarship")
    opportunities_repo.create_opportunity(
        title="Lab spot",
        description="Bench work.",
        opportunity_type_id=used["id"],
        creator_id=mentor["id"],
        creator_role="MENTOR",
    )

    r = client.request("DELETE", "/api/admin/opportunity-types", json={"id": used["id"]}, headers=ah)
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot delete opportunity type that is in use"

    r = client.delete(f"/api/admin/opportunity-types?id={unused['id']}", headers=ah)
    assert r.status_code == 200
    public = client.get("/api/opportunity-types").json()["opportunityTypes"]
    assert [t["name"] for t in public] == ["Research"]

    dup = client.post("/api/admin/opportunity-types", json={"name": "research"}, headers=ah)
    assert dup.status_code == 400
