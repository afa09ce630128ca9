from __future__ import annotations

import pytest

from urocareerz.auth.session_tokens import issue_session_token
from urocareerz.modules.moderation import OpportunityStatus, UserStatus
from urocareerz.repositories import opportunities_repo, opportunity_types_repo, users_repo


def _approved_opportunity(mentor_id: str) -> dict:
    t = opportunity_types_repo.create_type(name="Observership")
    return opportunities_repo.create_opportunity(
        title="Stone clinic observership",
        description="Two weeks in clinic.",
        opportunity_type_id=t["id"],
        creator_id=mentor_id,
        creator_role="MENTOR",
        status=OpportunityStatus.APPROVED,
    )


@pytest.mark.parametrize("role", ["ADMIN", "admin", "SUPERUSER"])
def test_public_registration_cannot_pick_admin(client, table, role):
    r = client.post("/api/register", json={"email": "someone@example.com", "role": role})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid role"
    assert users_repo.get_user_record_by_email("someone@example.com") is None


def test_provision_admin_seeds_then_promotes(table):
    admin, created = users_repo.provision_admin(email="Chief@Example.com", first_name="Ada")
    assert created
    assert admin["role"] == "ADMIN"
    assert admin["status"] == UserStatus.ACTIVE.value
    assert admin["email"] == "chief@example.com"

    mentor = users_repo.create_user(email="mentor@example.com", role="MENTOR")
    users_repo.set_user_status(mentor["userId"], UserStatus.REJECTED)
    promoted, created = users_repo.provision_admin(email="mentor@example.com")
    assert not created
    assert promoted["id"] == mentor["userId"]
    assert promoted["role"] == "ADMIN"
    assert promoted["status"] == UserStatus.ACTIVE.value
    assert "deletedAt" not in promoted


def test_rejected_mentee_session_stops_working(client, make_session):
    mentor, _ = make_session("MENTOR")
    _, ah = make_session("ADMIN")
    mentee, mh = make_session("MENTEE")
    opp = _approved_opportunity(mentor["id"])

    assert client.post(f"/api/admin/users/{mentee['id']}/reject", headers=ah).status_code == 200

    saved = client.post("/api/saved-opportunities", json={"opportunityId": opp["id"]}, headers=mh)
    assert saved.status_code == 401
    assert saved.json()["error"] == "Session is no longer valid"
    applied = client.post("/api/applications", json={"opportunityId": opp["id"]}, headers=mh)
    assert applied.status_code == 401
    assert client.get("/api/user", headers=mh).status_code == 401


def test_deactivated_and_deleted_sessions_are_refused(client, make_session):
    _, ah = make_session("ADMIN")
    idle, ih = make_session("MENTOR")
    gone, gh = make_session("MENTEE")

    r = client.put(f"/api/admin/users/{idle['id']}/status", json={"status": "INACTIVE"}, headers=ah)
    assert r.status_code == 200
    assert client.delete(f"/api/admin/users/{gone['id']}", headers=ah).status_code == 200

    assert client.get("/api/user", headers=ih).status_code == 401
    assert client.get("/api/user", headers=gh).status_code == 401


def test_session_without_stored_user_is_refused(client, table):
    token = issue_session_token({"id": "usr_ghost", "email": "ghost@example.com", "role": "ADMIN"})
    r = client.get("/api/admin/users", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_stored_role_wins_over_token_claims(client, make_session):
    admin, ah = make_session("ADMIN")
    users_repo.update_user(admin["id"], {"role": "MENTOR"})

    r = client.get("/api/admin/users", headers=ah)
    assert r.status_code == 403
    assert r.json()["error"] == "Admin access required"
