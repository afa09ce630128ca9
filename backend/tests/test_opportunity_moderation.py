from __future__ import annotations

from urocareerz.modules.moderation import OpportunityStatus
from urocareerz.repositories import audit_logs_repo, opportunities_repo, opportunity_types_repo, users_repo


def _research_type():
    return opportunity_types_repo.create_type(name="Research", color="#2563eb")


def _submit_as_mentee(client, headers, type_id, title="Summer urology research"):
    r = client.post(
        "/api/mentee-opportunities",
        json={
            "title": title,
            "description": "Ten weeks in a clinical outcomes lab.",
            "opportunityTypeId": type_id,
            "location": "Boston, MA",
        },
        headers=headers,
    )
    assert r.status_code == 201
    return r.json()["opportunity"]


def test_mentee_submission_starts_pending(client, make_session):
    _, mh = make_session("MENTEE")
    t = _research_type()

    opp = _submit_as_mentee(client, mh, t["id"])
    assert opp["status"] == OpportunityStatus.PENDING.value
    assert opp["creatorRole"] == "MENTEE"
    assert opp["location"] == "Boston, MA"
    assert opp["opportunityType"]["name"] == "Research"

    mine = client.get("/api/mentee-opportunities", headers=mh).json()["opportunities"]
    assert [o["id"] for o in mine] == [opp["id"]]


def test_mentors_cannot_use_mentee_submissions(client, make_session):
    _, h = make_session("MENTOR")
    r = client.get("/api/mentee-opportunities", headers=h)
    assert r.status_code == 403
    assert r.json()["error"] == "Only mentees can manage opportunity submissions"


def test_non_admin_cannot_moderate(client, make_session):
    _, mh = make_session("MENTEE")
    opp = _submit_as_mentee(client, mh, _research_type()["id"])

    r = client.post(f"/api/admin/mentee-opportunities/{opp['id']}/approve", json={}, headers=mh)
    assert r.status_code == 403
    assert r.json()["error"] == "Admin access required"
    assert opportunities_repo.get_opportunity(opp["id"])["status"] == OpportunityStatus.PENDING.value


def test_mentor_post_approval_is_one_shot(client, make_session, outbox):
    mentor, h = make_session("MENTOR")
    _, mh = make_session("MENTEE")
    _, ah = make_session("ADMIN")
    t = _research_type()

    r = client.post(
        "/api/opportunities",
        json={"title": "Robotics shadowing", "description": "Shadow in the OR.", "opportunityTypeId": t["id"]},
        headers=h,
    )
    assert r.status_code == 201
    opp = r.json()["opportunity"]
    assert opp["status"] == OpportunityStatus.PENDING.value

    # Not visible to mentees until approved.
    assert client.get(f"/api/opportunities/{opp['id']}", headers=mh).status_code == 404

    r = client.post(f"/api/admin/opportunities/{opp['id']}/approve", json={"adminNotes": "Looks good"}, headers=ah)
    assert r.status_code == 200
    assert r.json()["opportunity"]["status"] == OpportunityStatus.APPROVED.value
    assert any(m["to_email"] == mentor["email"] for m in outbox)

    again = client.post(f"/api/admin/opportunities/{opp['id']}/approve", json={}, headers=ah)
    assert again.status_code == 400
    assert again.json()["error"] == "Opportunity is not in pending status"
    reject = client.post(f"/api/admin/opportunities/{opp['id']}/reject", json={}, headers=ah)
    assert reject.status_code == 400

    board = client.get("/api/opportunities", headers=mh).json()["opportunities"]
    assert [o["id"] for o in board] == [opp["id"]]
    actions = [a["action"] for a in audit_logs_repo.list_audit_logs()]
    assert actions.count("OPPORTUNITY_APPROVED") == 1


def test_mentee_cannot_post_regular_opportunity(client, make_session):
    _, mh = make_session("MENTEE")
    r = client.post(
        "/api/opportunities",
        json={"title": "x", "description": "y", "opportunityTypeId": _research_type()["id"]},
        headers=mh,
    )
    assert r.status_code == 403
    assert r.json()["error"] == "Only mentors can post opportunities"


def test_reject_submission_requires_notes(client, make_session):
    _, mh = make_session("MENTEE")
    _, ah = make_session("ADMIN")
    opp = _submit_as_mentee(client, mh, _research_type()["id"])

    r = client.post(f"/api/admin/mentee-opportunities/{opp['id']}/reject", json={}, headers=ah)
    assert r.status_code == 400
    assert r.json()["error"] == "Admin notes are required for rejection"

    r = client.post(
        f"/api/admin/mentee-opportunities/{opp['id']}/reject",
        json={"adminNotes": "Duplicate listing"},
        headers=ah,
    )
    assert r.status_code == 200
    assert r.json()["opportunity"]["status"] == OpportunityStatus.REJECTED.value
    assert r.json()["opportunity"]["adminFeedback"] == "Duplicate listing"

    edit = client.put(
        f"/api/mentee-opportunities/{opp['id']}",
        json={"title": "New title", "description": "New description"},
        headers=mh,
    )
    assert edit.status_code == 400
    assert edit.json()["error"] == "Only pending submissions can be edited"


def test_convert_submission_creates_admin_owned_clone(client, make_session):
    admin, ah = make_session("ADMIN")
    _, mh = make_session("MENTEE")
    opp = _submit_as_mentee(client, mh, _research_type()["id"])

    r = client.post(
        f"/api/admin/mentee-opportunities/{opp['id']}/approve",
        json={"convertToRegular": True, "adminNotes": "Promoted to the board"},
        headers=ah,
    )
    assert r.status_code == 200
    body = r.json()
    clone = body["convertedOpportunity"]
    assert body["opportunity"]["status"] == OpportunityStatus.CONVERTED.value
    assert body["opportunity"]["convertedToId"] == clone["id"]
    assert clone["status"] == OpportunityStatus.APPROVED.value
    assert clone["convertedFromId"] == opp["id"]
    assert clone["creatorId"] == admin["id"]
    assert clone["title"] == opp["title"]
    assert clone["location"] == "Boston, MA"

    again = client.post(
        f"/api/admin/mentee-opportunities/{opp['id']}/approve", json={"convertToRegular": True}, headers=ah
    )
    assert again.status_code == 400
    clones = [o for o in opportunities_repo.list_opportunities() if o.get("convertedFromId") == opp["id"]]
    assert len(clones) == 1


def test_convert_without_fallback_admin_fails_and_leaves_submission(client, make_session, monkeypatch):
    _, ah = make_session("ADMIN")
    _, mh = make_session("MENTEE")
    opp = _submit_as_mentee(client, mh, _research_type()["id"])
    monkeypatch.setattr(users_repo, "find_fallback_admin", lambda: None)

    r = client.post(
        f"/api/admin/mentee-opportunities/{opp['id']}/approve",
        json={"convertToRegular": True},
        headers=ah,
    )
    assert r.status_code == 500
    assert opportunities_repo.get_opportunity(opp["id"])["status"] == OpportunityStatus.PENDING.value


def test_admin_lists_reject_unknown_filters(client, make_session):
    _, ah = make_session("ADMIN")
    _, mh = make_session("MENTEE")
    opp = _submit_as_mentee(client, mh, _research_type()["id"])

    for path in ("/api/admin/opportunities", "/api/admin/mentee-opportunities"):
        r = client.get(f"{path}?status=bogus", headers=ah)
        assert r.status_code == 400
        assert r.json()["error"] == "Invalid status"

        everything = client.get(f"{path}?status=all", headers=ah)
        assert everything.status_code == 200
        assert [o["id"] for o in everything.json()["opportunities"]] == [opp["id"]]

        pending = client.get(f"{path}?status=pending", headers=ah)
        assert [o["id"] for o in pending.json()["opportunities"]] == [opp["id"]]
        assert client.get(f"{path}?status=APPROVED", headers=ah).json()["opportunities"] == []

    r = client.get("/api/admin/opportunities?creatorRole=bogus", headers=ah)
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid role"
