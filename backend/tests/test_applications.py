from __future__ import annotations

from urocareerz.modules.moderation import ApplicationStatus, OpportunityStatus
from urocareerz.repositories import opportunities_repo, opportunity_types_repo


def _approved(mentor_id: str, title: str = "Research elective") -> dict:
    t = opportunity_types_repo.create_type(name=f"Type {title}")
    return opportunities_repo.create_opportunity(
        title=title,
        description="Four-week elective.",
        opportunity_type_id=t["id"],
        creator_id=mentor_id,
        creator_role="MENTOR",
        status=OpportunityStatus.APPROVED,
    )


def test_one_application_per_mentee(client, table, make_session, outbox):
    mentor, _ = make_session("MENTOR")
    mentee, mh = make_session("MENTEE")
    opp = _approved(mentor["id"])

    r = client.post("/api/applications", json={"opportunityId": opp["id"], "coverLetter": "Keen!"}, headers=mh)
    assert r.status_code == 201
    assert r.json()["application"]["status"] == ApplicationStatus.PENDING.value
    assert {m["to_email"] for m in outbox} == {mentor["email"], mentee["email"]}

    dup = client.post("/api/applications", json={"opportunityId": opp["id"]}, headers=mh)
    assert dup.status_code == 400
    assert dup.json()["error"] == "Already applied to this opportunity"
    assert len([k for k in table.items if k[1] == "APPLICATION"]) == 1


def test_cannot_apply_to_pending_opportunity(client, make_session):
    mentor, _ = make_session("MENTOR")
    _, mh = make_session("MENTEE")
    t = opportunity_types_repo.create_type(name="Shadowing")
    opp = opportunities_repo.create_opportunity(
        title="Not yet reviewed",
        description="Pending.",
        opportunity_type_id=t["id"],
        creator_id=mentor["id"],
        creator_role="MENTOR",
    )
    r = client.post("/api/applications", json={"opportunityId": opp["id"]}, headers=mh)
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot apply to unapproved opportunity"


def test_mentor_reviews_once_and_mentee_cannot_withdraw_after(client, make_session):
    mentor, h = make_session("MENTOR")
    _, other_mentor = make_session("MENTOR")
    _, mh = make_session("MENTEE")
    opp = _approved(mentor["id"])
    app_id = client.post("/api/applications", json={"opportunityId": opp["id"]}, headers=mh).json()["application"]["id"]

    mine = client.get("/api/applications/mentor", headers=h).json()["applications"]
    assert [a["id"] for a in mine] == [app_id]
    assert mine[0]["opportunity"]["title"] == "Research elective"

    foreign = client.patch(f"/api/applications/{app_id}/status", json={"status": "ACCEPTED"}, headers=other_mentor)
    assert foreign.status_code == 403

    bad = client.patch(f"/api/applications/{app_id}/status", json={"status": "WITHDRAWN"}, headers=h)
    assert bad.status_code == 400

    ok = client.patch(f"/api/applications/{app_id}/status", json={"status": "accepted"}, headers=h)
    assert ok.status_code == 200
    assert ok.json()["application"]["status"] == ApplicationStatus.ACCEPTED.value

    again = client.patch(f"/api/applications/{app_id}/status", json={"status": "REJECTED"}, headers=h)
    assert again.status_code == 400
    assert again.json()["error"] == "Application has already been reviewed"

    w = client.post(f"/api/applications/{app_id}/withdraw", headers=mh)
    assert w.status_code == 400
    assert w.json()["error"] == "Only pending applications can be withdrawn"


def test_mentee_withdraws_pending_application(client, make_session):
    mentor, _ = make_session("MENTOR")
    _, mh = make_session("MENTEE")
    _, other = make_session("MENTEE")
    opp = _approved(mentor["id"])
    app_id = client.post("/api/applications", json={"opportunityId": opp["id"]}, headers=mh).json()["application"]["id"]

    assert client.post(f"/api/applications/{app_id}/withdraw", headers=other).status_code == 403
    r = client.post(f"/api/applications/{app_id}/withdraw", headers=mh)
    assert r.status_code == 200
    assert r.json()["application"]["status"] == ApplicationStatus.WITHDRAWN.value

    listing = client.get("/api/applications?status=withdrawn", headers=mh).json()
    assert [a["id"] for a in listing["applications"]] == [app_id]
    assert listing["pagination"]["total"] == 1
