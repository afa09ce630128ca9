from __future__ import annotations

import pytest

from urocareerz.db.dynamodb.errors import DdbConflict
from urocareerz.modules.moderation import OpportunityStatus
from urocareerz.repositories import discussions_repo, opportunities_repo, opportunity_types_repo


def _approved_opportunity(mentor_id: str) -> dict:
    t = opportunity_types_repo.create_type(name="Observership")
    return opportunities_repo.create_opportunity(
        title="Clinic observership",
        description="Two weeks in outpatient clinic.",
        opportunity_type_id=t["id"],
        creator_id=mentor_id,
        creator_role="MENTOR",
        status=OpportunityStatus.APPROVED,
    )


def _thread(client, headers, title="Match interview tips") -> dict:
    r = client.post(
        "/api/discussions",
        json={"title": title, "content": "What did your programs ask about?", "category": "CAREER_ADVICE"},
        headers=headers,
    )
    assert r.status_code == 201
    return r.json()["discussion"]


def test_saving_twice_is_a_conflict(client, table, make_session):
    mentor, _ = make_session("MENTOR")
    _, mh = make_session("MENTEE")
    opp = _approved_opportunity(mentor["id"])

    first = client.post("/api/saved-opportunities", json={"opportunityId": opp["id"]}, headers=mh)
    assert first.status_code == 201
    second = client.post("/api/saved-opportunities", json={"opportunityId": opp["id"]}, headers=mh)
    assert second.status_code == 409
    assert second.json()["error"] == "Opportunity already saved"
    assert len([k for k in table.items if k[1].startswith("SAVED#")]) == 1

    saved = client.get("/api/saved-opportunities", headers=mh).json()["savedOpportunities"]
    assert [s["opportunity"]["id"] for s in saved] == [opp["id"]]

    assert client.delete(f"/api/saved-opportunities?opportunityId={opp['id']}", headers=mh).status_code == 200
    gone = client.delete(f"/api/saved-opportunities?opportunityId={opp['id']}", headers=mh)
    assert gone.status_code == 404
    assert gone.json()["error"] == "Saved opportunity not found"


def test_cannot_save_unapproved_opportunity(client, make_session):
    mentor, _ = make_session("MENTOR")
    _, mh = make_session("MENTEE")
    t = opportunity_types_repo.create_type(name="Fellowship")
    opp = opportunities_repo.create_opportunity(
        title="Pending fellowship",
        description="Awaiting review.",
        opportunity_type_id=t["id"],
        creator_id=mentor["id"],
        creator_role="MENTOR",
    )
    r = client.post("/api/saved-opportunities", json={"opportunityId": opp["id"]}, headers=mh)
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot save unapproved opportunity"


def test_saved_list_is_mentee_only(client, make_session):
    _, h = make_session("MENTOR")
    r = client.get("/api/saved-opportunities", headers=h)
    assert r.status_code == 403
    assert r.json()["error"] == "Access denied"


def test_thread_view_counts_once_per_user(client, make_session):
    _, h1 = make_session("MENTEE")
    _, h2 = make_session("MENTOR")
    thread = _thread(client, h1)

    r = client.post(f"/api/discussions/{thread['id']}/view", headers=h1)
    assert r.json() == {
        "success": True,
        "viewCount": 1,
        "alreadyViewed": False,
        "message": "View tracked successfully",
    }
    r = client.post(f"/api/discussions/{thread['id']}/view", headers=h1)
    assert r.json()["viewCount"] == 1
    assert r.json()["alreadyViewed"] is True

    r = client.post(f"/api/discussions/{thread['id']}/view", headers=h2)
    assert r.json()["viewCount"] == 2
    assert r.json()["alreadyViewed"] is False


def test_view_conflict_without_reasons_is_not_a_repeat_view(table, make_session, monkeypatch):
    author, _ = make_session("MENTEE")
    thread = discussions_repo.create_thread(
        author_id=author["id"],
        title="Away rotations",
        content="How many away rotations did you do?",
        category="GENERAL",
        tags=[],
    )

    assert discussions_repo.record_view(thread_id=thread["id"], user_id=author["id"]) is True
    assert discussions_repo.record_view(thread_id=thread["id"], user_id=author["id"]) is False

    def cancelled(**_kwargs):
        raise DdbConflict(message="Transaction cancelled", operation="TransactWriteItems", reasons=None)

    monkeypatch.setattr(table, "transact_write", cancelled)
    with pytest.raises(DdbConflict):
        discussions_repo.record_view(thread_id=thread["id"], user_id=author["id"])
    assert discussions_repo.get_thread(thread["id"])["viewCount"] == 1


def test_comments_only_on_active_threads(client, make_session):
    author, h = make_session("MENTEE")
    _, other = make_session("MENTEE")
    thread = _thread(client, h)

    r = client.post(f"/api/discussions/{thread['id']}/comments", json={"content": "Following!"}, headers=other)
    assert r.status_code == 201
    assert r.json()["comment"]["author"]["id"] != author["id"]
    assert discussions_repo.get_thread(thread["id"])["commentCount"] == 1

    denied = client.patch(f"/api/discussions/{thread['id']}/status", json={"status": "CLOSED"}, headers=other)
    assert denied.status_code == 403
    closed = client.patch(f"/api/discussions/{thread['id']}/status", json={"status": "closed"}, headers=h)
    assert closed.status_code == 200
    assert closed.json()["discussion"]["status"] == "CLOSED"

    r = client.post(f"/api/discussions/{thread['id']}/comments", json={"content": "Too late"}, headers=other)
    assert r.status_code == 400
    assert r.json()["error"] == "Cannot comment on closed or archived threads"
    assert discussions_repo.get_thread(thread["id"])["commentCount"] == 1
    assert len(discussions_repo.list_comments(thread["id"])) == 1


def test_comment_write_is_guarded_against_concurrent_close(table, make_session):
    author, _ = make_session("MENTEE")
    thread = discussions_repo.create_thread(
        author_id=author["id"],
        title="Research year?",
        content="Is a dedicated research year worth it?",
        category="GENERAL",
        tags=[],
    )
    # Closed after the router's read but before the transaction.
    table.update_fields(key=discussions_repo.thread_key(thread["id"]), set_fields={"status": "CLOSED"})

    with pytest.raises(DdbConflict) as exc:
        discussions_repo.add_comment(thread_id=thread["id"], author_id=author["id"], content="hi")
    assert exc.value.failed_item_indexes() == [1]
    assert discussions_repo.list_comments(thread["id"]) == []


def test_thread_validation(client, make_session):
    _, h = make_session("MENTEE")
    r = client.post("/api/discussions", json={"title": "Hey", "content": "Long enough content"}, headers=h)
    assert r.status_code == 400
    assert r.json()["error"] == "Title must be between 5 and 200 characters"
    r = client.post(
        "/api/discussions",
        json={"title": "Valid title", "content": "Long enough content", "category": "MEMES"},
        headers=h,
    )
    assert r.json()["error"] == "Invalid category"
