from __future__ import annotations

import pytest

from urocareerz.repositories import profiles_repo
from urocareerz.routers.mentors import fuzzy_match, in_experience_band, levenshtein


def test_levenshtein_distance():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("urology", "urology") == 0


@pytest.mark.parametrize(
    "query,text,expected",
    [
        ("boston", "Lives in Boston, MA", True),
        ("urolgy", "urology", True),
        ("oncology", "pediatrics", False),
        ("", "anything", False),
    ],
)
def test_fuzzy_match(query, text, expected):
    assert fuzzy_match(query, text) is expected


def test_experience_bands_are_inclusive():
    assert in_experience_band("student", 0)
    assert in_experience_band("student", 2)
    assert not in_experience_band("student", 3)
    assert in_experience_band("Attending", 25)
    assert in_experience_band("unknown-level", 99)


def test_search_filters_then_paginates(client, make_session):
    _, h = make_session("MENTOR")
    for i, city in enumerate(["Boston", "Boston", "Denver"]):
        mentee, _ = make_session("MENTEE", first_name=f"Mentee{i}")
        profiles_repo.create_profile(
            mentee["id"],
            role="MENTEE",
            fields={"location": f"{city}, USA", "interests": ["endourology"] if i == 0 else ["oncology"]},
        )

    r = client.get("/api/mentees/search?location=boston&limit=1", headers=h)
    assert r.status_code == 200
    body = r.json()
    assert len(body["mentees"]) == 1
    assert body["pagination"] == {
        "page": 1,
        "limit": 1,
        "total": 2,
        "totalPages": 2,
        "hasNext": True,
        "hasPrev": False,
    }

    r = client.get("/api/mentees/search?interests=endo", headers=h)
    assert [m["firstName"] for m in r.json()["mentees"]] == ["Mentee0"]


def test_search_is_mentor_only(client, make_session):
    _, h = make_session("MENTEE")
    r = client.get("/api/mentees/search", headers=h)
    assert r.status_code == 403
    assert r.json()["error"] == "Only mentors can search mentees"


def test_mentor_message_replies_to_mentor(client, make_session, outbox):
    mentor, h = make_session("MENTOR", first_name="Grace")
    r = client.post(
        "/api/messages/send",
        json={
            "menteeEmail": "student@example.com",
            "menteeName": "Sam",
            "subject": "Research opening",
            "message": "We have a spot in the lab this summer.",
        },
        headers=h,
    )
    assert r.status_code == 200
    assert r.json()["success"] is True
    sent = outbox[-1]
    assert sent["to_email"] == "student@example.com"
    assert sent["reply_to"] == mentor["email"]
    assert "We have a spot in the lab this summer." in sent["text"]


def test_mentor_message_validates_fields(client, make_session):
    _, h = make_session("MENTOR")
    r = client.post("/api/messages/send", json={"menteeEmail": "student@example.com"}, headers=h)
    assert r.status_code == 400
    assert r.json()["error"] == "All fields are required"
