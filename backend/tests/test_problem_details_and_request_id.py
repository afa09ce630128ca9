from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from urocareerz.db.dynamodb.errors import DdbConflict
from urocareerz.main import create_app

PROBLEM = "application/problem+json"


def test_request_id_is_generated_or_echoed(client):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "running"
    assert r.headers["X-Request-Id"]

    echoed = client.get("/", headers={"X-Request-Id": "abc-123"})
    assert echoed.headers.get("X-Request-Id") == "abc-123"


def test_malformed_register_body_is_validation_problem(client):
    r = client.post("/api/register", json=["not", "an", "object"])
    assert r.status_code == 422
    assert r.headers["content-type"].startswith(PROBLEM)
    body = r.json()
    assert body["title"] == "Validation Failed"
    assert body["error"] == "Request validation failed"
    assert isinstance(body["errors"], list) and body["errors"]
    assert body["requestId"] == r.headers["X-Request-Id"]


def test_unknown_route_is_problem_json(client):
    r = client.get("/does-not-exist")
    assert r.status_code == 404
    assert r.headers["content-type"].startswith(PROBLEM)
    assert r.json()["error"] == "Route not found"


@pytest.mark.parametrize(
    ("headers", "message"),
    [
        ({}, "Authentication required"),
        ({"Authorization": "Bearer not-a-jwt"}, "Invalid or expired token"),
    ],
)
def test_session_is_required_for_api(client, headers, message):
    r = client.get("/api/user", headers=headers)
    assert r.status_code == 401
    assert r.headers["content-type"].startswith(PROBLEM)
    assert r.json()["error"] == message
    assert r.json()["title"] == "Unauthorized"


def test_non_admin_is_kept_out_of_admin_routes(client, make_session):
    _, h = make_session("MENTOR")
    r = client.get("/api/admin/users", headers=h)
    assert r.status_code == 403
    assert r.json()["error"] == "Admin access required"


def test_storage_and_unhandled_errors_are_problem_json(table):
    app = create_app()

    def lost_race():
        raise DdbConflict(message="Already reviewed", operation="UpdateItem", reasons=["None", "ConditionalCheckFailed"])

    def crash():
        raise RuntimeError("kaboom")

    app.add_api_route("/internal/conflict", lost_race)
    app.add_api_route("/internal/crash", crash)
    client = TestClient(app, raise_server_exceptions=False)

    r = client.get("/internal/conflict")
    assert r.status_code == 409
    body = r.json()
    assert body["title"] == "Conflict"
    assert body["error"] == "Already reviewed"
    assert body["extensions"]["failedItems"] == [1]

    boom = client.get("/internal/crash")
    assert boom.status_code == 500
    assert boom.json()["title"] == "Internal Server Error"
