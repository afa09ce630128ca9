from __future__ import annotations

import copy
import sys
from pathlib import Path
from typing import Any, Iterable, Mapping

import pytest

# Ensure `backend/` is on sys.path so `import urocareerz.*` works in tests.
BACKEND_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_DIR))

from fastapi.testclient import TestClient  # noqa: E402

from urocareerz.auth.session_tokens import issue_session_token  # noqa: E402
from urocareerz.db.dynamodb.errors import DdbConflict  # noqa: E402
from urocareerz.db.dynamodb.table import Page  # noqa: E402
from urocareerz.main import create_app  # noqa: E402
from urocareerz.modules.moderation import UserStatus  # noqa: E402
from urocareerz.repositories import (  # noqa: E402
    applications_repo,
    audit_logs_repo,
    discussions_repo,
    opportunities_repo,
    opportunity_types_repo,
    profiles_repo,
    saved_opportunities_repo,
    users_repo,
)
from urocareerz.services import notifications  # noqa: E402

REPO_MODULES = (
    applications_repo,
    audit_logs_repo,
    discussions_repo,
    opportunities_repo,
    opportunity_types_repo,
    profiles_repo,
    saved_opportunities_repo,
    users_repo,
)


def _matches(cond: Any, item: Mapping[str, Any]) -> bool:
    expr = cond.get_expression()
    op = expr["operator"]
    vals = expr["values"]
    if op == "AND":
        return _matches(vals[0], item) and _matches(vals[1], item)
    v = item.get(vals[0].name)
    if v is None:
        return False
    if op == "=":
        return v == vals[1]
    if op == "begins_with":
        return str(v).startswith(vals[1])
    if op == "BETWEEN":
        return vals[1] <= v <= vals[2]
    if op == ">=":
        return v >= vals[1]
    if op == "<=":
        return v <= vals[1]
    raise NotImplementedError(op)


class MemoryTable:
    """In-memory stand-in for DynamoTable with the same conditional semantics."""

    table_name = "test-table"

    def __init__(self) -> None:
        self.items: dict[tuple[str, str], dict[str, Any]] = {}

    @staticmethod
    def _k(key: Mapping[str, Any]) -> tuple[str, str]:
        return str(key["pk"]), str(key["sk"])

    def records(self, sk: str) -> list[dict[str, Any]]:
        return [it for (_, s), it in self.items.items() if s == sk]

    def _passes(
        self,
        current: dict[str, Any] | None,
        *,
        must_exist: bool = False,
        must_not_exist: bool = False,
        expect: Mapping[str, Any] | None = None,
        absent: Iterable[str] = (),
    ) -> bool:
        if must_exist and current is None:
            return False
        if must_not_exist and current is not None:
            return False
        cur = current or {}
        if any(cur.get(k) != v for k, v in (expect or {}).items()):
            return False
        return not any(k in cur for k in absent)

    @staticmethod
    def _apply(
        current: dict[str, Any],
        set_fields: Mapping[str, Any] | None,
        remove_fields: Iterable[str],
        add_fields: Mapping[str, Any] | None,
    ) -> dict[str, Any]:
        out = dict(current)
        for k, v in (set_fields or {}).items():
            if v is None:
                out.pop(k, None)
            else:
                out[k] = copy.deepcopy(v)
        for k in remove_fields:
            out.pop(k, None)
        for k, delta in (add_fields or {}).items():
            out[k] = int(out.get(k) or 0) + int(delta)
        return out

    def get_item(self, *, key: dict[str, Any]) -> dict[str, Any] | None:
        item = self.items.get(self._k(key))
        return copy.deepcopy(item) if item is not None else None

    def put_item(self, *, item: dict[str, Any], condition: Any = None) -> None:
        if condition is not None and "attribute_not_exists(pk)" in condition.text and self._k(item) in self.items:
            raise DdbConflict(message="Conditional check failed", operation="PutItem")
        self.items[self._k(item)] = copy.deepcopy(item)

    def put_new(self, *, item: dict[str, Any]) -> None:
        if self._k(item) in self.items:
            raise DdbConflict(message="Conditional check failed", operation="PutItem")
        self.put_item(item=item)

    def delete_item(self, *, key: dict[str, Any]) -> None:
        self.items.pop(self._k(key), None)

    def update_fields(
        self,
        *,
        key: dict[str, Any],
        set_fields: Mapping[str, Any] | None = None,
        remove_fields: Iterable[str] = (),
        add_fields: Mapping[str, Any] | None = None,
        expect: Mapping[str, Any] | None = None,
        absent: Iterable[str] = (),
        must_exist: bool = True,
    ) -> dict[str, Any] | None:
        k = self._k(key)
        current = self.items.get(k)
        if not self._passes(current, must_exist=must_exist, expect=expect, absent=absent):
            raise DdbConflict(message="Conditional check failed", operation="UpdateItem")
        new = self._apply(current or dict(key), set_fields, remove_fields, add_fields)
        self.items[k] = new
        return copy.deepcopy(new)

    def query_page(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        limit: int = 100,
        scan_index_forward: bool = False,
        next_token: str | None = None,
    ) -> Page:
        sort_attr = "gsi1sk" if index_name else "sk"
        hits = [copy.deepcopy(it) for it in self.items.values() if _matches(key_condition_expression, it)]
        hits.sort(key=lambda it: str(it.get(sort_attr) or ""), reverse=not scan_index_forward)
        return Page(items=hits, next_token=None)

    def query_all(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        scan_index_forward: bool = False,
        max_items: int = 5000,
    ) -> list[dict[str, Any]]:
        pg = self.query_page(
            key_condition_expression=key_condition_expression,
            index_name=index_name,
            scan_index_forward=scan_index_forward,
        )
        return pg.items[:max_items]

    def tx_put(self, *, item: dict[str, Any], must_not_exist: bool = False) -> dict[str, Any]:
        return {"op": "put", "item": copy.deepcopy(item), "must_not_exist": must_not_exist}

    def tx_update(
        self,
        *,
        key: dict[str, Any],
        set_fields: Mapping[str, Any] | None = None,
        add_fields: Mapping[str, Any] | None = None,
        expect: Mapping[str, Any] | None = None,
        absent: Iterable[str] = (),
        must_exist: bool = True,
    ) -> dict[str, Any]:
        return {
            "op": "update",
            "key": dict(key),
            "set_fields": dict(set_fields or {}),
            "add_fields": dict(add_fields or {}),
            "expect": dict(expect or {}),
            "absent": tuple(absent),
            "must_exist": must_exist,
        }

    def tx_delete(self, *, key: dict[str, Any]) -> dict[str, Any]:
        return {"op": "delete", "key": dict(key)}

    def _entry_ok(self, entry: dict[str, Any]) -> bool:
        if entry["op"] == "put":
            return self._passes(self.items.get(self._k(entry["item"])), must_not_exist=entry["must_not_exist"])
        if entry["op"] == "update":
            return self._passes(
                self.items.get(self._k(entry["key"])),
                must_exist=entry["must_exist"],
                expect=entry["expect"],
                absent=entry["absent"],
            )
        return True

    def transact_write(
        self,
        *,
        puts: Iterable[dict[str, Any]] = (),
        updates: Iterable[dict[str, Any]] = (),
        deletes: Iterable[dict[str, Any]] = (),
        retry_policy: Any = None,
    ) -> None:
        entries = [*puts, *updates, *deletes]
        reasons = ["None" if self._entry_ok(e) else "ConditionalCheckFailed" for e in entries]
        if "ConditionalCheckFailed" in reasons:
            raise DdbConflict(
                message="Transaction condition failed",
                operation="TransactWriteItems",
                table_name=self.table_name,
                reasons=reasons,
            )
        for e in entries:
            if e["op"] == "put":
                self.items[self._k(e["item"])] = e["item"]
            elif e["op"] == "update":
                k = self._k(e["key"])
                self.items[k] = self._apply(self.items.get(k) or dict(e["key"]), e["set_fields"], (), e["add_fields"])
            else:
                self.items.pop(self._k(e["key"]), None)


@pytest.fixture
def table(monkeypatch):
    t = MemoryTable()
    for mod in REPO_MODULES:
        monkeypatch.setattr(mod, "get_main_table", lambda: t)
    opportunity_types_repo.invalidate_cache()
    yield t
    opportunity_types_repo.invalidate_cache()


@pytest.fixture
def outbox(monkeypatch):
    sent: list[dict[str, Any]] = []

    def _fake_send(**kwargs):
        sent.append(kwargs)
        return {"ok": True, "messageId": f"msg-{len(sent)}"}

    monkeypatch.setattr(notifications, "send_email", _fake_send)
    return sent


@pytest.fixture
def client(table, outbox):
    return TestClient(create_app())


def make_user(
    *,
    role: str,
    email: str,
    status: UserStatus = UserStatus.ACTIVE,
    first_name: str | None = None,
):
    user = users_repo.create_user(email=email, role=role, first_name=first_name or role.title(), last_name="Tester")
    if status is not UserStatus.PENDING:
        users_repo.set_user_status(user["userId"], status)
    return users_repo.get_user(user["userId"], include_deleted=True)


def auth_headers(user: dict[str, Any]) -> dict[str, str]:
    tok = issue_session_token(user)
    return {"Authorization": f"Bearer {tok}"}


@pytest.fixture
def make_session(table):
    """Create a stored user and return (user, auth headers)."""
    counter = {"n": 0}

    def _make(role: str, *, status: UserStatus = UserStatus.ACTIVE, first_name: str | None = None):
        counter["n"] += 1
        user = make_user(
            role=role,
            email=f"{role.lower()}{counter['n']}@example.com",
            status=status,
            first_name=first_name or role.title(),
        )
        return user, auth_headers(user)

    return _make
