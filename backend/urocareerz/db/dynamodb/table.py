from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from boto3.dynamodb.types import TypeSerializer

from .client import dynamodb_client, table_resource
from .errors import DdbInternal
from .pagination import decode_next_token, encode_next_token
from .retry import TRANSACTION_POLICY, RetryPolicy, ddb_call

GSI1 = "GSI1"

_serializer = TypeSerializer()


def _serialize_item(item: Mapping[str, Any]) -> dict[str, Any]:
    # The low-level client (transactions) expects AttributeValue shape: {'S': '...'}.
    return {k: _serializer.serialize(v) for k, v in item.items()}


@dataclass(slots=True)
class Page:
    items: list[dict[str, Any]]
    next_token: str | None


@dataclass(slots=True)
class Expression:
    """A rendered update/condition expression with its placeholder maps."""

    text: str = ""
    names: dict[str, str] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)


def build_update(
    *,
    set_fields: Mapping[str, Any] | None = None,
    remove_fields: Iterable[str] = (),
    add_fields: Mapping[str, Any] | None = None,
) -> Expression:
    """
    SET/REMOVE/ADD expression over plain attribute names.

    A None value in `set_fields` is rendered as a REMOVE so sparse attributes
    (deletedAt, otpSecret) disappear instead of being stored as NULL.
    """
    out = Expression()
    to_set = {k: v for k, v in (set_fields or {}).items() if v is not None}
    to_remove = [k for k, v in (set_fields or {}).items() if v is None] + list(remove_fields)

    clauses: list[str] = []
    if to_set:
        parts = []
        for i, (name, value) in enumerate(to_set.items()):
            out.names[f"#s{i}"] = name
            out.values[f":s{i}"] = value
            parts.append(f"#s{i} = :s{i}")
        clauses.append("SET " + ", ".join(parts))
    if to_remove:
        parts = []
        for i, name in enumerate(dict.fromkeys(to_remove)):
            out.names[f"#r{i}"] = name
            parts.append(f"#r{i}")
        clauses.append("REMOVE " + ", ".join(parts))
    if add_fields:
        parts = []
        for i, (name, delta) in enumerate(add_fields.items()):
            out.names[f"#a{i}"] = name
            out.values[f":a{i}"] = delta
            parts.append(f"#a{i} :a{i}")
        clauses.append("ADD " + ", ".join(parts))

    out.text = " ".join(clauses)
    return out


def build_condition(
    *,
    must_exist: bool = False,
    must_not_exist: bool = False,
    expect: Mapping[str, Any] | None = None,
    absent: Iterable[str] = (),
) -> Expression:
    """
    Conjunction of existence / equality guards.

    `expect={"status": "PENDING"}` renders `#c0 = :c0`; `absent=["deletedAt"]`
    renders `attribute_not_exists(#c1)`.
    """
    out = Expression()
    parts: list[str] = []
    if must_exist:
        parts.append("attribute_exists(pk)")
    if must_not_exist:
        parts.append("attribute_not_exists(pk)")
    i = 0
    for name, value in (expect or {}).items():
        out.names[f"#c{i}"] = name
        out.values[f":c{i}"] = value
        parts.append(f"#c{i} = :c{i}")
        i += 1
    for name in absent:
        out.names[f"#c{i}"] = name
        parts.append(f"attribute_not_exists(#c{i})")
        i += 1
    out.text = " AND ".join(parts)
    return out


class DynamoTable:
    def __init__(self, *, table_name: str):
        self.table_name = str(table_name)
        self._table = table_resource(self.table_name)
        self._client = dynamodb_client()

    # --- single item ---

    def get_item(self, *, key: dict[str, Any]) -> dict[str, Any] | None:
        def _op():
            return self._table.get_item(Key=key).get("Item")

        return ddb_call("GetItem", _op, table_name=self.table_name, key=key)

    def put_item(self, *, item: dict[str, Any], condition: Expression | None = None) -> None:
        def _op():
            kwargs: dict[str, Any] = {"Item": item}
            if condition and condition.text:
                kwargs["ConditionExpression"] = condition.text
                if condition.names:
                    kwargs["ExpressionAttributeNames"] = condition.names
                if condition.values:
                    kwargs["ExpressionAttributeValues"] = condition.values
            return self._table.put_item(**kwargs)

        ddb_call("PutItem", _op, table_name=self.table_name)

    def put_new(self, *, item: dict[str, Any]) -> None:
        """Create-only put; raises DdbConflict when the key is taken."""
        self.put_item(item=item, condition=build_condition(must_not_exist=True))

    def delete_item(self, *, key: dict[str, Any]) -> None:
        ddb_call("DeleteItem", lambda: self._table.delete_item(Key=key), table_name=self.table_name, key=key)

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
        """
        Partial update returning the full new item.

        Guards (`must_exist`, `expect`, `absent`) make the write conditional; a
        failed guard raises DdbConflict.
        """
        update = build_update(set_fields=set_fields, remove_fields=remove_fields, add_fields=add_fields)
        cond = build_condition(must_exist=must_exist, expect=expect, absent=absent)

        def _op():
            kwargs: dict[str, Any] = {
                "Key": key,
                "UpdateExpression": update.text,
                "ExpressionAttributeNames": {**update.names, **cond.names},
                "ReturnValues": "ALL_NEW",
            }
            values = {**update.values, **cond.values}
            if values:
                kwargs["ExpressionAttributeValues"] = values
            if cond.text:
                kwargs["ConditionExpression"] = cond.text
            return self._table.update_item(**kwargs).get("Attributes")

        return ddb_call("UpdateItem", _op, table_name=self.table_name, key=key)

    # --- query/pagination ---

    def query_page(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        limit: int = 100,
        scan_index_forward: bool = False,
        next_token: str | None = None,
    ) -> Page:
        lim = max(1, min(500, int(limit or 100)))
        lek = decode_next_token(next_token) if next_token else None

        def _op():
            kwargs: dict[str, Any] = {
                "KeyConditionExpression": key_condition_expression,
                "ScanIndexForward": bool(scan_index_forward),
                "Limit": lim,
            }
            if index_name:
                kwargs["IndexName"] = index_name
            if lek:
                kwargs["ExclusiveStartKey"] = lek
            return self._table.query(**kwargs)

        resp = ddb_call("Query", _op, table_name=self.table_name)
        return Page(items=resp.get("Items") or [], next_token=encode_next_token(resp.get("LastEvaluatedKey")))

    def query_all(
        self,
        *,
        key_condition_expression: Any,
        index_name: str | None = None,
        scan_index_forward: bool = False,
        max_items: int = 5000,
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        tok: str | None = None
        while True:
            pg = self.query_page(
                key_condition_expression=key_condition_expression,
                index_name=index_name,
                scan_index_forward=scan_index_forward,
                limit=500,
                next_token=tok,
            )
            items.extend(pg.items)
            tok = pg.next_token
            if not tok or not pg.items or len(items) >= max_items:
                break
        return items[:max_items]

    # --- transactions ---

    def transact_write(
        self,
        *,
        puts: Iterable[dict[str, Any]] = (),
        updates: Iterable[dict[str, Any]] = (),
        deletes: Iterable[dict[str, Any]] = (),
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """
        All-or-nothing write. Entries come from tx_put/tx_update/tx_delete and are
        submitted puts first, then updates, then deletes; DdbConflict.reasons is
        indexed in that order.
        """
        items: list[dict[str, Any]] = []
        items.extend({"Put": p} for p in puts)
        items.extend({"Update": u} for u in updates)
        items.extend({"Delete": d} for d in deletes)
        if not items:
            return

        ddb_call(
            "TransactWriteItems",
            lambda: self._client.transact_write_items(TransactItems=items),
            table_name=self.table_name,
            retry_policy=retry_policy or TRANSACTION_POLICY,
        )

    def _with_condition(self, out: dict[str, Any], cond: Expression, names: dict[str, str], values: dict[str, Any]) -> dict[str, Any]:
        if cond.text:
            out["ConditionExpression"] = cond.text
        all_names = {**names, **cond.names}
        all_values = {**values, **cond.values}
        if all_names:
            out["ExpressionAttributeNames"] = all_names
        if all_values:
            out["ExpressionAttributeValues"] = _serialize_item(all_values)
        return out

    def tx_put(self, *, item: dict[str, Any], must_not_exist: bool = False) -> dict[str, Any]:
        out: dict[str, Any] = {"TableName": self.table_name, "Item": _serialize_item(item)}
        return self._with_condition(out, build_condition(must_not_exist=must_not_exist), {}, {})

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
        update = build_update(set_fields=set_fields, add_fields=add_fields)
        out: dict[str, Any] = {
            "TableName": self.table_name,
            "Key": _serialize_item(key),
            "UpdateExpression": update.text,
        }
        cond = build_condition(must_exist=must_exist, expect=expect, absent=absent)
        return self._with_condition(out, cond, update.names, update.values)

    def tx_delete(self, *, key: dict[str, Any]) -> dict[str, Any]:
        return {"TableName": self.table_name, "Key": _serialize_item(key)}


def get_main_table() -> DynamoTable:
    from ...settings import settings

    if not settings.ddb_table_name:
        raise DdbInternal(message="DDB_TABLE_NAME is not set", operation="Config")
    return DynamoTable(table_name=settings.ddb_table_name)
