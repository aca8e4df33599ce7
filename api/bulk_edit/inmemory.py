"""
In-memory entity store for tests and local development.

Rows live in plain dicts keyed by table name, using the same column names
as the Postgres schema. Predicates are evaluated in Python with the same
semantics the SQL renderer produces (case-insensitive strings, nulls never
match a comparison).
"""

from __future__ import annotations

import asyncio
import copy
from datetime import datetime, timezone
from typing import Any, Iterable

from . import registry
from .errors import PartialBulkUpdateFailure
from .filters import Clause, FilterLogic, FilterOperator, Predicate
from .registry import EntityKind, FieldType
from .store import Record, relation_option


def _matches(clause: Clause, row: dict[str, Any]) -> bool:
    value = row.get(clause.field)
    op = clause.operator

    if op is FilterOperator.IS_NULL:
        return value is None
    if op is FilterOperator.IS_NOT_NULL:
        return value is not None
    if value is None:
        return False

    if clause.type is FieldType.STRING:
        have = str(value).casefold()
        want = clause.value.casefold()
        if op is FilterOperator.EQUALS:
            return have == want
        if op is FilterOperator.NOT_EQUALS:
            return have != want
        if op is FilterOperator.CONTAINS:
            return want in have
        if op is FilterOperator.STARTS_WITH:
            return have.startswith(want)
        if op is FilterOperator.ENDS_WITH:
            return have.endswith(want)

    if clause.type in (FieldType.NUMBER, FieldType.DATE):
        have_cmp = float(value) if clause.type is FieldType.NUMBER else value
        want_cmp = float(clause.value) if clause.type is FieldType.NUMBER else clause.value
        if op is FilterOperator.EQUALS:
            return have_cmp == want_cmp
        if op is FilterOperator.NOT_EQUALS:
            return have_cmp != want_cmp
        if op is FilterOperator.GREATER_THAN:
            return have_cmp > want_cmp
        if op is FilterOperator.LESS_THAN:
            return have_cmp < want_cmp

    if clause.type is FieldType.BOOLEAN:
        return bool(value) is clause.value

    if op is FilterOperator.IN:
        return str(value) in clause.value
    if op is FilterOperator.NOT_EQUALS:
        return str(value) != clause.value
    if op is FilterOperator.EQUALS:
        return str(value) == clause.value
    raise ValueError(f"Unsupported clause {clause!r}")


def evaluate(predicate: Predicate, row: dict[str, Any]) -> bool:
    if predicate.is_empty:
        return True
    results = (_matches(c, row) for c in predicate.clauses)
    if predicate.logic is FilterLogic.OR:
        return any(results)
    return all(results)


def _sorted(rows: Iterable[dict[str, Any]], order_by: tuple[tuple[str, bool], ...]) -> list[dict[str, Any]]:
    out = sorted(rows, key=lambda r: str(r.get("id")))
    # Apply keys from least to most significant; sort is stable. Nulls last.
    for col, desc in reversed(order_by):
        if desc:
            out.sort(key=lambda r: (r.get(col) is not None, r.get(col) if r.get(col) is not None else 0), reverse=True)
        else:
            out.sort(key=lambda r: (r.get(col) is None, r.get(col) if r.get(col) is not None else 0))
    return out


class InMemoryEntityStore:
    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()
        for table, rows in (tables or {}).items():
            for row in rows:
                self.insert(table, row)

    def insert(self, table: str, row: dict[str, Any]) -> None:
        stored = copy.deepcopy(row)
        stored["id"] = str(stored["id"])
        self._tables.setdefault(table, {})[stored["id"]] = stored

    def delete(self, kind: EntityKind, ids: list[str]) -> int:
        rows = self._tables.get(registry.describe(kind).table, {})
        return sum(1 for i in ids if rows.pop(str(i), None) is not None)

    def row(self, kind: EntityKind, record_id: str) -> dict[str, Any] | None:
        return self._tables.get(registry.describe(kind).table, {}).get(str(record_id))

    def _project(self, kind: EntityKind, rows: list[dict[str, Any]]) -> list[Record]:
        columns = registry.describe(kind).columns
        return [{c: copy.deepcopy(r.get(c)) for c in columns} for r in rows]

    async def query(self, kind: EntityKind, predicate: Predicate, limit: int) -> list[Record]:
        entity = registry.describe(kind)
        rows = [r for r in self._tables.get(entity.table, {}).values() if evaluate(predicate, r)]
        return self._project(kind, _sorted(rows, entity.order_by)[: max(0, int(limit))])

    async def fetch_by_ids(self, kind: EntityKind, ids: list[str]) -> list[Record]:
        entity = registry.describe(kind)
        table = self._tables.get(entity.table, {})
        wanted = {str(i) for i in ids}
        rows = [r for rid, r in table.items() if rid in wanted]
        return self._project(kind, _sorted(rows, entity.order_by))

    async def bulk_update(self, kind: EntityKind, ids: list[str], field: str, value: Any) -> int:
        entity = registry.describe(kind)
        unique_ids = list(dict.fromkeys(str(i) for i in ids))
        async with self._lock:
            table = self._tables.get(entity.table, {})
            missing = [i for i in unique_ids if i not in table]
            if missing:
                raise PartialBulkUpdateFailure(
                    f"{len(missing)} of {len(unique_ids)} {kind.value} records no longer exist; "
                    "nothing was updated.",
                    expected=len(unique_ids),
                    applied=0,
                    missing_ids=missing,
                )
            now = datetime.now(timezone.utc).replace(tzinfo=None)
            for record_id in unique_ids:
                table[record_id][field] = copy.deepcopy(value)
                table[record_id]["updatedAt"] = now
        return len(unique_ids)

    async def list_options(self, relation_entity: str) -> list[dict[str, str]]:
        source = registry.relation_source(relation_entity)
        rows = [
            r
            for r in self._tables.get(source.table, {}).values()
            if all(r.get(col) == val for col, val in source.where)
        ]
        return [relation_option(r["id"], r.get(source.label_column)) for r in _sorted(rows, source.order_by)]
