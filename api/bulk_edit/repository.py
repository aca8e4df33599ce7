"""
Bulk-edit persistence (raw SQL over asyncpg).

All table/column names come from the static registry and are quoted, never
taken from request input. Values always travel as positional parameters.
"""

from __future__ import annotations

import logging
from typing import Any

import asyncpg

from core import db

from . import registry
from .errors import PartialBulkUpdateFailure
from .filters import Clause, FilterLogic, FilterOperator, Predicate
from .registry import EntityKind, FieldType
from .store import Record, relation_option

logger = logging.getLogger(__name__)


def _ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class _Params:
    """Collects positional parameters and hands out $n placeholders."""

    def __init__(self) -> None:
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def _render_clause(clause: Clause, params: _Params) -> str:
    col = _ident(clause.field)
    op = clause.operator

    if op is FilterOperator.IS_NULL:
        return f"{col} IS NULL"
    if op is FilterOperator.IS_NOT_NULL:
        return f"{col} IS NOT NULL"

    if clause.type is FieldType.STRING:
        if op is FilterOperator.EQUALS:
            return f"lower({col}) = lower({params.add(clause.value)})"
        if op is FilterOperator.NOT_EQUALS:
            return f"lower({col}) <> lower({params.add(clause.value)})"
        pattern = _like_escape(clause.value)
        if op is FilterOperator.CONTAINS:
            pattern = f"%{pattern}%"
        elif op is FilterOperator.STARTS_WITH:
            pattern = f"{pattern}%"
        elif op is FilterOperator.ENDS_WITH:
            pattern = f"%{pattern}"
        return f"{col} ILIKE {params.add(pattern)}"

    if clause.type is FieldType.NUMBER:
        # float8 keeps int and numeric columns comparable with either parameter kind.
        sql_op = {
            FilterOperator.EQUALS: "=",
            FilterOperator.NOT_EQUALS: "<>",
            FilterOperator.GREATER_THAN: ">",
            FilterOperator.LESS_THAN: "<",
        }[op]
        return f"{col}::float8 {sql_op} {params.add(float(clause.value))}::float8"

    if clause.type is FieldType.DATE:
        sql_op = {
            FilterOperator.EQUALS: "=",
            FilterOperator.NOT_EQUALS: "<>",
            FilterOperator.GREATER_THAN: ">",
            FilterOperator.LESS_THAN: "<",
        }[op]
        return f"{col} {sql_op} {params.add(clause.value)}::timestamp"

    if clause.type is FieldType.BOOLEAN:
        return f"{col} = {params.add(clause.value)}::boolean"

    # enum and relation columns are compared as text.
    if op is FilterOperator.IN:
        return f"{col}::text = ANY({params.add(list(clause.value))}::text[])"
    if op is FilterOperator.NOT_EQUALS:
        return f"{col}::text <> {params.add(clause.value)}::text"
    return f"{col}::text = {params.add(clause.value)}::text"


def render_where(predicate: Predicate, params: _Params) -> str:
    if predicate.is_empty:
        return "true"
    joiner = " OR " if predicate.logic is FilterLogic.OR else " AND "
    return joiner.join(f"({_render_clause(c, params)})" for c in predicate.clauses)


def _render_order(order_by: tuple[tuple[str, bool], ...]) -> str:
    parts = [f"{_ident(col)} {'DESC' if desc else 'ASC'} NULLS LAST" for col, desc in order_by]
    parts.append(f"{_ident('id')} ASC")
    return ", ".join(parts)


def build_select(kind: EntityKind, predicate: Predicate, limit: int) -> tuple[str, list[Any]]:
    """
    Build the SELECT used by `query`. Pure function, exposed for tests.
    """
    entity = registry.describe(kind)
    params = _Params()
    where = render_where(predicate, params)
    columns = ", ".join(_ident(c) for c in entity.columns)
    sql = (
        f"SELECT {columns} FROM {_ident(entity.table)} "
        f"WHERE {where} "
        f"ORDER BY {_render_order(entity.order_by)} "
        f"LIMIT {params.add(int(limit))}"
    )
    return sql, params.values


def _normalize_record(row: dict[str, Any]) -> Record:
    if row.get("id") is not None:
        row["id"] = str(row["id"])
    return row


class PostgresEntityStore:
    """
    Entity store over the product's Postgres schema.
    """

    async def query(self, kind: EntityKind, predicate: Predicate, limit: int) -> list[Record]:
        sql, args = build_select(kind, predicate, limit)
        rows = await db.fetch_all(sql, *args)
        return [_normalize_record(r) for r in rows]

    async def fetch_by_ids(self, kind: EntityKind, ids: list[str]) -> list[Record]:
        if not ids:
            return []
        entity = registry.describe(kind)
        columns = ", ".join(_ident(c) for c in entity.columns)
        rows = await db.fetch_all(
            f"""
            SELECT {columns}
            FROM {_ident(entity.table)}
            WHERE {_ident('id')}::text = ANY($1::text[])
            ORDER BY {_render_order(entity.order_by)}
            """,
            [str(i) for i in ids],
        )
        return [_normalize_record(r) for r in rows]

    async def bulk_update(self, kind: EntityKind, ids: list[str], field: str, value: Any) -> int:
        """
        Set `field = value` on every id in one transaction.

        If fewer rows than ids are touched (rows deleted concurrently), the
        transaction is rolled back and PartialBulkUpdateFailure is raised.
        """
        entity = registry.describe(kind)
        meta = entity.field(field)
        if meta is None:
            raise RuntimeError(f"bulk_update called with unknown field {kind.value}.{field}")
        unique_ids = list(dict.fromkeys(str(i) for i in ids))
        if not unique_ids:
            return 0

        pool = db.pool()
        try:
            async with pool.acquire() as conn:  # type: asyncpg.Connection
                async with conn.transaction():
                    rows = await conn.fetch(
                        f"""
                        UPDATE {_ident(entity.table)}
                        SET {_ident(field)} = $2,
                            "updatedAt" = now()
                        WHERE {_ident('id')}::text = ANY($1::text[])
                        RETURNING {_ident('id')}
                        """,
                        unique_ids,
                        value,
                    )
                    if len(rows) != len(unique_ids):
                        raise PartialBulkUpdateFailure(
                            f"Only {len(rows)} of {len(unique_ids)} {kind.value} records could be "
                            "updated; the change was rolled back.",
                            expected=len(unique_ids),
                            applied=0,
                        )
        except asyncpg.PostgresError as exc:
            logger.warning(
                "bulk_update_failed kind=%s field=%s ids=%s error=%s",
                kind.value,
                field,
                len(unique_ids),
                exc,
            )
            raise PartialBulkUpdateFailure(
                f"Database rejected the bulk update: {exc}",
                expected=len(unique_ids),
                applied=0,
            ) from exc
        return len(rows)

    async def list_options(self, relation_entity: str) -> list[dict[str, str]]:
        source = registry.relation_source(relation_entity)
        params = _Params()
        where = " AND ".join(
            f"{_ident(col)} = {params.add(val)}" for col, val in source.where
        ) or "true"
        rows = await db.fetch_all(
            f"""
            SELECT {_ident('id')} AS id, {_ident(source.label_column)} AS label
            FROM {_ident(source.table)}
            WHERE {where}
            ORDER BY {_render_order(source.order_by)}
            """,
            *params.values,
        )
        return [relation_option(r["id"], r["label"]) for r in rows]
