"""
Bulk-edit business logic.

Scope:
- metadata and relation options for the admin UI
- exploratory queries over one entity kind (bounded)
- preview (dry run) and execute (commit) of a single-field mutation

Preview and execute share one routine, `_resolve`, parameterized by
`persist`, so both always validate and match records the same way. A preview
is advisory: execute re-validates and re-resolves the id set on its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from core import settings

from . import filters, registry, schemas
from .errors import (
    FieldNotEditable,
    FilterRequired,
    InvalidOperationValue,
    NoMatchingRecords,
    PartialBulkUpdateFailure,
    SelectionTooLarge,
)
from .filters import FilterCondition, FilterLogic
from .registry import EntityKind, EntityMetadata, FieldMetadata, FieldType
from .relations import RelationResolver
from .store import EntityStore, Record

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BulkOperation:
    field: str
    value: Any = None


def resolve_limit(limit: int | None) -> int:
    """
    Requested limit, or the configured default, clamped to the hard cap.
    """
    if limit is None:
        return settings.bulk_edit_default_limit()
    return max(1, min(int(limit), settings.bulk_edit_max_limit()))


def metadata() -> list[dict[str, Any]]:
    return [entity.to_dict() for entity in registry.all_entities()]


async def relation_options(resolver: RelationResolver, relation_entity: str) -> list[dict[str, str]]:
    return await resolver.list_options(relation_entity)


async def query_records(
    store: EntityStore,
    kind: str | EntityKind,
    conditions: list[FilterCondition],
    *,
    logic: FilterLogic | str = FilterLogic.AND,
    limit: int | None = None,
) -> list[Record]:
    entity = registry.describe(kind)
    predicate = filters.compile_filters(entity.kind, conditions, logic)
    cap = resolve_limit(limit)
    records = await store.query(entity.kind, predicate, cap)
    logger.debug(
        "bulk_edit_query kind=%s conditions=%s limit=%s matched=%s",
        entity.kind.value,
        len(conditions),
        cap,
        len(records),
    )
    return records


async def fetch_records(store: EntityStore, kind: str | EntityKind, ids: list[str]) -> list[Record]:
    entity = registry.describe(kind)
    unique_ids = list(dict.fromkeys(str(i) for i in ids))[: settings.bulk_edit_max_limit()]
    return await store.fetch_by_ids(entity.kind, unique_ids)


async def _validate_operation(
    entity: EntityMetadata,
    operation: BulkOperation,
    resolver: RelationResolver,
    *,
    fresh: bool,
) -> tuple[FieldMetadata, Any]:
    meta = entity.field(operation.field)
    if meta is None or not meta.editable:
        raise FieldNotEditable(
            f"Field {operation.field!r} is not editable on {entity.kind.value}.",
            field=operation.field,
            entity_type=entity.kind.value,
            editable=[f.name for f in entity.fields if f.editable],
        )

    if operation.value is None:
        if meta.nullable:
            return meta, None
        raise InvalidOperationValue(
            f"Field {meta.name!r} cannot be set to null.",
            field=meta.name,
            expected=meta.type.value,
        )

    value = filters.coerce_value(meta, operation.value, error=InvalidOperationValue)

    if meta.type is FieldType.STRING and not value.strip() and not meta.nullable:
        raise InvalidOperationValue(
            f"Field {meta.name!r} cannot be empty.",
            field=meta.name,
            expected="non-empty string",
        )

    if meta.type is FieldType.RELATION:
        assert meta.relation_entity is not None
        if not await resolver.exists(meta.relation_entity, value, fresh=fresh):
            raise InvalidOperationValue(
                f"No {meta.relation_entity} with id {value!r} is available for field {meta.name!r}.",
                field=meta.name,
                relation_entity=meta.relation_entity,
                received=value,
            )
    return meta, value


async def _display(meta: FieldMetadata, value: Any, resolver: RelationResolver) -> str:
    if value is None:
        return ""
    if meta.type is FieldType.RELATION:
        assert meta.relation_entity is not None
        return await resolver.display_for(meta.relation_entity, value)
    if meta.type is FieldType.ENUM:
        return registry.enum_label(value)
    if meta.type is FieldType.BOOLEAN:
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


async def _resolve(
    store: EntityStore,
    resolver: RelationResolver,
    kind: str | EntityKind,
    id_filter: list[FilterCondition],
    operation: BulkOperation,
    *,
    logic: FilterLogic | str,
    limit: int | None,
    persist: bool,
) -> schemas.PreviewResult | schemas.ExecuteResult:
    entity = registry.describe(kind)
    # Execute re-checks relation existence against storage, never the session cache.
    meta, value = await _validate_operation(entity, operation, resolver, fresh=persist)
    predicate = filters.compile_filters(entity.kind, id_filter, logic)
    cap = resolve_limit(limit)
    # One extra row tells a full selection apart from a truncated one.
    records = await store.query(entity.kind, predicate, cap + 1)
    if len(records) > cap:
        raise SelectionTooLarge(
            f"More than {cap} {entity.kind.value} records match the selection; "
            "narrow the filters or raise the limit.",
            entity_type=entity.kind.value,
            limit=cap,
            max_limit=settings.bulk_edit_max_limit(),
        )

    if not persist:
        new_display = await _display(meta, value, resolver)
        matching = [
            schemas.PreviewRecord(
                id=str(record["id"]),
                display_name=entity.display_name(record),
                current_value=record.get(meta.name),
                new_value=value,
                current_display=await _display(meta, record.get(meta.name), resolver),
                new_display=new_display,
            )
            for record in records
        ]
        return schemas.PreviewResult(
            entity_type=entity.kind.value,
            field=meta.name,
            matching_count=len(matching),
            matching_records=matching,
        )

    ids = [str(record["id"]) for record in records]
    if not ids:
        raise NoMatchingRecords(
            f"No {entity.kind.value} records match the selection; nothing was updated.",
            entity_type=entity.kind.value,
        )
    updated = await store.bulk_update(entity.kind, ids, meta.name, value)
    return schemas.ExecuteResult(
        success=True,
        entity_type=entity.kind.value,
        field=meta.name,
        updated_count=updated,
        updated_ids=ids,
    )


async def preview(
    store: EntityStore,
    resolver: RelationResolver,
    kind: str | EntityKind,
    id_filter: list[FilterCondition],
    operation: BulkOperation,
    *,
    logic: FilterLogic | str = FilterLogic.AND,
    limit: int | None = None,
) -> schemas.PreviewResult:
    result = await _resolve(
        store, resolver, kind, id_filter, operation, logic=logic, limit=limit, persist=False
    )
    assert isinstance(result, schemas.PreviewResult)
    logger.debug(
        "bulk_edit_preview kind=%s field=%s matched=%s",
        result.entity_type,
        result.field,
        result.matching_count,
    )
    return result


async def execute(
    store: EntityStore,
    resolver: RelationResolver,
    kind: str | EntityKind,
    id_filter: list[FilterCondition],
    operation: BulkOperation,
    *,
    logic: FilterLogic | str = FilterLogic.AND,
    limit: int | None = None,
) -> schemas.ExecuteResult:
    """
    Apply `operation` to every record matching `id_filter`.

    Validation errors raise. Execute-time failures (nothing matched, store
    could not apply all-or-nothing) come back as a failed ExecuteResult.
    """
    entity = registry.describe(kind)
    if not id_filter:
        raise FilterRequired(
            "At least one filter condition is required to prevent accidental mass updates.",
            entity_type=entity.kind.value,
        )

    logger.info(
        "bulk_edit_execute_start kind=%s field=%s conditions=%s",
        entity.kind.value,
        operation.field,
        len(id_filter),
    )
    try:
        result = await _resolve(
            store, resolver, entity.kind, id_filter, operation, logic=logic, limit=limit, persist=True
        )
    except (NoMatchingRecords, PartialBulkUpdateFailure) as exc:
        applied = exc.applied if isinstance(exc, PartialBulkUpdateFailure) else 0
        logger.warning(
            "bulk_edit_execute_failed kind=%s field=%s code=%s applied=%s",
            entity.kind.value,
            operation.field,
            exc.code,
            applied,
        )
        return schemas.ExecuteResult(
            success=False,
            entity_type=entity.kind.value,
            field=operation.field,
            updated_count=applied,
            error=schemas.ErrorDetail(**exc.to_dict()),
        )

    assert isinstance(result, schemas.ExecuteResult)
    logger.info(
        "bulk_edit_executed kind=%s field=%s updated=%s",
        result.entity_type,
        result.field,
        result.updated_count,
    )
    return result
