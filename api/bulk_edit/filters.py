"""
Filter evaluator.

Compiles typed filter conditions into an opaque `Predicate` that an entity
store knows how to execute (SQL in `repository.py`, Python in `inmemory.py`).

Operator legality is gated by field type; values are coerced to the field's
declared type here, so stores only ever see canonical values.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from . import registry
from .errors import (
    BulkEditError,
    InvalidFieldReference,
    InvalidOperatorForType,
    InvalidValueType,
)
from .registry import EntityKind, FieldMetadata, FieldType


class FilterOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IN = "in"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"


class FilterLogic(str, Enum):
    AND = "AND"
    OR = "OR"


_Op = FilterOperator

ALLOWED_OPERATORS: dict[FieldType, frozenset[FilterOperator]] = {
    FieldType.STRING: frozenset(
        {_Op.EQUALS, _Op.NOT_EQUALS, _Op.CONTAINS, _Op.STARTS_WITH, _Op.ENDS_WITH, _Op.IS_NULL, _Op.IS_NOT_NULL}
    ),
    FieldType.NUMBER: frozenset(
        {_Op.EQUALS, _Op.NOT_EQUALS, _Op.GREATER_THAN, _Op.LESS_THAN, _Op.IS_NULL, _Op.IS_NOT_NULL}
    ),
    FieldType.DATE: frozenset(
        {_Op.EQUALS, _Op.NOT_EQUALS, _Op.GREATER_THAN, _Op.LESS_THAN, _Op.IS_NULL, _Op.IS_NOT_NULL}
    ),
    FieldType.BOOLEAN: frozenset({_Op.EQUALS}),
    FieldType.ENUM: frozenset({_Op.EQUALS, _Op.NOT_EQUALS, _Op.IN}),
    # `in` lets the id field carry a selection of record ids.
    FieldType.RELATION: frozenset({_Op.EQUALS, _Op.IN, _Op.IS_NULL, _Op.IS_NOT_NULL}),
}

NULL_OPERATORS = frozenset({_Op.IS_NULL, _Op.IS_NOT_NULL})

# Integer fields map to Postgres `integer` columns.
INT4_MIN = -(2**31)
INT4_MAX = 2**31 - 1


@dataclass(frozen=True)
class FilterCondition:
    field: str
    operator: FilterOperator | str
    value: Any = None


@dataclass(frozen=True)
class Clause:
    field: str
    type: FieldType
    operator: FilterOperator
    value: Any


@dataclass(frozen=True)
class Predicate:
    """
    Compiled, validated filter for one entity kind.

    An empty clause tuple matches every record.
    """

    kind: EntityKind
    clauses: tuple[Clause, ...] = ()
    logic: FilterLogic = FilterLogic.AND

    @property
    def is_empty(self) -> bool:
        return not self.clauses


def _type_name(meta: FieldMetadata) -> str:
    if meta.type is FieldType.NUMBER and meta.integer:
        return "integer"
    return meta.type.value


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            raise ValueError("expected an ISO 8601 date") from None
    else:
        raise ValueError("expected an ISO 8601 date")
    # Stored timestamps are naive UTC.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _parse_number(value: Any, *, integer: bool) -> int | float:
    if isinstance(value, bool):
        raise ValueError("booleans are not numbers")
    if isinstance(value, (int, float)):
        number: int | float = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        try:
            number = int(raw)
        except ValueError:
            try:
                number = float(raw)
            except ValueError:
                raise ValueError("expected a number") from None
    else:
        raise ValueError("expected a number")
    if isinstance(number, float):
        if not math.isfinite(number):
            raise ValueError("expected a finite number")
        if integer:
            if not number.is_integer():
                raise ValueError("expected an integer")
            number = int(number)
    if integer:
        if not INT4_MIN <= number <= INT4_MAX:
            raise ValueError(f"expected an integer between {INT4_MIN} and {INT4_MAX}")
        return number
    try:
        float(number)
    except OverflowError:
        raise ValueError("number is too large") from None
    return number


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise ValueError("expected true or false")


def _parse_relation_id(value: Any) -> str:
    if isinstance(value, bool):
        raise ValueError("expected a record id")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    raise ValueError("expected a record id")


def _coerce(meta: FieldMetadata, value: Any) -> Any:
    """
    Coerce one non-null value to the field's canonical Python type.

    Raises ValueError with a short reason when the value does not fit.
    """
    if meta.type is FieldType.STRING:
        if not isinstance(value, str):
            raise ValueError("expected a string")
        return value
    if meta.type is FieldType.NUMBER:
        return _parse_number(value, integer=meta.integer)
    if meta.type is FieldType.DATE:
        return _parse_datetime(value)
    if meta.type is FieldType.BOOLEAN:
        return _parse_bool(value)
    if meta.type is FieldType.ENUM:
        if not isinstance(value, str) or value not in meta.enum_values:
            raise ValueError(f"expected one of {', '.join(meta.enum_values)}")
        return value
    if meta.type is FieldType.RELATION:
        return _parse_relation_id(value)
    raise ValueError(f"unsupported field type {meta.type!r}")


def coerce_value(
    meta: FieldMetadata,
    value: Any,
    *,
    error: type[BulkEditError] = InvalidValueType,
) -> Any:
    try:
        return _coerce(meta, value)
    except ValueError as exc:
        expected: Any = list(meta.enum_values) if meta.type is FieldType.ENUM else _type_name(meta)
        raise error(
            f"Invalid value for field {meta.name!r}: {exc}.",
            field=meta.name,
            expected=expected,
            received=repr(value),
        ) from exc


def _parse_operator(raw: FilterOperator | str, meta: FieldMetadata) -> FilterOperator:
    try:
        return FilterOperator(raw)
    except ValueError as exc:
        raise InvalidOperatorForType(
            f"Unknown operator {raw!r} for field {meta.name!r}.",
            field=meta.name,
            operator=str(raw),
            allowed=sorted(op.value for op in ALLOWED_OPERATORS[meta.type]),
        ) from exc


def compile_condition(meta: FieldMetadata, condition: FilterCondition) -> Clause:
    operator = _parse_operator(condition.operator, meta)
    if operator not in ALLOWED_OPERATORS[meta.type]:
        raise InvalidOperatorForType(
            f"Operator {operator.value!r} is not allowed for {meta.type.value} field {meta.name!r}.",
            field=meta.name,
            operator=operator.value,
            type=meta.type.value,
            allowed=sorted(op.value for op in ALLOWED_OPERATORS[meta.type]),
        )

    if operator in NULL_OPERATORS:
        return Clause(meta.name, meta.type, operator, None)

    if operator is FilterOperator.IN:
        raw_values = condition.value if isinstance(condition.value, (list, tuple, set)) else [condition.value]
        values = tuple(coerce_value(meta, v) for v in raw_values)
        return Clause(meta.name, meta.type, operator, values)

    if condition.value is None:
        raise InvalidValueType(
            f"Operator {operator.value!r} on field {meta.name!r} requires a value.",
            field=meta.name,
            expected=_type_name(meta),
        )
    return Clause(meta.name, meta.type, operator, coerce_value(meta, condition.value))


def compile_filters(
    kind: str | EntityKind,
    conditions: list[FilterCondition] | tuple[FilterCondition, ...],
    logic: FilterLogic | str = FilterLogic.AND,
) -> Predicate:
    entity = registry.describe(kind)
    clauses: list[Clause] = []
    for condition in conditions:
        meta = entity.field(condition.field)
        if meta is None or not meta.filterable:
            raise InvalidFieldReference(
                f"Field {condition.field!r} is not filterable on {entity.kind.value}.",
                field=condition.field,
                entity_type=entity.kind.value,
                filterable=[f.name for f in entity.fields if f.filterable],
            )
        clauses.append(compile_condition(meta, condition))
    return Predicate(kind=entity.kind, clauses=tuple(clauses), logic=FilterLogic(logic))
