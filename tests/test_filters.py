"""Tests for the filter evaluator: operator legality and value coercion."""

from datetime import datetime

import pytest

from bulk_edit import filters, registry
from bulk_edit.errors import (
    InvalidFieldReference,
    InvalidOperationValue,
    InvalidOperatorForType,
    InvalidValueType,
    UnknownEntityKind,
)
from bulk_edit.filters import (
    ALLOWED_OPERATORS,
    FilterCondition,
    FilterLogic,
    FilterOperator,
    compile_filters,
)
from bulk_edit.registry import FieldType


def _cond(field: str, operator: str, value: object = None) -> FilterCondition:
    return FilterCondition(field=field, operator=operator, value=value)


class TestOperatorLegality:
    @pytest.mark.parametrize(
        "operator",
        [op for op in FilterOperator if op is not FilterOperator.EQUALS],
    )
    def test_boolean_rejects_everything_but_equals(self, operator: FilterOperator) -> None:
        with pytest.raises(InvalidOperatorForType) as exc_info:
            compile_filters("competition", [_cond("featured", operator, True)])
        assert exc_info.value.details["field"] == "featured"
        assert exc_info.value.details["allowed"] == ["equals"]

    def test_boolean_equals(self) -> None:
        predicate = compile_filters("competition", [_cond("featured", "equals", "true")])
        assert predicate.clauses[0].value is True

    def test_number_rejects_contains(self) -> None:
        with pytest.raises(InvalidOperatorForType):
            compile_filters("competition", [_cond("baseDistance", "contains", "4")])

    def test_enum_rejects_is_null(self) -> None:
        with pytest.raises(InvalidOperatorForType):
            compile_filters("competition", [_cond("status", "is_null")])

    def test_string_rejects_greater_than(self) -> None:
        with pytest.raises(InvalidOperatorForType):
            compile_filters("competition", [_cond("name", "greater_than", "M")])

    def test_unknown_operator(self) -> None:
        with pytest.raises(InvalidOperatorForType):
            compile_filters("competition", [_cond("name", "like", "M")])

    def test_legality_table_covers_every_type(self) -> None:
        assert set(ALLOWED_OPERATORS) == set(FieldType)


class TestFieldReferences:
    def test_unknown_field(self) -> None:
        with pytest.raises(InvalidFieldReference) as exc_info:
            compile_filters("competition", [_cond("color", "equals", "red")])
        assert exc_info.value.details["field"] == "color"

    def test_unknown_kind(self) -> None:
        with pytest.raises(UnknownEntityKind):
            compile_filters("athlete", [])


class TestCoercion:
    def test_non_numeric_string_for_number(self) -> None:
        with pytest.raises(InvalidValueType) as exc_info:
            compile_filters("competition", [_cond("baseDistance", "greater_than", "far")])
        assert exc_info.value.details["expected"] == "number"

    def test_numeric_string_is_accepted(self) -> None:
        predicate = compile_filters("competition", [_cond("baseDistance", "greater_than", "42.5")])
        assert predicate.clauses[0].value == 42.5

    def test_boolean_is_not_a_number(self) -> None:
        with pytest.raises(InvalidValueType):
            compile_filters("competition", [_cond("baseDistance", "equals", True)])

    def test_integer_field_rejects_fraction(self) -> None:
        with pytest.raises(InvalidValueType) as exc_info:
            compile_filters("competition", [_cond("itraPoints", "equals", 2.5)])
        assert exc_info.value.details["expected"] == "integer"

    def test_integer_field_accepts_integral_float(self) -> None:
        predicate = compile_filters("competition", [_cond("itraPoints", "equals", 4.0)])
        assert predicate.clauses[0].value == 4
        assert isinstance(predicate.clauses[0].value, int)

    @pytest.mark.parametrize("value", ["1" + "0" * 400, 10**400, "1e400"])
    def test_number_too_large_for_float(self, value: object) -> None:
        with pytest.raises(InvalidValueType) as exc_info:
            compile_filters("competition", [_cond("baseDistance", "greater_than", value)])
        assert exc_info.value.details["expected"] == "number"

    @pytest.mark.parametrize("value", ["1" + "0" * 400, 2**31, -(2**31) - 1, 1e12])
    def test_integer_field_outside_column_range(self, value: object) -> None:
        with pytest.raises(InvalidValueType) as exc_info:
            compile_filters("competition", [_cond("itraPoints", "greater_than", value)])
        assert exc_info.value.details["expected"] == "integer"

    def test_integer_field_column_bounds_are_accepted(self) -> None:
        predicate = compile_filters(
            "competition",
            [_cond("itraPoints", "greater_than", -(2**31)), _cond("itraPoints", "less_than", 2**31 - 1)],
        )
        assert [c.value for c in predicate.clauses] == [-(2**31), 2**31 - 1]

    def test_oversized_operation_value(self) -> None:
        meta = registry.field("competition", "baseElevation")
        with pytest.raises(InvalidOperationValue):
            filters.coerce_value(meta, 10**20, error=InvalidOperationValue)

    def test_enum_value_outside_domain(self) -> None:
        with pytest.raises(InvalidValueType) as exc_info:
            compile_filters("competition", [_cond("status", "equals", "ARCHIVED")])
        assert exc_info.value.details["expected"] == ["DRAFT", "PUBLISHED", "CANCELLED"]

    def test_enum_in_wraps_scalar(self) -> None:
        predicate = compile_filters("competition", [_cond("status", "in", "DRAFT")])
        assert predicate.clauses[0].value == ("DRAFT",)

    def test_enum_in_checks_every_member(self) -> None:
        with pytest.raises(InvalidValueType):
            compile_filters("competition", [_cond("status", "in", ["DRAFT", "LIVE"])])

    def test_date_with_z_suffix_becomes_naive_utc(self) -> None:
        predicate = compile_filters(
            "competition", [_cond("createdAt", "greater_than", "2024-01-01T10:00:00+02:00")]
        )
        assert predicate.clauses[0].value == datetime(2024, 1, 1, 8, 0)

    def test_date_only_string(self) -> None:
        predicate = compile_filters("competition", [_cond("createdAt", "less_than", "2024-02-01")])
        assert predicate.clauses[0].value == datetime(2024, 2, 1)

    def test_bad_date(self) -> None:
        with pytest.raises(InvalidValueType):
            compile_filters("competition", [_cond("createdAt", "less_than", "yesterday")])

    def test_string_requires_string(self) -> None:
        with pytest.raises(InvalidValueType):
            compile_filters("competition", [_cond("name", "contains", 42)])

    def test_missing_value(self) -> None:
        with pytest.raises(InvalidValueType):
            compile_filters("competition", [_cond("name", "equals", None)])

    def test_null_operators_drop_value(self) -> None:
        predicate = compile_filters("competition", [_cond("terrainTypeId", "is_null", "ignored")])
        assert predicate.clauses[0].value is None

    def test_relation_ids_are_strings(self) -> None:
        predicate = compile_filters("competition", [_cond("id", "in", ["c1", 7])])
        assert predicate.clauses[0].value == ("c1", "7")

    def test_coerce_value_uses_requested_error(self) -> None:
        meta = registry.field("competition", "featured")
        with pytest.raises(InvalidOperationValue):
            filters.coerce_value(meta, "maybe", error=InvalidOperationValue)


class TestCompile:
    def test_empty_conditions(self) -> None:
        predicate = compile_filters("event", [])
        assert predicate.is_empty
        assert predicate.logic is FilterLogic.AND

    def test_logic_is_carried(self) -> None:
        predicate = compile_filters(
            "event",
            [_cond("city", "equals", "Vic"), _cond("city", "equals", "Berga")],
            "OR",
        )
        assert predicate.logic is FilterLogic.OR
        assert len(predicate.clauses) == 2
