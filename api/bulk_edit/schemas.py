"""
Pydantic schemas for bulk-edit endpoints (request/response models).

Wire format is camelCase to match the existing admin frontend.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .filters import FilterCondition, FilterLogic, FilterOperator


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FilterConditionIn(_CamelModel):
    field: str = Field(..., min_length=1, max_length=100)
    operator: FilterOperator
    value: Any = None

    def to_condition(self) -> FilterCondition:
        return FilterCondition(field=self.field, operator=self.operator, value=self.value)


class FiltersIn(_CamelModel):
    conditions: list[FilterConditionIn] = Field(default_factory=list, max_length=50)
    logic: FilterLogic = FilterLogic.AND

    def to_conditions(self) -> list[FilterCondition]:
        return [c.to_condition() for c in self.conditions]


class BulkOperationIn(_CamelModel):
    field: str = Field(..., min_length=1, max_length=100)
    value: Any = None


class QueryRequest(_CamelModel):
    entity_type: str = Field(..., min_length=1, max_length=50)
    filters: FiltersIn = Field(default_factory=FiltersIn)
    limit: int | None = Field(default=None, ge=1)


class BulkEditRequest(QueryRequest):
    operation: BulkOperationIn


class RecordsRequest(_CamelModel):
    entity_type: str = Field(..., min_length=1, max_length=50)
    ids: list[str] = Field(..., min_length=1)


class ErrorDetail(_CamelModel):
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class PreviewRecord(_CamelModel):
    id: str
    display_name: str
    current_value: Any = None
    new_value: Any = None
    current_display: str = ""
    new_display: str = ""


class PreviewResult(_CamelModel):
    entity_type: str
    field: str
    matching_count: int
    matching_records: list[PreviewRecord]


class ExecuteResult(_CamelModel):
    success: bool
    entity_type: str
    field: str
    updated_count: int
    updated_ids: list[str] = Field(default_factory=list)
    error: ErrorDetail | None = None
