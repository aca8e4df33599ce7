"""
Bulk-edit error taxonomy.

Every error carries an HTTP status, a stable machine code and enough detail
(field name, expected type/domain) for the caller to correct the request.
Validation errors are raised before any record is read for mutation.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BulkEditError(Exception):
    status_code: int = 400
    code: str = "BULK_EDIT_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class UnknownEntityKind(BulkEditError):
    status_code = 404
    code = "UNKNOWN_ENTITY_KIND"


class InvalidFieldReference(BulkEditError):
    code = "INVALID_FIELD_REFERENCE"


class InvalidOperatorForType(BulkEditError):
    code = "INVALID_OPERATOR_FOR_TYPE"


class InvalidValueType(BulkEditError):
    code = "INVALID_VALUE_TYPE"


class FieldNotEditable(BulkEditError):
    code = "FIELD_NOT_EDITABLE"


class InvalidOperationValue(BulkEditError):
    code = "INVALID_OPERATION_VALUE"


class FilterRequired(BulkEditError):
    code = "FILTER_REQUIRED"


class SelectionTooLarge(BulkEditError):
    """More records match a preview/execute than the limit allows."""

    code = "SELECTION_TOO_LARGE"


class NoMatchingRecords(BulkEditError):
    status_code = 409
    code = "NO_MATCHING_RECORDS"


class PartialBulkUpdateFailure(BulkEditError):
    """
    The store could not apply an update to every listed id.

    `applied` is what actually persisted; stores that roll back report 0.
    """

    status_code = 500
    code = "PARTIAL_BULK_UPDATE_FAILURE"

    def __init__(self, message: str, *, expected: int, applied: int = 0, **details: Any) -> None:
        super().__init__(message, expected=expected, applied=applied, **details)
        self.expected = expected
        self.applied = applied


async def _handle_bulk_edit_error(_: Request, exc: BulkEditError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("bulk_edit_error code=%s message=%s", exc.code, exc.message)
    else:
        logger.info("bulk_edit_rejected code=%s message=%s", exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder({"success": False, "error": exc.to_dict()}),
    )


def add_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BulkEditError, _handle_bulk_edit_error)
