"""Tests for the bulk-edit error envelope."""

from fastapi import FastAPI
from fastapi.testclient import TestClient

from bulk_edit import errors
from bulk_edit.errors import FieldNotEditable, PartialBulkUpdateFailure


def _client() -> TestClient:
    app = FastAPI()
    errors.add_exception_handlers(app)

    @app.get("/not-editable")
    def not_editable() -> dict:
        raise FieldNotEditable("Field 'eventId' is not editable on competition.", field="eventId", editable=None)

    @app.get("/partial")
    def partial() -> dict:
        raise PartialBulkUpdateFailure("rolled back", expected=3)

    return TestClient(app)


def test_client_error_envelope() -> None:
    response = _client().get("/not-editable")
    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": {
            "code": "FIELD_NOT_EDITABLE",
            "message": "Field 'eventId' is not editable on competition.",
            "details": {"field": "eventId"},
        },
    }


def test_server_error_envelope() -> None:
    response = _client().get("/partial")
    assert response.status_code == 500
    error = response.json()["error"]
    assert error["code"] == "PARTIAL_BULK_UPDATE_FAILURE"
    assert error["details"] == {"expected": 3, "applied": 0}
