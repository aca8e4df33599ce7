"""Tests for access-token verification."""

import jwt
import pytest
from fastapi.testclient import TestClient

from auth import security
from auth.security import DEV_JWT_SECRET, AuthSecurityError


def _forged(role: str = "ADMIN") -> str:
    return jwt.encode({"id": "intruder", "role": role}, DEV_JWT_SECRET, algorithm="HS256")


class TestJwtSecret:
    def test_configured_secret(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JWT_SECRET", "  s3cret  ")
        assert security.jwt_secret() == "s3cret"

    def test_missing_secret_fails_closed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("JWT_SECRET", raising=False)
        with pytest.raises(AuthSecurityError):
            security.jwt_secret()

    def test_development_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("JWT_SECRET", raising=False)
        monkeypatch.setenv("APP_ENV", "development")
        assert security.jwt_secret() == DEV_JWT_SECRET

    def test_token_signed_with_default_is_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("JWT_SECRET", raising=False)
        with pytest.raises(AuthSecurityError):
            security.decode_access_token(_forged())


class TestPrincipal:
    def test_sub_claim_and_role_case(self) -> None:
        principal = security.principal_from_claims({"sub": "u7", "role": "admin"})
        assert principal == {"id": "u7", "email": "", "role": "ADMIN"}

    def test_subject_required(self) -> None:
        with pytest.raises(AuthSecurityError):
            security.principal_from_claims({"role": "ADMIN"})


def test_unconfigured_secret_blocks_bulk_edit(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("JWT_SECRET", raising=False)
    response = client.get(
        "/api/v2/admin/bulk-edit/metadata", headers={"Authorization": f"Bearer {_forged()}"}
    )
    assert response.status_code == 401
