"""
Access-token verification.

Tokens are issued by the main platform; this service only verifies them.
Claims: `id` (or `sub`), `email`, `role`.
"""

from __future__ import annotations

import os
from typing import Any

import jwt

from core import settings

DEV_JWT_SECRET = "dev-change-this-secret"


class AuthSecurityError(RuntimeError):
    pass


def jwt_secret() -> str:
    secret = os.environ.get("JWT_SECRET", "").strip()
    if secret:
        return secret
    # Only a development process may run on the well-known default.
    if settings.is_development():
        return DEV_JWT_SECRET
    raise AuthSecurityError("JWT_SECRET is not configured.")


def jwt_algorithm() -> str:
    return os.environ.get("JWT_ALG", "HS256").strip() or "HS256"


def decode_access_token(token: str) -> dict[str, Any]:
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Access token is empty.")

    try:
        payload = jwt.decode(raw, jwt_secret(), algorithms=[jwt_algorithm()])
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid access token.") from exc

    token_type = str(payload.get("type") or "access").strip().lower()
    if token_type != "access":
        raise AuthSecurityError("Token is not an access token.")

    return payload


def principal_from_claims(payload: dict[str, Any]) -> dict[str, str]:
    subject = str(payload.get("id") or payload.get("sub") or "").strip()
    if not subject:
        raise AuthSecurityError("Access token has no subject.")
    return {
        "id": subject,
        "email": str(payload.get("email") or ""),
        "role": str(payload.get("role") or "").strip().upper(),
    }
