"""
Environment-backed settings.

Values are read on every call so tests (and operators) can change them
without restarting the process.
"""

from __future__ import annotations

import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def db_pool_min_size() -> int:
    return max(1, _env_int("DB_POOL_MIN", 1))


def db_pool_max_size() -> int:
    return max(db_pool_min_size(), _env_int("DB_POOL_MAX", 5))


def db_command_timeout_s() -> int:
    return _env_int("DB_COMMAND_TIMEOUT_S", 30)


def bulk_edit_default_limit() -> int:
    value = _env_int("BULK_EDIT_DEFAULT_LIMIT", 100)
    return max(1, min(value, bulk_edit_max_limit()))


def bulk_edit_max_limit() -> int:
    # Never unbounded: a non-positive override falls back to the default cap.
    value = _env_int("BULK_EDIT_MAX_LIMIT", 500)
    return value if value > 0 else 500


def relation_session_ttl_s() -> int:
    return max(1, _env_int("BULK_EDIT_SESSION_TTL_S", 900))


def bulk_edit_roles() -> set[str]:
    return {role.upper() for role in _env_list("BULK_EDIT_ROLES", ["ADMIN"])}


def cors_origins() -> list[str]:
    return _env_list(
        "CORS_ORIGINS",
        ["http://localhost:3000", "http://127.0.0.1:3000"],
    )


def log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"


def app_env() -> str:
    return os.environ.get("APP_ENV", "production").strip().lower() or "production"


def is_development() -> bool:
    return app_env() in {"development", "dev", "local"}
