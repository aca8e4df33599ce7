"""
FastAPI dependencies for bulk-edit routes.

Tests override `get_store` with an in-memory store.
"""

from __future__ import annotations

from fastapi import Depends

from auth import dependencies as auth_dependencies

from .relations import RelationResolver, sessions
from .repository import PostgresEntityStore
from .store import EntityStore

_store = PostgresEntityStore()


def get_store() -> EntityStore:
    return _store


def get_resolver(
    current_user: dict = Depends(auth_dependencies.require_bulk_editor),
    store: EntityStore = Depends(get_store),
) -> RelationResolver:
    return sessions.get(str(current_user["id"]), store)
