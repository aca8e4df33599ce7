"""
Entity store boundary.

The bulk-edit engine never talks to storage except through this protocol.
Implementations: `repository.PostgresEntityStore` (asyncpg) and
`inmemory.InMemoryEntityStore` (tests, local development).

Contract:
- `query` returns records ordered by the kind's `order_by` with `id` as the
  final tiebreak, so ordering is stable between calls.
- `bulk_update` is all-or-nothing. When it cannot touch every listed id it
  raises `PartialBulkUpdateFailure` reporting how many rows persisted (0 for
  stores that roll back).
"""

from __future__ import annotations

from typing import Any, Protocol

from .filters import Predicate
from .registry import EntityKind

Record = dict[str, Any]


class EntityStore(Protocol):
    async def query(self, kind: EntityKind, predicate: Predicate, limit: int) -> list[Record]: ...

    async def fetch_by_ids(self, kind: EntityKind, ids: list[str]) -> list[Record]: ...

    async def bulk_update(self, kind: EntityKind, ids: list[str], field: str, value: Any) -> int: ...

    async def list_options(self, relation_entity: str) -> list[dict[str, str]]: ...


def relation_option(record_id: Any, label: Any) -> dict[str, str]:
    """One `{id, displayName, name}` option; the label falls back to the id."""
    text = str(label if label is not None else record_id)
    # The admin select reads `name`.
    return {"id": str(record_id), "displayName": text, "name": text}
