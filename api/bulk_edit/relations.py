"""
Relation resolver.

Resolves relation fields to `{id, displayName}` options, both for UI selects
and for validating relation-typed mutation values.

Options are cached per relation entity for one operator session. Sessions
are keyed by operator id and end explicitly (`ResolverSessions.end`) or after
an idle TTL. Execute always asks for a fresh lookup, so a stale cache can only
affect labels, never what gets written.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from core import settings

from . import registry
from .store import EntityStore

logger = logging.getLogger(__name__)

Option = dict[str, str]


class RelationResolver:
    def __init__(self, store: EntityStore) -> None:
        self.store = store
        self._cache: dict[str, list[Option]] = {}

    async def list_options(self, relation_entity: str, *, fresh: bool = False) -> list[Option]:
        source = registry.relation_source(relation_entity)
        if not fresh and source.name in self._cache:
            return self._cache[source.name]
        options = await self.store.list_options(source.name)
        self._cache[source.name] = options
        logger.debug("relation_options_loaded entity=%s count=%s fresh=%s", source.name, len(options), fresh)
        return options

    async def exists(self, relation_entity: str, record_id: str, *, fresh: bool = False) -> bool:
        options = await self.list_options(relation_entity, fresh=fresh)
        return any(o["id"] == record_id for o in options)

    async def display_for(self, relation_entity: str, record_id: str | None) -> str:
        if record_id is None:
            return ""
        for option in await self.list_options(relation_entity):
            if option["id"] == str(record_id):
                return option["displayName"]
        return str(record_id)

    def invalidate(self) -> None:
        self._cache.clear()


class ResolverSessions:
    """
    One RelationResolver per operator, dropped after `ttl_s` idle seconds.
    """

    def __init__(
        self,
        *,
        ttl_s: Callable[[], int] = settings.relation_session_ttl_s,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_s = ttl_s
        self._clock = clock
        self._sessions: dict[str, tuple[RelationResolver, float]] = {}

    def _expire(self, now: float) -> None:
        ttl = self._ttl_s()
        stale = [key for key, (_, seen) in self._sessions.items() if now - seen > ttl]
        for key in stale:
            del self._sessions[key]
        if stale:
            logger.debug("relation_sessions_expired count=%s", len(stale))

    def get(self, operator_id: str, store: EntityStore) -> RelationResolver:
        now = self._clock()
        self._expire(now)
        entry = self._sessions.get(operator_id)
        if entry is None or entry[0].store is not store:
            resolver = RelationResolver(store)
        else:
            resolver = entry[0]
        self._sessions[operator_id] = (resolver, now)
        return resolver

    def end(self, operator_id: str) -> bool:
        return self._sessions.pop(operator_id, None) is not None

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


sessions = ResolverSessions()
