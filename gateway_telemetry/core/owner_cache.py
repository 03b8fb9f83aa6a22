"""Session-scoped cache of connection/endpoint owner lookups."""

from __future__ import annotations

import logging
from typing import Hashable

from ..types import OwnerResolver

logger = logging.getLogger(__name__)


class OwnerLookupCache:
    """Memoize ``resolve_owner`` results for the active session.

    Only successful lookups are cached; resolver errors propagate to the
    caller and the next ``get`` retries. Switching to a different session
    key drops every cached entry.
    """

    def __init__(self, resolver: OwnerResolver, session: Hashable | None = None) -> None:
        self.resolver = resolver
        self.session = session
        self._owners: dict[int, int | None] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._owners)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._owners

    async def get(self, entity_id: int) -> int | None:
        if entity_id in self._owners:
            self.hits += 1
            return self._owners[entity_id]
        self.misses += 1
        owner = await self.resolver.resolve_owner(entity_id)
        self._owners[entity_id] = owner
        return owner

    def clear(self) -> None:
        self._owners.clear()

    def switch_session(self, session: Hashable | None) -> None:
        if session == self.session:
            return
        logger.debug("Owner cache reset for session change %r -> %r", self.session, session)
        self.session = session
        self.clear()
