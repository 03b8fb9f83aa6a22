"""Tests for OwnerLookupCache."""

from __future__ import annotations

import pytest

from gateway_telemetry.core.owner_cache import OwnerLookupCache
from gateway_telemetry.types import GatewayAPIError, OwnerResolver


class CountingResolver:
    def __init__(self, owners: dict[int, int]):
        self.owners = owners
        self.calls: list[int] = []

    async def resolve_owner(self, entity_id: int) -> int | None:
        self.calls.append(entity_id)
        if entity_id not in self.owners:
            raise GatewayAPIError("Connection not found", status_code=404)
        return self.owners[entity_id]


class TestOwnerLookupCache:
    def test_resolver_satisfies_protocol(self):
        assert isinstance(CountingResolver({}), OwnerResolver)

    @pytest.mark.asyncio
    async def test_hits_are_cached(self):
        resolver = CountingResolver({5: 42})
        cache = OwnerLookupCache(resolver, session="profile-1")
        assert await cache.get(5) == 42
        assert await cache.get(5) == 42
        assert resolver.calls == [5]
        assert (cache.hits, cache.misses) == (1, 1)
        assert 5 in cache

    @pytest.mark.asyncio
    async def test_failures_not_cached(self):
        resolver = CountingResolver({})
        cache = OwnerLookupCache(resolver)
        for _ in range(2):
            with pytest.raises(GatewayAPIError):
                await cache.get(9)
        assert resolver.calls == [9, 9]
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_session_switch_clears(self):
        resolver = CountingResolver({5: 42})
        cache = OwnerLookupCache(resolver, session="profile-1")
        await cache.get(5)
        cache.switch_session("profile-1")
        assert len(cache) == 1
        cache.switch_session("profile-2")
        assert len(cache) == 0
        await cache.get(5)
        assert resolver.calls == [5, 5]

    @pytest.mark.asyncio
    async def test_caches_are_independent(self):
        resolver = CountingResolver({1: 10})
        first, second = OwnerLookupCache(resolver), OwnerLookupCache(resolver)
        await first.get(1)
        assert 1 not in second
