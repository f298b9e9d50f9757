"""Tests for the correlation registry."""

import asyncio

import pytest

from hipbot.correlation import CorrelationRegistry, new_id
from hipbot.errors import CorrelationError


class TestNewId:

    def test_unique(self):
        assert new_id() != new_id()

    def test_prefix(self):
        assert new_id("profile:").startswith("profile:")


class TestRegistry:

    @pytest.mark.asyncio
    async def test_resolve_completes_future(self):
        registry = CorrelationRegistry()
        future = registry.register("abc")
        assert not future.done()

        assert registry.resolve("abc", "value") is True
        assert await future == "value"
        assert "abc" not in registry
        assert registry.pending == 0

    @pytest.mark.asyncio
    async def test_reuse_of_live_id_rejected(self):
        registry = CorrelationRegistry()
        registry.register("abc")
        with pytest.raises(CorrelationError):
            registry.register("abc")

    @pytest.mark.asyncio
    async def test_id_reusable_after_resolve(self):
        registry = CorrelationRegistry()
        registry.register("abc")
        registry.resolve("abc")
        future = registry.register("abc")
        assert not future.done()

    @pytest.mark.asyncio
    async def test_unknown_id_is_noop(self):
        registry = CorrelationRegistry()
        assert registry.resolve("nope") is False
        assert registry.resolve(None) is False

    @pytest.mark.asyncio
    async def test_duplicate_resolve_ignored(self):
        registry = CorrelationRegistry()
        future = registry.register("abc")
        registry.resolve("abc", 1)
        assert registry.resolve("abc", 2) is False
        assert future.result() == 1

    @pytest.mark.asyncio
    async def test_unrelated_id_does_not_resolve(self):
        registry = CorrelationRegistry()
        future = registry.register("abc")
        registry.resolve("xyz", "other")
        assert not future.done()
        assert registry.pending == 1

    @pytest.mark.asyncio
    async def test_no_timeout_by_default(self):
        registry = CorrelationRegistry()
        future = registry.register("abc")
        await asyncio.sleep(0.05)
        assert not future.done()
        assert "abc" in registry

    @pytest.mark.asyncio
    async def test_timeout_expires_entry(self):
        registry = CorrelationRegistry(timeout=0.01)
        future = registry.register("abc")
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(future, timeout=1.0)
        assert "abc" not in registry

    @pytest.mark.asyncio
    async def test_resolve_before_timeout(self):
        registry = CorrelationRegistry(timeout=0.05)
        future = registry.register("abc")
        registry.resolve("abc", "done")
        await asyncio.sleep(0.1)
        assert future.result() == "done"

    @pytest.mark.asyncio
    async def test_discard(self):
        registry = CorrelationRegistry()
        future = registry.register("abc")
        assert registry.discard("abc") is True
        assert future.cancelled()
        assert registry.discard("abc") is False
