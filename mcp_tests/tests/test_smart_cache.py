import asyncio

import pytest

from core.cache import BoundedCache
from core.errors import ValidationError
from core.smart_cache import SmartCache


def _smart() -> SmartCache:
    return SmartCache(BoundedCache(maxsize=10, ttl_seconds=60.0))


def test_invalidate_dependency_removes_registered_keys():
    c = _smart()
    c.set_with_dependencies("course-1", {"id": 1}, ["course:1"])
    c.set_with_dependencies("curriculum-1", ["intro"], ["course:1", "curriculum"])
    c.set_with_dependencies("course-2", {"id": 2}, ["course:2"])

    assert c.invalidate_dependency("course:1") == 2

    assert not c.has("course-1")
    assert not c.has("curriculum-1")
    assert c.has("course-2")
    assert c.invalidate_dependency("course:1") == 0


def test_invalidate_dependency_counts_only_resident_keys():
    c = _smart()
    c.set_with_dependencies("a", 1, ["dep"])
    c.set_with_dependencies("b", 2, ["dep"])
    c.store.delete("a")

    assert c.invalidate_dependency("dep") == 1


def test_dependencies_of_and_invalidate_key():
    c = _smart()
    c.set_with_dependencies("a", 1, ["x", "y", " "])

    assert c.dependencies_of("a") == {"x", "y"}

    assert c.invalidate("a") is True
    assert c.dependencies_of("a") == set()


def test_dependencies_must_not_be_plain_string():
    c = _smart()
    with pytest.raises(ValidationError):
        c.set_with_dependencies("a", 1, "dep")


@pytest.mark.asyncio
async def test_get_or_fetch_with_dependencies():
    c = _smart()
    calls = []

    async def fetch():
        calls.append(1)
        return "v"

    assert await c.get_or_fetch_with_dependencies("k", fetch, ["user:7"]) == "v"
    assert await c.get_or_fetch_with_dependencies("k", fetch, ["user:7"]) == "v"
    assert len(calls) == 1

    assert c.invalidate_dependency("user:7") == 1
    assert await c.get_or_fetch_with_dependencies("k", fetch, ["user:7"]) == "v"
    assert len(calls) == 2


def test_clear_drops_dependency_map():
    c = _smart()
    c.set_with_dependencies("a", 1, ["dep"])
    c.clear()

    assert c.dependencies_of("a") == set()
    assert len(c.store) == 0


@pytest.mark.asyncio
async def test_invalidate_dependency_during_fetch_discards_value():
    c = _smart()
    gate = asyncio.Event()

    async def fetch():
        await gate.wait()
        return "stale"

    pending = asyncio.create_task(c.get_or_fetch_with_dependencies("k", fetch, ["course:1"]))
    await asyncio.sleep(0.01)

    c.invalidate_dependency("course:1")
    gate.set()

    assert await pending == "stale"
    assert not c.has("k")
    assert c.dependencies_of("k") == set()
