import pytest

from cdnsync.lru import LRUCache


def test_new_cache_is_empty():
    cache = LRUCache()
    assert len(cache) == 0
    assert "a" not in cache


def test_evict_returns_oldest_first():
    cache = LRUCache()
    for key in ("a", "b", "c"):
        cache.set(key, 1)
    assert [cache.evict(), cache.evict(), cache.evict()] == ["a", "b", "c"]
    assert len(cache) == 0


def test_touch_moves_to_most_recent():
    cache = LRUCache()
    cache.set("a", 10)
    cache.set("b", 20)
    cache.set("c", 30)
    assert cache.touch("a") == 10
    assert cache.evict() == "b"
    assert cache.evict() == "c"
    assert cache.evict() == "a"


def test_set_existing_updates_value_and_order():
    cache = LRUCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("a", 5)
    assert len(cache) == 2
    assert cache.touch("a") == 5
    assert cache.evict() == "b"


def test_touch_missing_raises():
    cache = LRUCache()
    with pytest.raises(KeyError):
        cache.touch("missing")


def test_evict_empty_raises():
    cache = LRUCache()
    with pytest.raises(KeyError):
        cache.evict()


def test_discard_removes_key():
    cache = LRUCache()
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    cache.discard("b")
    assert "b" not in cache
    assert len(cache) == 2
    assert cache.evict() == "a"
    assert cache.evict() == "c"


def test_discard_missing_is_harmless():
    cache = LRUCache()
    cache.set("a", 1)
    cache.discard("zzz")
    assert len(cache) == 1
    assert "a" in cache


def test_discard_only_entry_then_reuse():
    cache = LRUCache()
    cache.set("a", 1)
    cache.discard("a")
    assert len(cache) == 0
    cache.set("b", 2)
    assert cache.evict() == "b"