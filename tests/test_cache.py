import pytest

from drivesync.cache import TTLCache, fingerprint


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_expiry():
    clock = FakeClock()
    cache = TTLCache(default_ttl=10, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2, ttl=100)
    assert cache.get("a") == 1
    clock.now += 10
    assert cache.get("a") is None
    assert "a" not in cache.keys()
    assert cache.get("b") == 2


def test_capacity():
    clock = FakeClock()
    cache = TTLCache(max_entries=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    assert len(cache) == 2
    assert cache.get("a") is None
    assert cache.get("c") == 3

    # expired entries go before live ones
    cache = TTLCache(max_entries=2, clock=clock)
    cache.set("old", 1)
    cache.set("short", 2, ttl=1)
    clock.now += 5
    cache.set("new", 3)
    assert set(cache.keys()) == {"old", "new"}

    with pytest.raises(ValueError):
        TTLCache(max_entries=0)


def test_invalidate():
    cache = TTLCache()
    for path in ["/", "/docs", "/docs/2024", "/docsx"]:
        cache.set(fingerprint("list", "u1", path, 1000), path)
    cache.set(fingerprint("list", "u2", "/docs", 1000), "other owner")
    cache.set(fingerprint("search", "u1", "", "report"), "search")

    assert cache.invalidate("list:u1:/docs|") == 1
    assert cache.invalidate("list:u1:/docs/") == 1
    assert cache.get(fingerprint("list", "u1", "/docsx", 1000)) == "/docsx"
    assert cache.get(fingerprint("list", "u2", "/docs", 1000)) == "other owner"
    assert cache.invalidate("search:u1:") == 1
    assert cache.invalidate("nothing") == 0
    cache.clear()
    assert len(cache) == 0


def test_fingerprint():
    assert fingerprint("list", "u1", "/docs", 1000, None, False) == "list:u1:/docs|1000||False"
    assert fingerprint("list", "u1", "/docs", 1000, "tok") != fingerprint("list", "u1", "/docs", 1000, None)
    assert fingerprint("search", "u1", "", "q") == "search:u1:|q"
