"""Tests for signaldesk.market.cache — TTL expiry with an injected clock."""

from signaldesk.market.cache import TTLCache


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def test_set_then_get_returns_value():
    cache = TTLCache(clock=FakeClock())
    cache.set("quote:AAPL", 187.5, ttl=300)
    assert cache.get("quote:AAPL") == 187.5
    assert "quote:AAPL" in cache


def test_miss_returns_none():
    assert TTLCache(clock=FakeClock()).get("nope") is None


def test_entry_valid_until_expiry_instant():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.set("k", "v", ttl=60)
    clock.now += 60
    assert cache.get("k") == "v"


def test_expired_entry_is_miss_and_evicted():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.set("k", "v", ttl=60)
    clock.now += 60.01
    assert "k" not in cache
    assert cache.get("k") is None
    assert len(cache) == 0


def test_set_overwrites_and_refreshes_expiry():
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.set("k", 1, ttl=10)
    clock.now += 8
    cache.set("k", 2, ttl=10)
    clock.now += 8
    assert cache.get("k") == 2


def test_clear():
    cache = TTLCache(clock=FakeClock())
    cache.set("a", 1, ttl=10)
    cache.set("b", 2, ttl=10)
    cache.clear()
    assert len(cache) == 0
