from bbq_booking.services import cache
from bbq_booking.services.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_expired_entries_are_purged_on_write(monkeypatch):
    clock = FakeClock()
    monkeypatch.setattr(cache.time, "monotonic", clock)
    c = TTLCache(30)

    for day in range(100):
        c.set(("facility", day), {"available": {1, 2}})
    assert len(c) == 100

    clock.now += 31
    c.set(("facility", "today"), {"available": {3}})
    assert len(c) == 1
    assert c.get(("facility", 0)) is None
    assert c.get(("facility", "today")) == {"available": {3}}


def test_maxsize_evicts_oldest(monkeypatch):
    monkeypatch.setattr(cache.time, "monotonic", FakeClock())
    c = TTLCache(30, maxsize=3)
    for key in "abcd":
        c.set(key, key.upper())

    assert len(c) == 3
    assert c.get("a") is None
    assert c.get("d") == "D"


def test_rewriting_a_key_refreshes_its_position(monkeypatch):
    monkeypatch.setattr(cache.time, "monotonic", FakeClock())
    c = TTLCache(30, maxsize=2)
    c.set("a", 1)
    c.set("b", 2)
    c.set("a", 3)
    c.set("c", 4)

    assert c.get("b") is None
    assert c.get("a") == 3


def test_zero_ttl_disables_caching():
    c = TTLCache(0)
    c.set("a", 1)
    assert c.get("a") is None
    assert len(c) == 0
