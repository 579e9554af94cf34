from rentscout.models import Listing, SearchResultSet
from rentscout.services.result_cache import InMemoryKVStore, ResultCache

KEY = "https://www.redfin.com/zipcode/33602"


class _FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _result(enriched=False):
    result = SearchResultSet.from_listings(KEY, [Listing(address="1 Main St", price=250_000, hoa=100)])
    return result.superseded_by(result.listings, enriched=enriched)


def test_round_trip_returns_equal_copy():
    cache = ResultCache()
    result = _result()

    cache.put(KEY, result)
    cached = cache.get(KEY)

    assert cached == result
    assert cached is not result
    assert cached.listings[0].hoa == 100


def test_entries_expire_after_ttl():
    clock = _FakeClock()
    cache = ResultCache(store=InMemoryKVStore(clock=clock), default_ttl=60)
    cache.put(KEY, _result())

    clock.now += 59
    assert cache.get(KEY) is not None

    clock.now += 1
    assert cache.get(KEY) is None


def test_expired_entries_are_swept_on_write():
    clock = _FakeClock()
    store = InMemoryKVStore(clock=clock)
    for i in range(1000):
        store.put(f"search-{i}", "{}", expiration_ttl=1)
    store.put("no-ttl", "{}")

    clock.now += 2
    store.put("fresh", "{}", expiration_ttl=60)

    assert len(store) == 2
    assert store.get("no-ttl") == "{}"
    assert store.get("fresh") == "{}"


def test_sweep_keeps_live_entries():
    clock = _FakeClock()
    store = InMemoryKVStore(clock=clock)
    store.put("short", "a", expiration_ttl=1)
    store.put("long", "b", expiration_ttl=100)

    clock.now += 5
    store.put("other", "c", expiration_ttl=100)

    assert len(store) == 2
    assert store.get("short") is None
    assert store.get("long") == "b"

    # The next deadline is now the long entries; nothing to sweep before it
    clock.now += 50
    store.put("another", "d", expiration_ttl=1)
    assert len(store) == 3


def test_keys_are_normalized():
    cache = ResultCache()
    cache.put(KEY + "/", _result())

    assert cache.get(KEY.upper().replace("ZIPCODE", "zipcode")) is not None


def test_put_if_present_replaces_live_entry():
    cache = ResultCache()
    cache.put(KEY, _result())

    assert cache.put_if_present(KEY, _result(enriched=True)) is True
    assert cache.get(KEY).enriched is True


def test_put_if_present_drops_write_after_expiry():
    clock = _FakeClock()
    cache = ResultCache(store=InMemoryKVStore(clock=clock), default_ttl=10)
    cache.put(KEY, _result())
    clock.now += 11

    assert cache.put_if_present(KEY, _result(enriched=True)) is False
    assert cache.get(KEY) is None


def test_unreadable_entry_is_a_miss():
    store = InMemoryKVStore()
    cache = ResultCache(store=store)
    store.put(KEY, "not json", expiration_ttl=60)

    assert cache.get(KEY) is None
