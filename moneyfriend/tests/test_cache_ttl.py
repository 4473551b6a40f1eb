from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from moneyfriend.app.cache import (
    CacheStorageError,
    InMemoryKeyValueStore,
    LocalDataCodec,
    MaintenanceReport,
    TTLCache,
    access_key,
    fetch_cache_key,
)


class Clock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FailingStore:
    def get(self, key: str):
        raise RuntimeError("storage offline")

    def set(self, key: str, value: str) -> None:
        raise RuntimeError("storage offline")

    def delete(self, key: str) -> None:
        raise RuntimeError("storage offline")

    def keys(self) -> List[str]:
        raise RuntimeError("storage offline")


@pytest.fixture
def clock() -> Clock:
    return Clock(datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def cache(store: InMemoryKeyValueStore, clock: Clock) -> TTLCache:
    return TTLCache(store, codec=LocalDataCodec("test-key"), clock=clock)


def test_set_then_get_returns_value_and_tracks_access(cache: TTLCache, store: InMemoryKeyValueStore, clock: Clock) -> None:
    assert cache.set("profile", {"subscription_type": "trial"}, 30) is True

    assert cache.get("profile") == {"subscription_type": "trial"}
    assert "profile" in store
    assert store.get(access_key("profile")) == clock.now.isoformat()


def test_entry_is_stored_obfuscated(cache: TTLCache, store: InMemoryKeyValueStore) -> None:
    cache.set("profile", {"subscription_type": "pro_6m"}, 30)

    raw = store.get("profile")
    assert "pro_6m" not in raw
    assert LocalDataCodec("test-key").decode(raw)["data"] == {"subscription_type": "pro_6m"}


def test_expired_entry_reads_as_miss_and_is_removed(cache: TTLCache, store: InMemoryKeyValueStore, clock: Clock) -> None:
    cache.set("wallets", [1, 2], 30)

    clock.advance(minutes=30)
    assert cache.get("wallets") == [1, 2]

    clock.advance(minutes=1)
    assert "wallets" in store
    assert cache.get("wallets") is None
    assert "wallets" not in store
    assert access_key("wallets") not in store


def test_missing_and_unreadable_entries_are_misses(cache: TTLCache, store: InMemoryKeyValueStore) -> None:
    store.set("garbage", "%%% not an entry %%%")

    assert cache.get("absent") is None
    assert cache.get("garbage") is None


def test_unserializable_value_is_not_written(cache: TTLCache, store: InMemoryKeyValueStore) -> None:
    assert cache.set("bad", {"when": object()}, 10) is False
    assert len(store) == 0


def test_delete_removes_entry_and_access_key(cache: TTLCache, store: InMemoryKeyValueStore) -> None:
    cache.set("profile", {"a": 1}, 10)
    cache.delete("profile")

    assert len(store) == 0


def test_get_or_load_calls_loader_once(cache: TTLCache) -> None:
    calls: List[int] = []

    def loader() -> List[dict]:
        calls.append(1)
        return [{"id": 1}]

    assert cache.get_or_load("fetch_wallets", loader) == [{"id": 1}]
    assert cache.get_or_load("fetch_wallets", loader) == [{"id": 1}]
    assert len(calls) == 1


def test_get_or_load_does_not_cache_none(cache: TTLCache, store: InMemoryKeyValueStore) -> None:
    assert cache.get_or_load("fetch_nothing", lambda: None) is None
    assert len(store) == 0


def test_sweep_removes_expired_unreadable_and_orphans(cache: TTLCache, store: InMemoryKeyValueStore, clock: Clock) -> None:
    cache.set("short", 1, 10)
    cache.set("long", 2, 60)
    store.set("junk", "not-a-payload")
    store.set(access_key("ghost"), clock.now.isoformat())

    clock.advance(minutes=30)
    removed = cache.sweep_expired()

    assert removed == 2
    assert sorted(store.keys()) == sorted(["long", access_key("long")])
    assert cache.get("long") == 2


def test_evict_stale_uses_last_access_time(cache: TTLCache, store: InMemoryKeyValueStore, clock: Clock) -> None:
    ten_days = 10 * 24 * 60
    cache.set("untouched", "a", ten_days)
    cache.set("recent", "b", ten_days)

    clock.advance(days=1)
    assert cache.get("recent") == "b"
    clock.advance(hours=36)

    assert cache.evict_stale() == 1
    assert "untouched" not in store
    assert access_key("untouched") not in store
    assert cache.get("recent") == "b"


def test_usage_counts_two_bytes_per_character() -> None:
    cache = TTLCache(InMemoryKeyValueStore({"ab": "cde", "f": ""}))

    assert cache.usage_bytes() == (2 + 3) * 2 + 1 * 2


def test_maintain_below_high_water_only_sweeps(store: InMemoryKeyValueStore, clock: Clock) -> None:
    cache = TTLCache(store, clock=clock, high_water_bytes=10 * 1024 * 1024)
    cache.set("expired", 1, 5)
    cache.set("stale", 2, 10 * 24 * 60)

    clock.advance(days=3)
    report = cache.maintain()

    assert isinstance(report, MaintenanceReport)
    assert report.expired_removed == 1
    assert report.stale_removed == 0
    assert "stale" in store
    assert report.usage_after < report.usage_before
    assert report.over_high_water is False


def test_maintain_above_high_water_evicts_stale(store: InMemoryKeyValueStore, clock: Clock) -> None:
    cache = TTLCache(store, clock=clock, high_water_bytes=0)
    cache.set("stale", 2, 10 * 24 * 60)
    clock.advance(days=1)
    cache.set("fresh", 3, 10 * 24 * 60)

    clock.advance(days=1, hours=12)
    report = cache.maintain()

    assert report.stale_removed == 1
    assert "stale" not in store
    assert "fresh" in store
    assert report.to_dict()["over_high_water"] is True


def test_store_failures_never_escape(clock: Clock) -> None:
    cache = TTLCache(FailingStore(), clock=clock)

    assert cache.set("k", 1, 10) is False
    assert cache.get("k") is None
    cache.delete("k")
    assert cache.sweep_expired() == 0
    assert cache.evict_stale() == 0
    assert cache.usage_bytes() == 0
    assert cache.maintain().expired_removed == 0


def test_fetch_cache_key_format() -> None:
    key = fetch_cache_key("transactions", "id,amount", {"wallet_id": 3}, {"date": "desc"}, 50)

    assert key == 'fetch_transactions_id,amount_{"wallet_id": 3}_{"date": "desc"}_50'
    assert fetch_cache_key("wallets") == "fetch_wallets_*_{}_{}_all"


def test_strict_access_surfaces_store_failures(clock: Clock) -> None:
    cache = TTLCache(FailingStore(), clock=clock)

    with pytest.raises(CacheStorageError):
        cache.get("k", strict=True)
    with pytest.raises(CacheStorageError):
        cache.set("k", 1, 10, strict=True)


def test_strict_read_still_treats_absent_keys_as_misses(cache: TTLCache) -> None:
    assert cache.get("absent", strict=True) is None


def test_get_or_load_force_bypasses_cached_value(cache: TTLCache) -> None:
    versions = iter([["v1"], ["v2"]])

    assert cache.get_or_load("fetch_wallets", lambda: next(versions)) == ["v1"]
    assert cache.get_or_load("fetch_wallets", lambda: next(versions), force=True) == ["v2"]
    assert cache.get("fetch_wallets") == ["v2"]
