"""Local expiring cache and the codec used to obfuscate its entries."""

from .codec import DEFAULT_CODEC_KEY, LocalDataCodec, decode, encode
from .store import InMemoryKeyValueStore, KeyValueStore, PostgresKeyValueStore
from .ttl import (
    ACCESS_KEY_PREFIX,
    CacheStorageError,
    DEFAULT_FETCH_TTL_MINUTES,
    DEFAULT_HIGH_WATER_BYTES,
    DEFAULT_STALE_MAX_AGE,
    MaintenanceReport,
    TTLCache,
    access_key,
    fetch_cache_key,
)

__all__ = [
    "ACCESS_KEY_PREFIX",
    "CacheStorageError",
    "DEFAULT_CODEC_KEY",
    "DEFAULT_FETCH_TTL_MINUTES",
    "DEFAULT_HIGH_WATER_BYTES",
    "DEFAULT_STALE_MAX_AGE",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "LocalDataCodec",
    "MaintenanceReport",
    "PostgresKeyValueStore",
    "TTLCache",
    "access_key",
    "decode",
    "encode",
    "fetch_cache_key",
]
