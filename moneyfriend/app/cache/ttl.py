"""Expiring key-value cache layered over a :class:`KeyValueStore`.

Each entry is stored as ``{"data": ..., "expiresAt": ...}`` run through the
codec, and its last read time is kept under ``lastAccess_<key>``. Expiry is
lazy: a read past ``expiresAt`` behaves as a miss and deletes the entry, while
:meth:`TTLCache.sweep_expired` and :meth:`TTLCache.evict_stale` reclaim space
for entries nobody reads again.

Store and codec failures never propagate out of this class. A failed read is
a miss and a failed write reports ``False``; both are logged.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Mapping, Optional

from .codec import LocalDataCodec
from .store import KeyValueStore

logger = logging.getLogger("entitlements.cache")

ACCESS_KEY_PREFIX = "lastAccess_"
DEFAULT_HIGH_WATER_BYTES = 4 * 1024 * 1024
DEFAULT_STALE_MAX_AGE = timedelta(days=2)
DEFAULT_FETCH_TTL_MINUTES = 30


class CacheStorageError(RuntimeError):
    """The backing store failed during a strict read or write."""


def access_key(key: str) -> str:
    return f"{ACCESS_KEY_PREFIX}{key}"


def fetch_cache_key(
    table: str,
    columns: Optional[str] = None,
    filter: Optional[Mapping[str, Any]] = None,
    order: Optional[Mapping[str, Any]] = None,
    limit: Optional[int] = None,
) -> str:
    """Cache key for a read-only list query: ``fetch_{table}_{columns}_{filter}_{order}_{limit}``."""

    filter_part = json.dumps(dict(filter or {}), sort_keys=True, default=str)
    order_part = json.dumps(dict(order or {}), sort_keys=True, default=str)
    limit_part = str(limit) if limit else "all"
    return f"fetch_{table}_{columns or '*'}_{filter_part}_{order_part}_{limit_part}"


@dataclass(frozen=True)
class MaintenanceReport:
    """Outcome of a :meth:`TTLCache.maintain` pass."""

    expired_removed: int
    stale_removed: int
    usage_before: int
    usage_after: int
    high_water_bytes: int

    @property
    def over_high_water(self) -> bool:
        return self.usage_after > self.high_water_bytes

    def to_dict(self) -> dict[str, int | bool]:
        return {
            "expired_removed": self.expired_removed,
            "stale_removed": self.stale_removed,
            "usage_before": self.usage_before,
            "usage_after": self.usage_after,
            "high_water_bytes": self.high_water_bytes,
            "over_high_water": self.over_high_water,
        }


def _parse_timestamp(value: object) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class TTLCache:
    """Generic expiring cache with lazy expiry and size-driven maintenance."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        codec: Optional[LocalDataCodec] = None,
        clock: Optional[Callable[[], datetime]] = None,
        high_water_bytes: int = DEFAULT_HIGH_WATER_BYTES,
        stale_max_age: timedelta = DEFAULT_STALE_MAX_AGE,
    ) -> None:
        self._store = store
        self._codec = codec or LocalDataCodec()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._high_water_bytes = max(0, high_water_bytes)
        self._stale_max_age = stale_max_age

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def high_water_bytes(self) -> int:
        return self._high_water_bytes

    def _now(self, now: Optional[datetime] = None) -> datetime:
        current = now or self._clock()
        return current if current.tzinfo else current.replace(tzinfo=timezone.utc)

    def set(self, key: str, value: Any, ttl_minutes: float, *, strict: bool = False) -> bool:
        """Store ``value`` for ``ttl_minutes``; returns ``False`` if nothing was written.

        With ``strict=True`` a store failure raises :class:`CacheStorageError`
        instead of returning ``False``.
        """

        now = self._now()
        expires_at = now + timedelta(minutes=ttl_minutes)
        try:
            payload = self._codec.encode({"data": value, "expiresAt": expires_at.isoformat()})
        except ValueError:
            logger.warning("Cannot encode cache entry %s", key, exc_info=True)
            return False
        try:
            self._store.set(key, payload)
            self._store.set(access_key(key), now.isoformat())
        except Exception as exc:
            if strict:
                raise CacheStorageError(f"Cache write failed for {key}") from exc
            logger.warning("Cache write failed for %s", key, exc_info=True)
            return False
        return True

    def get(self, key: str, *, strict: bool = False) -> Any:
        """Return the cached value, or ``None`` when absent, unreadable or expired.

        With ``strict=True`` a store failure raises :class:`CacheStorageError`
        so callers can tell an outage from a miss.
        """

        try:
            raw = self._store.get(key)
        except Exception as exc:
            if strict:
                raise CacheStorageError(f"Cache read failed for {key}") from exc
            logger.warning("Cache read failed for %s", key, exc_info=True)
            return None
        if raw is None:
            return None

        entry = self._codec.decode(raw)
        if not isinstance(entry, dict):
            return None

        now = self._now()
        expires_at = _parse_timestamp(entry.get("expiresAt"))
        if expires_at is None or now > expires_at:
            self.delete(key)
            return None

        try:
            self._store.set(access_key(key), now.isoformat())
        except Exception:
            logger.debug("Could not refresh access time for %s", key, exc_info=True)
        return entry.get("data")

    def get_or_load(
        self,
        key: str,
        loader: Callable[[], Any],
        ttl_minutes: float = DEFAULT_FETCH_TTL_MINUTES,
        *,
        force: bool = False,
    ) -> Any:
        """Return the cached value or call ``loader`` and cache its result.

        ``force=True`` skips the cached value and reloads. Exceptions raised by
        ``loader`` propagate; ``None`` results are not cached.
        """

        if not force:
            cached = self.get(key)
            if cached is not None:
                return cached
        value = loader()
        if value is not None:
            self.set(key, value, ttl_minutes)
        return value

    def delete(self, key: str) -> None:
        try:
            self._store.delete(key)
            self._store.delete(access_key(key))
        except Exception:
            logger.warning("Cache delete failed for %s", key, exc_info=True)

    def _entry_keys(self) -> List[str]:
        return [key for key in self._store.keys() if not key.startswith(ACCESS_KEY_PREFIX)]

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Remove expired and unreadable entries; returns the number removed."""

        current = self._now(now)
        removed = 0
        try:
            keys = list(self._store.keys())
            entry_keys = {key for key in keys if not key.startswith(ACCESS_KEY_PREFIX)}
            for key in entry_keys:
                entry = self._codec.decode(self._store.get(key))
                expires_at = _parse_timestamp(entry.get("expiresAt")) if isinstance(entry, dict) else None
                if expires_at is None or expires_at < current:
                    self._store.delete(key)
                    self._store.delete(access_key(key))
                    removed += 1
            for key in keys:
                if key.startswith(ACCESS_KEY_PREFIX) and key[len(ACCESS_KEY_PREFIX):] not in entry_keys:
                    self._store.delete(key)
        except Exception:
            logger.warning("Expired cache sweep aborted", exc_info=True)
        if removed:
            logger.info("Removed %s expired cache entries", removed)
        return removed

    def evict_stale(self, max_age: Optional[timedelta] = None, now: Optional[datetime] = None) -> int:
        """Remove entries not read within ``max_age``; returns the number removed."""

        current = self._now(now)
        cutoff = current - (max_age if max_age is not None else self._stale_max_age)
        removed = 0
        freed = 0
        try:
            for key in self._entry_keys():
                last_access = _parse_timestamp(self._store.get(access_key(key)))
                if last_access is None or last_access >= cutoff:
                    continue
                value = self._store.get(key) or ""
                freed += len(value) * 2
                self._store.delete(key)
                self._store.delete(access_key(key))
                removed += 1
        except Exception:
            logger.warning("Stale cache eviction aborted", exc_info=True)
        if removed:
            logger.info("Evicted %s stale cache entries, freed about %.1f KB", removed, freed / 1024)
        return removed

    def usage_bytes(self) -> int:
        """Approximate storage footprint: key and value lengths, two bytes per character."""

        total = 0
        try:
            for key in self._store.keys():
                value = self._store.get(key) or ""
                total += (len(key) + len(value)) * 2
        except Exception:
            logger.warning("Could not measure cache usage", exc_info=True)
        return total

    def maintain(self, now: Optional[datetime] = None) -> MaintenanceReport:
        """Sweep expired entries, then evict stale ones if still above the high-water mark."""

        usage_before = self.usage_bytes()
        expired = self.sweep_expired(now)
        usage = self.usage_bytes()
        stale = 0
        if usage > self._high_water_bytes:
            logger.info(
                "Cache usage still high after sweep (%.1f KB), evicting stale entries",
                usage / 1024,
            )
            stale = self.evict_stale(now=now)
            usage = self.usage_bytes()
        return MaintenanceReport(
            expired_removed=expired,
            stale_removed=stale,
            usage_before=usage_before,
            usage_after=usage,
            high_water_bytes=self._high_water_bytes,
        )
