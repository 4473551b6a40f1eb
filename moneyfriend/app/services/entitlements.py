"""Application wiring for subscription entitlements and the local cache."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Any, Callable, Mapping, Optional

from dotenv import load_dotenv

from ...config import EngineConfig, load_engine_config
from ...logging_setup import configure_logging
from ...storage_monitor import StorageMonitor, start_storage_monitor
from ..cache import InMemoryKeyValueStore, KeyValueStore, LocalDataCodec, TTLCache, fetch_cache_key
from ..entitlements import ProfileFetcher, SubscriptionSessionCache
from ..feature_gates import DailyFeatureGate

logger = logging.getLogger("moneyfriend.entitlements")


@dataclass
class EntitlementEngine:
    """The collaborators a client needs to gate features for one user."""

    config: EngineConfig
    cache: TTLCache
    gate: DailyFeatureGate
    session: Optional[SubscriptionSessionCache] = None

    def cached_fetch(
        self,
        table: str,
        loader: Callable[[], Any],
        *,
        columns: Optional[str] = None,
        filter: Optional[Mapping[str, Any]] = None,
        order: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        force: bool = False,
    ) -> Any:
        """Serve a read-only list query from the cache, loading it on a miss.

        ``force=True`` reloads through ``loader`` and replaces the cached copy.
        """

        key = fetch_cache_key(table, columns, filter, order, limit)
        return self.cache.get_or_load(key, loader, self.config.fetch_cache_ttl_minutes, force=force)

    def start_maintenance(self) -> StorageMonitor:
        return start_storage_monitor(self.cache, interval=self.config.cache_sweep_interval_seconds)


def bootstrap() -> EngineConfig:
    """Load ``.env``, read the engine configuration and configure logging."""

    load_dotenv()
    config = load_engine_config()
    configure_logging(config)
    if not config.encryption_key:
        logger.warning("ENCRYPTION_KEY not set; local cache uses the built-in codec key")
    return config


def build_engine(
    config: EngineConfig,
    *,
    store: Optional[KeyValueStore] = None,
    fetcher: Optional[ProfileFetcher] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> EntitlementEngine:
    """Assemble cache, daily gate and (when a fetcher is given) the session cache."""

    cache = TTLCache(
        store if store is not None else InMemoryKeyValueStore(),
        codec=LocalDataCodec(config.encryption_key),
        clock=clock,
        high_water_bytes=config.cache_high_water_bytes,
        stale_max_age=timedelta(hours=config.cache_stale_max_age_hours),
    )
    gate = DailyFeatureGate(cache, clock=clock, counter_ttl_hours=config.counter_ttl_hours)
    session = SubscriptionSessionCache(fetcher, clock=clock) if fetcher is not None else None
    return EntitlementEngine(config=config, cache=cache, gate=gate, session=session)


@lru_cache(maxsize=1)
def get_entitlement_engine() -> EntitlementEngine:
    return build_engine(bootstrap())


__all__ = ["EntitlementEngine", "bootstrap", "build_engine", "get_entitlement_engine"]
