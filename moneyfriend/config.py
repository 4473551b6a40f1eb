"""Engine configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
import os


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for the local cache, quota counters and logging."""

    encryption_key: Optional[str]
    cache_high_water_kb: int
    cache_sweep_interval_seconds: float
    cache_stale_max_age_hours: float
    counter_ttl_hours: float
    fetch_cache_ttl_minutes: float
    log_level: str
    log_redact: bool
    db_config: Dict[str, Any] = field(default_factory=dict)

    @property
    def cache_high_water_bytes(self) -> int:
        return self.cache_high_water_kb * 1024


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def load_engine_config(env: Optional[Mapping[str, str]] = None) -> EngineConfig:
    """Load :class:`EngineConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    encryption_key = env_mapping.get("ENCRYPTION_KEY") or None

    cache_high_water_kb = max(1, _to_int(env_mapping.get("CACHE_HIGH_WATER_KB"), default=4096))
    sweep_interval = max(1.0, _to_float(env_mapping.get("CACHE_SWEEP_INTERVAL_SECONDS"), default=60.0))
    stale_max_age = max(1.0, _to_float(env_mapping.get("CACHE_STALE_MAX_AGE_HOURS"), default=48.0))
    counter_ttl = max(25.0, _to_float(env_mapping.get("COUNTER_TTL_HOURS"), default=36.0))
    fetch_ttl = max(1.0, _to_float(env_mapping.get("FETCH_CACHE_TTL_MINUTES"), default=30.0))

    log_level = (env_mapping.get("LOG_LEVEL") or "INFO").strip().upper() or "INFO"
    log_redact = _to_bool(env_mapping.get("LOG_REDACT"), default=True)

    db_config: Dict[str, Any] = {
        "host": env_mapping.get("DB_HOST", "127.0.0.1"),
        "port": _to_int(env_mapping.get("DB_PORT"), default=5432),
        "database": env_mapping.get("DB_NAME", "moneyfriend_db"),
        "user": env_mapping.get("DB_USER", "moneyfriend"),
        "password": env_mapping.get("DB_PASSWORD", "moneyfriend"),
    }

    return EngineConfig(
        encryption_key=encryption_key,
        cache_high_water_kb=cache_high_water_kb,
        cache_sweep_interval_seconds=sweep_interval,
        cache_stale_max_age_hours=stale_max_age,
        counter_ttl_hours=counter_ttl,
        fetch_cache_ttl_minutes=fetch_ttl,
        log_level=log_level,
        log_redact=log_redact,
        db_config=db_config,
    )
