"""Background maintenance of the local cache store."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Event, Lock, Thread
from typing import Dict, Optional

from .app.cache import MaintenanceReport, TTLCache

logger = logging.getLogger(__name__)

_monitor_lock = Lock()
_monitor: Optional["StorageMonitor"] = None

_METRICS: Dict[str, object] = {
    "runs": 0,
    "expired_removed": 0,
    "stale_removed": 0,
    "last_usage_bytes": None,
    "last_run_at": None,
    "last_error": None,
}
_metrics_lock = Lock()


def _reset_metrics_for_testing() -> None:
    with _metrics_lock:
        _METRICS.update(
            runs=0,
            expired_removed=0,
            stale_removed=0,
            last_usage_bytes=None,
            last_run_at=None,
            last_error=None,
        )


def get_maintenance_metrics() -> Dict[str, object]:
    with _metrics_lock:
        metrics = dict(_METRICS)
    last_run_at = metrics.get("last_run_at")
    if isinstance(last_run_at, datetime):
        metrics["last_run_at"] = last_run_at.isoformat()
    return metrics


def run_maintenance(cache: TTLCache, *, now: Optional[datetime] = None) -> Optional[MaintenanceReport]:
    """Run one maintenance pass and record metrics; never raises."""

    current_time = now or datetime.now(timezone.utc)
    if current_time.tzinfo is None:
        current_time = current_time.replace(tzinfo=timezone.utc)

    try:
        report = cache.maintain(current_time)
    except Exception as exc:  # pragma: no cover
        with _metrics_lock:
            _METRICS["runs"] = int(_METRICS.get("runs", 0)) + 1
            _METRICS["last_run_at"] = current_time
            _METRICS["last_error"] = f"{type(exc).__name__}: {exc}"
        logger.exception("Cache maintenance failed")
        return None

    with _metrics_lock:
        _METRICS["runs"] = int(_METRICS.get("runs", 0)) + 1
        _METRICS["expired_removed"] = int(_METRICS.get("expired_removed", 0)) + report.expired_removed
        _METRICS["stale_removed"] = int(_METRICS.get("stale_removed", 0)) + report.stale_removed
        _METRICS["last_usage_bytes"] = report.usage_after
        _METRICS["last_run_at"] = current_time
        _METRICS["last_error"] = None

    if report.over_high_water:
        logger.warning(
            "Local cache still above high-water mark after maintenance",
            extra=report.to_dict(),
        )
    else:
        logger.debug("Cache maintenance completed", extra=report.to_dict())
    return report


class StorageMonitor(Thread):
    """Daemon thread sweeping the cache on a fixed interval."""

    def __init__(self, cache: TTLCache, *, interval: float = 60.0, initial_delay: float = 0.0):
        super().__init__(daemon=True, name="cache-storage-monitor")
        self.cache = cache
        self._interval = max(1.0, interval)
        self._initial_delay = max(0.0, initial_delay)
        self._stop_event = Event()

    def stop(self) -> None:
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def run(self) -> None:  # pragma: no cover - thread execution
        if self._stop_event.wait(self._initial_delay):
            return
        while not self._stop_event.is_set():
            run_maintenance(self.cache)
            if self._stop_event.wait(self._interval):
                break


def start_storage_monitor(cache: TTLCache, *, interval: float = 60.0) -> StorageMonitor:
    """Start the process-wide monitor, or return the one already running."""

    global _monitor
    with _monitor_lock:
        if _monitor is not None and _monitor.is_alive() and not _monitor.stopped:
            return _monitor
        monitor = StorageMonitor(cache, interval=interval)
        monitor.start()
        _monitor = monitor
        logger.info("Started cache storage monitor", extra={"interval_seconds": interval})
        return monitor


def stop_storage_monitor(timeout: float = 5.0) -> None:
    global _monitor
    with _monitor_lock:
        monitor = _monitor
        _monitor = None
    if monitor is None:
        return
    monitor.stop()
    if monitor.is_alive():
        monitor.join(timeout)
