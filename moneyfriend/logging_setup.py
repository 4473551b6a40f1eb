"""Logging configuration with masking of sensitive values."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .config import EngineConfig

SENSITIVE_FIELDS = frozenset(
    {
        "password",
        "token",
        "access_token",
        "refresh_token",
        "api_key",
        "key",
        "secret",
        "credential",
        "pin",
        "balance",
        "encryption_key",
    }
)
REDACTED = "[REDACTED]"

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def redact(value: Any) -> Any:
    """Return a copy of ``value`` with sensitive mapping keys masked, recursively."""

    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in SENSITIVE_FIELDS else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(item) for item in value)
    return value


class RedactingFilter(logging.Filter):
    """Masks sensitive keys in ``extra`` attributes and dict arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        for attr, value in list(vars(record).items()):
            if attr in _RESERVED_ATTRS:
                continue
            if attr.lower() in SENSITIVE_FIELDS:
                setattr(record, attr, REDACTED)
            elif isinstance(value, Mapping):
                setattr(record, attr, redact(value))

        if isinstance(record.args, Mapping):
            record.args = redact(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(redact(arg) for arg in record.args)
        return True


def configure_logging(config: EngineConfig, *, handler: Optional[logging.Handler] = None) -> logging.Handler:
    """Attach a single formatted handler to the ``moneyfriend`` and ``entitlements`` loggers."""

    target = handler or logging.StreamHandler()
    target.setFormatter(logging.Formatter(LOG_FORMAT))
    if config.log_redact:
        target.addFilter(RedactingFilter())

    level = logging.getLevelName(config.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    for name in ("moneyfriend", "entitlements"):
        named = logging.getLogger(name)
        for existing in list(named.handlers):
            if getattr(existing, "_moneyfriend_handler", False):
                named.removeHandler(existing)
        named.addHandler(target)
        named.setLevel(level)
    target._moneyfriend_handler = True  # type: ignore[attr-defined]
    return target
