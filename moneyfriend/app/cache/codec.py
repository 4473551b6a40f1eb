"""Reversible obfuscation for values kept in the local store.

The scheme is canonical JSON, base64, a repeating-key XOR and base64 again.
It keeps cached profile data and usage counters from being readable or
trivially editable by someone browsing the store. It is NOT encryption in the
cryptographic sense: anyone holding the key (or a few samples) can recover
the plaintext, so nothing secret should rely on it.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import Any, Optional

logger = logging.getLogger("entitlements.codec")

DEFAULT_CODEC_KEY = "moneyfriend-local-cache-key"


def _key_bytes(key: Optional[str]) -> bytes:
    return (key or DEFAULT_CODEC_KEY).encode("utf-8")


def _xor(data: bytes, key: bytes) -> bytes:
    key_length = len(key)
    return bytes(byte ^ key[index % key_length] for index, byte in enumerate(data))


def encode(value: Any, key: Optional[str] = None) -> str:
    """Serialize ``value`` to an obfuscated, text-safe string.

    Raises :class:`ValueError` when ``value`` is not JSON serializable.
    """

    try:
        serialized = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Value of type {type(value).__name__} is not serializable") from exc

    inner = base64.b64encode(serialized.encode("utf-8"))
    return base64.b64encode(_xor(inner, _key_bytes(key))).decode("ascii")


def decode(payload: Optional[str], key: Optional[str] = None) -> Any:
    """Reverse :func:`encode`; returns ``None`` for anything it cannot read."""

    if not payload or not isinstance(payload, str):
        return None
    try:
        outer = base64.b64decode(payload.encode("ascii"), validate=True)
        inner = _xor(outer, _key_bytes(key))
        serialized = base64.b64decode(inner, validate=True).decode("utf-8")
        return json.loads(serialized)
    except (binascii.Error, UnicodeError, ValueError) as exc:
        logger.warning("Discarding unreadable cache payload (%s)", type(exc).__name__)
        return None


class LocalDataCodec:
    """Codec bound to a fixed key, injected into :class:`TTLCache`."""

    def __init__(self, key: Optional[str] = None) -> None:
        self._key = key or DEFAULT_CODEC_KEY

    def encode(self, value: Any) -> str:
        return encode(value, self._key)

    def decode(self, payload: Optional[str]) -> Any:
        return decode(payload, self._key)
