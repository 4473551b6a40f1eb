from __future__ import annotations

import pytest

from moneyfriend.app.cache import DEFAULT_CODEC_KEY, LocalDataCodec, decode, encode


def test_codec_restores_nested_values() -> None:
    value = {"data": {"wallets": [1, 2, 3], "name": "Tiết kiệm"}, "expiresAt": "2025-01-01T00:00:00+00:00"}
    codec = LocalDataCodec("device-key")

    assert codec.decode(codec.encode(value)) == value


def test_encoded_payload_hides_plaintext() -> None:
    payload = encode({"subscription_type": "pro_12m"}, "device-key")

    assert "pro_12m" not in payload
    assert "subscription_type" not in payload
    payload.encode("ascii")


def test_encoding_is_deterministic_regardless_of_key_order() -> None:
    assert encode({"a": 1, "b": 2}) == encode({"b": 2, "a": 1})


def test_default_key_is_used_when_none_given() -> None:
    assert LocalDataCodec().encode([1]) == encode([1], DEFAULT_CODEC_KEY)


def test_payload_from_another_key_is_not_recovered() -> None:
    value = {"count": 3}
    payload = LocalDataCodec("first-key").encode(value)

    assert LocalDataCodec("another-key").decode(payload) != value


@pytest.mark.parametrize("payload", [None, "", "not base64!!", "ü", "AAAA", 123])
def test_decode_never_raises(payload) -> None:
    assert decode(payload) is None


def test_encode_rejects_unserializable_values() -> None:
    with pytest.raises(ValueError):
        encode({"when": object()})
