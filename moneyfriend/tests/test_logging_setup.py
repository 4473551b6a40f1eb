from __future__ import annotations

import logging

import pytest

from moneyfriend.config import load_engine_config
from moneyfriend.logging_setup import REDACTED, RedactingFilter, configure_logging, redact


class ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture(autouse=True)
def detach_handlers():
    yield
    for name in ("moneyfriend", "entitlements"):
        named = logging.getLogger(name)
        for handler in list(named.handlers):
            if getattr(handler, "_moneyfriend_handler", False):
                named.removeHandler(handler)


def test_redact_masks_nested_sensitive_keys() -> None:
    value = {"user": "u1", "Password": "hunter2", "wallet": {"balance": 120, "name": "Cash"}, "items": [{"token": "t"}]}

    assert redact(value) == {
        "user": "u1",
        "Password": REDACTED,
        "wallet": {"balance": REDACTED, "name": "Cash"},
        "items": [{"token": REDACTED}],
    }


def test_filter_masks_extra_attributes_and_args() -> None:
    record = logging.makeLogRecord(
        {"msg": "payload %s", "args": ({"api_key": "abc"},), "encryption_key": "k", "context": {"secret": "s", "ok": 1}}
    )

    assert RedactingFilter().filter(record) is True
    assert record.encryption_key == REDACTED
    assert record.context == {"secret": REDACTED, "ok": 1}
    assert record.args == ({"api_key": REDACTED},)


def test_configure_logging_attaches_single_handler() -> None:
    config = load_engine_config({"LOG_LEVEL": "DEBUG"})
    first = ListHandler()
    second = ListHandler()

    configure_logging(config, handler=first)
    configure_logging(config, handler=second)

    logging.getLogger("entitlements.quota").debug("quota check", extra={"token": "abc"})

    assert first.records == []
    assert len(second.records) == 1
    assert second.records[0].token == REDACTED
    assert logging.getLogger("moneyfriend").level == logging.DEBUG


def test_redaction_can_be_disabled() -> None:
    handler = ListHandler()
    configure_logging(load_engine_config({"LOG_REDACT": "false"}), handler=handler)

    logging.getLogger("moneyfriend.config").warning("plain", extra={"token": "abc"})

    assert handler.records[0].token == "abc"
