from __future__ import annotations

import logging

import pytest

from lms.core.logging import _ContainerFormatter, _redaction_filter, setup_logging


def _record(level: int, pathname: str, lineno: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord(
        name="lms.services.payment_bridge",
        level=level,
        pathname=pathname,
        lineno=lineno,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_setup_logging_sets_root_level() -> None:
    setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG

    setup_logging("warning")
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_defaults_to_info_for_unknown_level() -> None:
    setup_logging("nonexistent")
    assert logging.getLogger().level == logging.INFO


def test_setup_logging_installs_one_handler_with_redaction() -> None:
    setup_logging("info")
    setup_logging("info")
    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert _redaction_filter in handlers[0].filters


@pytest.mark.parametrize("name", ["uvicorn", "httpx", "httpcore", "sqlalchemy.engine"])
def test_setup_logging_quiets_noisy_loggers_at_debug(name: str) -> None:
    setup_logging("debug")
    assert logging.getLogger(name).level == logging.WARNING


def test_setup_logging_allows_uvicorn_at_error() -> None:
    setup_logging("error")
    assert logging.getLogger("uvicorn").level == logging.ERROR


def test_formatter_excludes_location_for_info() -> None:
    output = _ContainerFormatter().format(
        _record(logging.INFO, "payment_bridge.py", 1, "Payment captured")
    )
    assert "Payment captured" in output
    assert "[payment_bridge.py:" not in output


def test_formatter_includes_location_for_warning() -> None:
    output = _ContainerFormatter().format(
        _record(logging.WARNING, "payment_bridge.py", 42, "Payment signature mismatch")
    )
    assert "Payment signature mismatch" in output
    assert "[payment_bridge.py:42]" in output


def test_formatter_includes_location_for_error() -> None:
    output = _ContainerFormatter().format(
        _record(logging.ERROR, "payment_gateway.py", 99, "Order request failed")
    )
    assert "[payment_gateway.py:99]" in output


def test_formatter_timestamp_has_milliseconds() -> None:
    record = _record(logging.INFO, "x.py", 1, "tick")
    record.msecs = 7
    stamp = _ContainerFormatter().formatTime(record)
    # 2026-10-19T12:00:00.007+0000
    assert stamp[-9:-5] == ".007"
