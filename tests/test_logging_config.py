"""Tests for the logging configuration."""

from __future__ import annotations

import json
import logging
import sys

from plcbridge.config import logging as log_mod
from plcbridge.config.settings import RuntimeConfig


def test_serialise_value_handles_bytes_and_objects() -> None:
    record = logging.LogRecord(
        name="plcbridge.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="hello %s",
        args=("world",),
        exc_info=None,
    )
    record.chunk = b"\x0241\x03"  # type: ignore[attr-defined]
    record.custom_obj = object()  # type: ignore[attr-defined]

    payload = json.loads(log_mod.StructuredLogFormatter().format(record))

    assert payload["logger"] == "test"
    assert payload["level"] == "INFO"
    assert payload["message"] == "hello world"
    assert payload["ts"].endswith("Z")
    assert payload["extra"]["chunk"] == "[02 34 31 03]"
    assert str(record.custom_obj) in payload["extra"]["custom_obj"]


def test_max_level_filter() -> None:
    level_filter = log_mod.MaxLevelFilter(logging.WARNING)
    info = logging.LogRecord("x", logging.INFO, __file__, 1, "i", (), None)
    warning = logging.LogRecord("x", logging.WARNING, __file__, 1, "w", (), None)
    assert level_filter.filter(info)
    assert not level_filter.filter(warning)


def test_console_level() -> None:
    assert log_mod.console_level(RuntimeConfig()) == "INFO"
    assert log_mod.console_level(RuntimeConfig(verbose=True)) == "DEBUG"
    assert log_mod.console_level(RuntimeConfig(quiet=True)) == "WARNING"
    assert log_mod.console_level(RuntimeConfig(quiet=True, verbose=True)) == "WARNING"


def test_configure_logging_splits_stdout_and_stderr() -> None:
    log_mod.configure_logging(RuntimeConfig())

    root = logging.getLogger()
    streams = {getattr(handler, "stream", None): handler for handler in root.handlers}
    assert streams[sys.stdout].level == logging.INFO
    assert streams[sys.stderr].level == logging.WARNING
    assert root.level == logging.INFO


def test_configure_logging_quiet_still_writes_file(tmp_path) -> None:
    log_file = tmp_path / "bridge.log"
    log_mod.configure_logging(RuntimeConfig(quiet=True, log_file=str(log_file)))

    logging.getLogger("plcbridge.supervisor").info("Socket connected")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    entry = json.loads(lines[-1])
    assert entry["logger"] == "supervisor"
    assert entry["message"] == "Socket connected"


def test_configure_logging_verbose_enables_debug() -> None:
    log_mod.configure_logging(RuntimeConfig(verbose=True))
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("plcbridge.mqtt.client").level == logging.DEBUG
