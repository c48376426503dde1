# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Tests for logger setup and context tagging"""

import logging
from logging.handlers import RotatingFileHandler

from argsfilter.core.logger import (
    ContextFilter,
    current_log_context,
    get_logger,
    log_context,
)


def _record():
    return logging.LogRecord("argsfilter.test", logging.INFO, __file__, 1, "msg", None, None)


def test_context_filter_defaults():
    record = _record()

    assert ContextFilter().filter(record)
    assert (record.phase, record.variable) == ("-", "-")


def test_log_context_nests_and_restores():
    with log_context("config", "$a"):
        assert current_log_context() == ("config", "$a")
        with log_context("request", "$b"):
            record = _record()
            ContextFilter().filter(record)
            assert (record.phase, record.variable) == ("request", "$b")
        assert current_log_context() == ("config", "$a")

    assert current_log_context() == ("-", "-")


def test_get_logger_is_cached():
    first = get_logger("argsfilter", level="WARNING")
    second = get_logger("argsfilter")

    assert first is second
    assert len(first.logger.handlers) == 1
    assert first.logger.level == logging.WARNING


def test_get_logger_updates_level():
    instance = get_logger("argsfilter", level="WARNING")
    get_logger("argsfilter", level="DEBUG")

    assert instance.logger.level == logging.DEBUG
    assert instance.logger.handlers[0].level == logging.DEBUG


def test_unknown_level_is_info():
    instance = get_logger("argsfilter", level="LOUD")
    assert instance.logger.level == logging.INFO


def test_file_logging_writes_context(tmp_path):
    instance = get_logger("argsfilter", level="INFO", log_dir=tmp_path)
    assert any(isinstance(h, RotatingFileHandler) for h in instance.logger.handlers)

    with log_context("config", "$f"):
        logging.getLogger("argsfilter.compiler").error("broken block")

    for handler in instance.logger.handlers:
        handler.flush()

    content = (tmp_path / "argsfilter.log").read_text(encoding="utf-8")
    assert "| config | $f |" in content
    assert "broken block" in content


def test_file_logging_can_be_disabled(tmp_path, monkeypatch):
    monkeypatch.setenv("ARGSFILTER_NO_FILE_LOGS", "true")

    instance = get_logger("argsfilter", log_dir=tmp_path)

    assert not any(isinstance(h, RotatingFileHandler) for h in instance.logger.handlers)
