# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

import logging

import pytest

from argsfilter.core import config as config_module
from argsfilter.core import logger as logger_module
from argsfilter.core.registry import FilterRegistryBuilder
from argsfilter.core.rules import reset_matcher_faults


@pytest.fixture(autouse=True)
def isolate_global_state(monkeypatch):
    """Fresh logging handlers, settings and fault counter for every test"""
    for var in (
        "ARGSFILTER_LOG_LEVEL",
        "ARGSFILTER_LOG_DIR",
        "ARGSFILTER_FILE_LOGS",
        "ARGSFILTER_CONFIG",
        "ARGSFILTER_NO_FILE_LOGS",
    ):
        monkeypatch.delenv(var, raising=False)

    reset_matcher_faults()
    config_module._config = None
    yield
    config_module._config = None
    logger_module._loggers.clear()
    root = logging.getLogger("argsfilter")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)


@pytest.fixture
def build_registry():
    """Build a frozen registry from {raw_name: [(directive, args), ...]}"""

    def _build(blocks):
        builder = FilterRegistryBuilder()
        for raw_name, directives in blocks.items():
            builder.declare(raw_name, directives)
        return builder.freeze()

    return _build


@pytest.fixture
def rules_file(tmp_path):
    """Write YAML rules text to a temporary file and return its path"""

    def _write(text, name="rules.yaml"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
