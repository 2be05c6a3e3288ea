from __future__ import annotations

import json
import logging

import pytest

from spectraprint.logging_config import JSONFormatter, configure_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_logging_installs_single_handler(restore_root_logger):
    configure_logging("debug")
    root = restore_root_logger
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    configure_logging("info")
    assert len(root.handlers) == 1
    assert root.level == logging.INFO


def test_level_from_environment(restore_root_logger, monkeypatch):
    monkeypatch.setenv("SPECTRAPRINT_LOG_LEVEL", "ERROR")
    configure_logging()
    assert restore_root_logger.level == logging.ERROR


def test_unknown_level_rejected(restore_root_logger):
    with pytest.raises(ValueError):
        configure_logging("loud")


def test_json_formatter_includes_extras(restore_root_logger):
    configure_logging("info", json_format=True)
    assert isinstance(restore_root_logger.handlers[0].formatter, JSONFormatter)
    record = logging.LogRecord("spectraprint.test", logging.INFO, __file__, 1,
                               "window %d", (3,), None)
    record.sample_index = 3
    data = json.loads(JSONFormatter().format(record))
    assert data["message"] == "window 3"
    assert data["level"] == "INFO"
    assert data["sample_index"] == 3
