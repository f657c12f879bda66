"""
Tests for logging configuration.
"""

import json
import logging

import pytest

from hexindex.logging_config import JsonFormatter, set_log_level, setup_logging, setup_logging_from_config


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_json_formatter():
    record = logging.LogRecord("hexindex.store", logging.WARNING, __file__, 10, "rebuilt %s", ("index",), None)

    data = json.loads(JsonFormatter().format(record))

    assert data["level"] == "WARNING"
    assert data["logger"] == "hexindex.store"
    assert data["message"] == "rebuilt index"


def test_setup_logging_with_file(temp_dir):
    log_file = temp_dir / "logs" / "hexindex.log"
    setup_logging(level="DEBUG", log_file=log_file, json_format=True)

    logging.getLogger("hexindex.test").info("hello file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = log_file.read_text().splitlines()
    assert any(json.loads(line)["message"] == "hello file" for line in lines)


def test_setup_from_config_debug_flag(config):
    setup_logging_from_config(config, debug=True)
    assert logging.getLogger().level == logging.DEBUG

    setup_logging_from_config(config)
    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("sentence_transformers").level == logging.WARNING


def test_set_log_level(config):
    setup_logging_from_config(config)
    set_log_level("error")

    root = logging.getLogger()
    assert root.level == logging.ERROR
    assert all(handler.level == logging.ERROR for handler in root.handlers)
