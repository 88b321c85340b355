from __future__ import annotations

import json
import logging

import pytest
from bmad_core.logging import JSONFormatter, get_logger, set_level, setup_logging


@pytest.fixture
def clean_root_logger():
    logger = logging.getLogger("bmad")
    saved = (list(logger.handlers), logger.level)
    logger.handlers.clear()
    yield logger
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])


class TestSetupLogging:
    def test_configures_once(self, clean_root_logger):
        first = setup_logging("DEBUG")
        second = setup_logging("ERROR", json_output=True)

        assert first is second is clean_root_logger
        assert len(first.handlers) == 1
        assert first.level == logging.DEBUG

    def test_json_output(self, clean_root_logger):
        logger = setup_logging(json_output=True)

        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_child_loggers(self):
        assert get_logger("discovery.scanner").name == "bmad.discovery.scanner"


class TestJSONFormatter:
    def test_includes_file_path(self):
        record = logging.LogRecord(
            "bmad.discovery", logging.WARNING, __file__, 1, "bad %s", ("pm",), None
        )
        record.file_path = "agents/pm.md"

        payload = json.loads(JSONFormatter().format(record))

        assert payload["level"] == "WARNING"
        assert payload["logger"] == "bmad.discovery"
        assert payload["msg"] == "bad pm"
        assert payload["file_path"] == "agents/pm.md"


class TestSetLevel:
    def test_returns_previous_level(self):
        logger = logging.getLogger("bmad.test-level")
        logger.setLevel(logging.WARNING)

        previous = set_level("test-level", "debug")

        assert previous == logging.WARNING
        assert logger.level == logging.DEBUG
        set_level("test-level", previous)
        assert logger.level == logging.WARNING
