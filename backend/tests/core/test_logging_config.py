"""Unit tests for fundgate.core.logging_config."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from fundgate.core.logging_config import JSONFormatter, configure_logging


def _record(msg: str = "released", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="fundgate.services.release_service",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "fundgate.services.release_service"
        assert entry["message"] == "released"
        assert "timestamp" in entry

    def test_context_fields_copied(self):
        out = JSONFormatter().format(
            _record(campaign_id=3, milestone_index=1, caller="creator-1", code="x")
        )
        entry = json.loads(out)
        assert entry["campaign_id"] == 3
        assert entry["milestone_index"] == 1
        assert entry["caller"] == "creator-1"
        assert entry["code"] == "x"

    def test_absent_context_omitted(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert "campaign_id" not in entry
        assert "caller" not in entry

    def test_exception_included(self):
        try:
            raise RuntimeError("settlement down")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert "settlement down" in entry["exception"]


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestConfigureLogging:
    def test_production_uses_json(self, restore_root_logger):
        configure_logging("production", "WARNING")
        root = restore_root_logger
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_development_is_human_readable(self, restore_root_logger):
        configure_logging("development", "debug")
        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_noisy_loggers_quieted(self, restore_root_logger):
        configure_logging("production")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
