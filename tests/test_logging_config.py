"""
Tests for logging configuration.
"""

import json
import logging

import pytest

from shrinkray.config import LoggingConfig
from shrinkray.logging_config import JSONFormatter, configure_logging


@pytest.fixture(autouse=True)
def reset_root_logger():
    """Save and restore root logger state between tests."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers[:] = original_handlers
    root.setLevel(original_level)


class TestConfigureLogging:

    @pytest.mark.parametrize("level,expected", [
        ("INFO", logging.INFO),
        ("debug", logging.DEBUG),
        ("Warning", logging.WARNING),
        ("bogus", logging.INFO),
    ])
    def test_level(self, level, expected):
        configure_logging(LoggingConfig(level=level))
        assert logging.getLogger().level == expected

    def test_json_format(self):
        configure_logging(LoggingConfig(format="json"))
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, JSONFormatter)

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "shrinkray.log"
        configure_logging(LoggingConfig(file=str(log_file)))

        logging.getLogger("shrinkray.test").info("[Engine] hello")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "[Engine] hello" in log_file.read_text()


class TestJSONFormatter:

    def test_record_fields(self):
        record = logging.LogRecord(
            name="shrinkray.transcoding.planner",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="[Planner] %s is implausible",
            args=("size_8mb",),
            exc_info=None,
        )
        record.preset = "size_8mb"

        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "WARNING"
        assert entry["message"] == "[Planner] size_8mb is implausible"
        assert entry["logger"] == "shrinkray.transcoding.planner"
        assert entry["context"] == {"preset": "size_8mb"}
        assert "timestamp" in entry
