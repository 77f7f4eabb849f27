"""Tests for skinminder/logging_config.py"""

import io
import json
import logging

import pytest

from skinminder.logging_config import bind_context, get_logger, setup_logging

pytestmark = pytest.mark.usefixtures("reset_logging")


def json_lines(stream: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


class TestSetupLogging:
    def test_stdlib_records_rendered_as_json(self):
        stream = io.StringIO()
        setup_logging(level="INFO", json_output=True, stream=stream)

        logging.getLogger("skinminder.notifications.dispatcher").warning("Reminders blocked")

        (entry,) = json_lines(stream)
        assert entry["event"] == "Reminders blocked"
        assert entry["level"] == "warning"
        assert entry["logger"] == "skinminder.notifications.dispatcher"
        assert "timestamp" in entry

    def test_bound_context_on_every_line(self):
        stream = io.StringIO()
        setup_logging(json_output=True, stream=stream)
        bind_context(command="reconcile")

        logging.getLogger("skinminder.engine").info("plain record")
        get_logger("skinminder.cli").info("command_failed", error="boom")

        entries = json_lines(stream)
        assert [e["command"] for e in entries] == ["reconcile", "reconcile"]
        assert entries[1]["error"] == "boom"

    def test_level_filters(self):
        stream = io.StringIO()
        setup_logging(level="WARNING", json_output=True, stream=stream)

        logging.getLogger("skinminder").info("hidden")
        logging.getLogger("skinminder").error("shown")

        assert [e["event"] for e in json_lines(stream)] == ["shown"]

    def test_environment_overrides_arguments(self, monkeypatch):
        monkeypatch.setenv("SKINMINDER_LOG_LEVEL", "error")
        monkeypatch.setenv("SKINMINDER_LOG_FORMAT", "json")
        stream = io.StringIO()

        setup_logging(level="DEBUG", json_output=False, stream=stream)
        logging.getLogger("skinminder").warning("hidden")
        logging.getLogger("skinminder").error("shown")

        assert logging.getLogger().level == logging.ERROR
        assert [e["event"] for e in json_lines(stream)] == ["shown"]

    def test_console_output(self):
        stream = io.StringIO()
        setup_logging(json_output=False, stream=stream)

        logging.getLogger("skinminder").info("Scheduled reminder")

        assert "Scheduled reminder" in stream.getvalue()

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(level="chatty", stream=io.StringIO())
        assert logging.getLogger().level == logging.INFO
