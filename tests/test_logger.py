"""
Unit tests for the JSON log format.

Run with:
    pytest tests/test_logger.py -v
"""

import io
import json

from najjak.logger import StructuredLogger


def _emit(name, **kwargs):
    stream = io.StringIO()
    log = StructuredLogger(name=name, stream=stream, log_file="")
    log.info("User authenticated: %s", "mila@shop", **kwargs)
    return json.loads(stream.getvalue().strip().splitlines()[-1])


class TestJSONFormatter:
    """Shape of a single log line."""

    def test_basic_fields(self):
        entry = _emit("najjak.tests.basic")

        assert entry["level"] == "INFO"
        assert entry["logger_name"] == "najjak.tests.basic"
        assert entry["message"] == "User authenticated: mila@shop"
        assert "extra" not in entry

    def test_event_is_top_level(self):
        entry = _emit(
            "najjak.tests.event",
            extra={"event": "LOGIN", "username": "mila@shop"},
        )

        assert entry["event"] == "LOGIN"
        assert entry["extra"] == {"username": "mila@shop"}

    def test_secret_fields_are_masked(self):
        entry = _emit(
            "najjak.tests.secrets",
            extra={"password": "hunter2", "token": "bearer-1"},
        )

        assert entry["extra"] == {"password": "***", "token": "***"}
