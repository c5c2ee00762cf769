"""Tests for structured logging."""

import json
import os
from unittest.mock import patch

from cimatrix.logging import LogLevel, StructuredLogger, log_stderr, log_stdout


class TestStructuredLogger:
    """Test cases for StructuredLogger."""

    def test_text_format(self):
        """Test text output with fields and error."""
        with patch.dict(os.environ, {"LOG_FORMAT": "text"}):
            log = StructuredLogger("planner")
        line = log.format_message(LogLevel.ERROR, "boom", {"job": "lints"}, ValueError("bad"))

        assert "[ERROR] [planner] boom job=lints error=ValueError: bad" in line

    def test_json_format(self):
        """Test JSON output with fields and error."""
        with patch.dict(os.environ, {"LOG_FORMAT": "json"}):
            log = StructuredLogger()
        record = json.loads(log.format_message(LogLevel.INFO, "hello", {"entries": 3}, KeyError("k")))

        assert record["level"] == "info"
        assert record["component"] == "cimatrix"
        assert record["message"] == "hello"
        assert record["fields"] == {"entries": 3}
        assert record["error"]["type"] == "KeyError"

    def test_level_threshold(self, capsys):
        """Test that messages below LOG_LEVEL are dropped."""
        with patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}):
            log = StructuredLogger()
        log.info("quiet")
        log.error("loud")

        err = capsys.readouterr().err
        assert "quiet" not in err
        assert "loud" in err

    def test_unknown_level_defaults_to_info(self, capsys):
        """Test that an unknown LOG_LEVEL falls back to INFO."""
        with patch.dict(os.environ, {"LOG_LEVEL": "chatty"}):
            log = StructuredLogger()
        log.debug("hidden")
        log.info("shown")

        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err


class TestLogLine:
    """Test cases for the stdout/stderr helpers."""

    def test_streams(self, capsys):
        """Test that each helper writes to its stream."""
        log_stdout("to out")
        log_stderr("to err")

        captured = capsys.readouterr()
        assert "to out" in captured.out
        assert "to err" in captured.err

    def test_json_line(self, capsys, monkeypatch):
        """Test JSON formatted lines."""
        monkeypatch.setenv("LOG_FORMAT", "json")
        log_stdout("hello")

        record = json.loads(capsys.readouterr().out)
        assert record["stream"] == "stdout"
        assert record["message"] == "hello"
