"""Logging utilities for cimatrix with structured logging support."""

import json
import os
import sys
from datetime import datetime, UTC
from enum import Enum
from typing import Literal, Dict, Any, Optional


class LogLevel(Enum):
    """Log levels for structured logging, in increasing severity."""
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    FATAL = 4


class StructuredLogger:
    """Structured logger for cimatrix.

    Output format and threshold come from LOG_FORMAT ("text" or "json") and
    LOG_LEVEL, read when the logger is created.
    """

    def __init__(self, component: str = "cimatrix"):
        self.component = component
        self.log_format = os.getenv("LOG_FORMAT", "text")
        level_name = os.getenv("LOG_LEVEL", "INFO").upper()
        self.threshold = LogLevel[level_name] if level_name in LogLevel.__members__ else LogLevel.INFO

    def _should_log(self, level: LogLevel) -> bool:
        return level.value >= self.threshold.value

    def format_message(
        self,
        level: LogLevel,
        message: str,
        fields: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None
    ) -> str:
        """Render one log record according to the configured format."""
        timestamp = datetime.now(UTC).isoformat()

        if self.log_format == "json":
            record: Dict[str, Any] = {
                "timestamp": timestamp,
                "level": level.name.lower(),
                "component": self.component,
                "message": message,
            }
            if fields:
                record["fields"] = fields
            if error:
                record["error"] = {"type": type(error).__name__, "message": str(error)}
            return json.dumps(record, default=str)

        parts = [timestamp, f"[{level.name}]", f"[{self.component}]", message]
        if fields:
            parts.extend(f"{k}={v}" for k, v in fields.items())
        if error:
            parts.append(f"error={type(error).__name__}: {error}")
        return " ".join(parts)

    def _log(
        self,
        level: LogLevel,
        message: str,
        fields: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None,
    ):
        if not self._should_log(level):
            return
        print(self.format_message(level, message, fields, error), file=sys.stderr)

    def debug(self, message: str, fields: Optional[Dict[str, Any]] = None):
        self._log(LogLevel.DEBUG, message, fields)

    def info(self, message: str, fields: Optional[Dict[str, Any]] = None):
        self._log(LogLevel.INFO, message, fields)

    def error(self, message: str, error: Optional[Exception] = None, fields: Optional[Dict[str, Any]] = None):
        self._log(LogLevel.ERROR, message, fields, error)


logger = StructuredLogger()


def log_line(message: str, stream: Literal["stdout", "stderr"] = "stdout"):
    """Write a user-facing line, timestamped, honouring LOG_FORMAT."""
    timestamp = datetime.now(UTC).isoformat()

    if os.getenv("LOG_FORMAT", "text") == "json":
        output = json.dumps({"timestamp": timestamp, "stream": stream, "message": message})
    else:
        output = f"{timestamp} {message}"

    print(output, file=sys.stderr if stream == "stderr" else sys.stdout)


def log_stdout(message: str):
    """Log a message to stdout."""
    log_line(message, "stdout")


def log_stderr(message: str):
    """Log a message to stderr."""
    log_line(message, "stderr")
