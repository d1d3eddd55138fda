"""
Logging setup using Python's standard logging with python-json-logger output.

Log destinations:
- Console (stderr): coloured, human-readable
- logs/activity.jsonl: chat turns, sub-agent activity and request records (INFO and up)
- logs/errors.jsonl: ERROR and CRITICAL only

Every record is enriched with the current request context (request id,
chat id, user id) so a chat turn can be followed across sub-agents.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys

from pathlib import Path
from typing import Any, cast

from pythonjsonlogger import json as jsonlogger

from api.middleware.request_context import get_request_context
from core.constants import (
    LOG_BACKUP_COUNT_ACTIVITY,
    LOG_BACKUP_COUNT_ERRORS,
    LOG_MAX_SIZE,
    LOG_PREVIEW_LENGTH,
    PROJECT_ROOT,
    get_settings,
)

# Applied to previews of user and model content
REDACTION_PATTERNS = [
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[EMAIL]"),
    (re.compile(r"\b(?:\d{4}[- ]?){3}\d{4}\b"), "[CARD]"),
    (re.compile(r"\b(sk-|pk-|api[-_]?key[-_]?)[A-Za-z0-9]{20,}\b"), "[API_KEY]"),
    (re.compile(r"\b(ghp_|github_pat_)[A-Za-z0-9_]{20,}\b"), "[GITHUB_TOKEN]"),
    (re.compile(r"\b(password|secret|token)\s*[:=]\s*\S+"), "[REDACTED]"),
]

ACTIVITY_FORMAT = (
    "%(timestamp)s %(levelname)s %(message)s %(request_id)s %(chat_id)s %(user_id)s %(agent_type)s %(tool_name)s"
)
ERROR_FORMAT = "%(timestamp)s %(levelname)s %(name)s %(message)s %(request_id)s %(chat_id)s"

RESET = "\x1b[0m"
BOLD = "\x1b[1m"
GREEN = "\x1b[32;20m"
YELLOW = "\x1b[33;20m"
RED = "\x1b[31;20m"
LEVEL_COLORS = {
    logging.DEBUG: "\x1b[38;20m",
    logging.INFO: GREEN,
    logging.WARNING: YELLOW,
    logging.ERROR: RED,
    logging.CRITICAL: "\x1b[31;1m",
}


class ActivityFilter(logging.Filter):
    """INFO and up, minus uvicorn access lines (requests are logged by the middleware)."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.INFO and record.name != "uvicorn.access"


class ErrorFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


def _status_color(status_code: int) -> str:
    if status_code < 400:
        return GREEN
    return YELLOW if status_code < 500 else RED


class ColoredConsoleFormatter(logging.Formatter):
    """``HH:MM:SS [LEVEL] logger_name - message`` with the level coloured."""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno, "")
        prefix = f"{self.formatTime(record, '%H:%M:%S')} {color}[{record.levelname}]{RESET} {record.name}"

        # uvicorn access args: (client_addr, method, full_path, http_version, status_code)
        if record.name == "uvicorn.access" and record.args and len(record.args) == 5:
            client_addr, method, full_path, http_version, status_code = record.args
            status = f"{_status_color(int(cast(Any, status_code)))}{status_code}{RESET}"
            return f'{prefix} - {client_addr} - "{BOLD}{method}{RESET} {full_path} HTTP/{http_version}" {status}'

        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return f"{prefix} - {message}"


def configure_uvicorn_logging() -> None:
    """Route uvicorn's access and error loggers through the coloured console format."""
    logging.getLogger("uvicorn").handlers = []
    logging.getLogger("uvicorn").setLevel(logging.INFO)

    for name in ("uvicorn.access", "uvicorn.error"):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColoredConsoleFormatter())
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.setLevel(logging.INFO)
        uvicorn_logger.propagate = False


def _json_file_handler(
    path: Path, level: int, backup_count: int, fmt: str, log_filter: logging.Filter
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=LOG_MAX_SIZE, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.addFilter(log_filter)
    handler.setFormatter(jsonlogger.JsonFormatter(fmt, timestamp=True))
    return handler


def setup_logging(name: str = "artifact-chat", debug: bool | None = None) -> logging.Logger:
    """Configure ``name`` with a console handler and the two JSON file handlers.

    ``debug`` defaults to the DEBUG environment variable and only changes the
    console level; the file handlers always start at INFO.
    """
    if debug is None:
        debug = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())

    log_dir = PROJECT_ROOT / "logs"
    log_dir.mkdir(exist_ok=True)

    app_logger = logging.getLogger(name)
    app_logger.setLevel(logging.DEBUG)
    app_logger.handlers = [
        console_handler,
        _json_file_handler(
            log_dir / "activity.jsonl", logging.INFO, LOG_BACKUP_COUNT_ACTIVITY, ACTIVITY_FORMAT, ActivityFilter()
        ),
        _json_file_handler(log_dir / "errors.jsonl", logging.ERROR, LOG_BACKUP_COUNT_ERRORS, ERROR_FORMAT, ErrorFilter()),
    ]
    return app_logger


class ChatLogger:
    """Application logger: keyword arguments become structured fields."""

    def __init__(self, name: str = "artifact-chat"):
        self.logger = setup_logging(name)

    def _log(self, level: int, message: str, exc_info: bool = False, **fields: Any) -> None:
        if ctx := get_request_context():
            for key, value in ctx.to_log_context().items():
                fields.setdefault(key, value)
        self.logger.log(level, message, extra=fields, exc_info=exc_info)

    def debug(self, message: str, **fields: Any) -> None:
        self._log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self._log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._log(logging.WARNING, message, **fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **fields)

    @staticmethod
    def _content_logging_enabled() -> bool:
        try:
            return bool(get_settings().enable_content_logging)
        except ValueError:
            # Settings failed validation; never leak content in that state
            return False

    @staticmethod
    def redact(text: str) -> str:
        for pattern, replacement in REDACTION_PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def preview(self, text: str | None) -> str:
        """Redacted single-line preview of user or model content, or [HIDDEN]."""
        if not self._content_logging_enabled():
            return "[HIDDEN]"
        text = text or ""
        snippet = self.redact(text[:LOG_PREVIEW_LENGTH].replace("\n", " "))
        return f"{snippet}..." if len(text) > LOG_PREVIEW_LENGTH else snippet

    def log_chat_turn(
        self,
        chat_id: str | None,
        model_id: str,
        user_input: str,
        response: str,
        tool_names: list[str] | None = None,
        duration_ms: float | None = None,
        thinking_mode: bool = False,
    ) -> None:
        """One INFO record per completed turn; tool names are the sub-agents the model called."""
        message = f"User: {self.preview(user_input)} -> AI: {self.preview(response)}"
        fields: dict[str, Any] = {
            "chat_turn": True,
            "chat_id": chat_id,
            "model_id": model_id,
            "chars_input": len(user_input),
            "chars_response": len(response),
            "thinking_mode": thinking_mode,
            "content_logging": self._content_logging_enabled(),
        }
        if tool_names:
            message += f" [{', '.join(tool_names)}]"
            fields["tool_names"] = tool_names
        if duration_ms is not None:
            message += f" [{duration_ms:.0f}ms]"
            fields["ms"] = int(duration_ms)
        self.info(message, **fields)


logger = ChatLogger()
