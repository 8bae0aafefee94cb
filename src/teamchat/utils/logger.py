"""
Logging setup for the team chat transport using Python's standard logging
with JSON formatting for structured error logs.

Log destinations:
- Console (stderr): Human-readable format for debugging
- {log_dir}/errors.jsonl: JSON format for error tracking (only when log_dir is configured)

Bearer tokens are redacted from every message before it reaches a handler.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys
import uuid

from pathlib import Path
from typing import Any

from pythonjsonlogger import json as jsonlogger

from teamchat.core.constants import (
    CLIENT_ID_LENGTH,
    LOG_BACKUP_COUNT_ERRORS,
    LOG_MAX_SIZE,
    LOG_PREVIEW_LENGTH,
    TOKEN_QUERY_PARAM,
    Settings,
)

#: Logger name shared by every module in the package
LOGGER_NAME = "teamchat"

# Credential redaction patterns
REDACTION_PATTERNS = [
    (rf"([?&]{TOKEN_QUERY_PARAM}=)[^&\s]+", r"\1[REDACTED]"),
    (r"\b(Bearer)\s+[A-Za-z0-9\-._~+/]+=*", r"\1 [REDACTED]"),
    (r"\b(password|secret)\s*[:=]\s*\S+", "[REDACTED]"),
]


def redact(text: str) -> str:
    """Strip credentials (token query params, bearer headers) from text."""
    if not text:
        return text

    redacted = text
    for pattern, replacement in REDACTION_PATTERNS:
        redacted = re.sub(pattern, replacement, redacted)
    return redacted


def preview(raw: str | bytes, limit: int = LOG_PREVIEW_LENGTH) -> str:
    """Short, redacted rendering of a raw frame for log lines."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    text = raw[:limit].replace("\n", " ")
    if len(raw) > limit:
        text += "..."
    return redact(text)


class ErrorFilter(logging.Filter):
    """Filter to only allow ERROR and CRITICAL logs"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


class RedactionFilter(logging.Filter):
    """Redacts credentials from the rendered message of every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


class ColoredConsoleFormatter(logging.Formatter):
    """
    Custom formatter that adds colors to log levels and standardizes format.
    Format: HH:MM:SS [LEVEL] logger_name - message
    """

    # ANSI color codes
    GREY = "\x1b[38;20m"
    GREEN = "\x1b[32;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    # We only color the level part: [LEVEL]
    def format(self, record: logging.LogRecord) -> str:
        level_fmt = f"[{record.levelname}]"
        color = self.LEVEL_COLORS.get(record.levelno)
        if color:
            level_fmt = f"{color}{level_fmt}{self.RESET}"

        record.asctime = self.formatTime(record, "%H:%M:%S")
        line = f"{record.asctime} {level_fmt} {record.name} - {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    name: str = LOGGER_NAME,
    debug: bool | None = None,
    log_dir: Path | None = None,
) -> logging.Logger:
    """
    Set up logging with a console handler and an optional JSON error log.

    Args:
        name: Logger name
        debug: Enable debug logging (overrides TEAMCHAT_DEBUG env var)
        log_dir: Directory for errors.jsonl; no file handler when None

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level

    # Remove (and close) any existing handlers
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []
    logger.filters = []
    logger.addFilter(RedactionFilter())

    if debug is None:
        debug = os.getenv("TEAMCHAT_DEBUG", "false").lower() in ("true", "1", "yes")

    # --- Console Handler (Human-readable) ---
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    logger.addHandler(console_handler)

    # --- Error Log Handler (JSON) ---
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        error_handler = logging.handlers.RotatingFileHandler(
            log_dir / "errors.jsonl",
            maxBytes=LOG_MAX_SIZE,
            backupCount=LOG_BACKUP_COUNT_ERRORS,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.addFilter(ErrorFilter())
        error_handler.setFormatter(
            jsonlogger.JsonFormatter(
                "%(timestamp)s %(levelname)s %(name)s %(message)s %(client_id)s %(team_id)s",
                timestamp=True,
            )
        )
        logger.addHandler(error_handler)

    return logger


def configure_logging(settings: Settings) -> logging.Logger:
    """Apply the ``debug`` and ``log_dir`` options from settings to the package logger."""
    return setup_logging(LOGGER_NAME, debug=settings.debug, log_dir=settings.log_dir)


class TransportLogger:
    """
    High-level logging interface for transport components.
    Wraps standard Python logging; keyword arguments become structured context.
    """

    def __init__(self, name: str = LOGGER_NAME, client_id: str | None = None):
        self.logger = logging.getLogger(name)
        self.client_id = client_id or str(uuid.uuid4())[:CLIENT_ID_LENGTH]

    def bind(self, client_id: str) -> TransportLogger:
        """Logger sharing the same backend but tagged with another client id."""
        return TransportLogger(self.logger.name, client_id=client_id)

    def _enrich_context(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        kwargs.setdefault("client_id", self.client_id)
        return kwargs

    def debug(self, message: str, **kwargs: Any) -> None:
        """Debug level logging"""
        self.logger.debug(message, extra=self._enrich_context(kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Info level logging"""
        self.logger.info(message, extra=self._enrich_context(kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Warning level logging"""
        self.logger.warning(message, extra=self._enrich_context(kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Error level logging with optional exception info"""
        self.logger.error(message, extra=self._enrich_context(kwargs), exc_info=exc_info)

    def log_frame(self, direction: str, frame_type: str, team_id: str | None = None) -> None:
        """Record a frame crossing the wire at debug level."""
        arrow = "->" if direction == "outbound" else "<-"
        self.debug(
            f"{arrow} {frame_type}",
            frame_direction=direction,
            frame_type=frame_type,
            team_id=team_id,
        )


# Package logger configuration and default instance
setup_logging()
logger = TransportLogger(client_id="teamchat")
