"""
Structured logging for the chat service.

Every module asks ``get_logger`` for a ``StructuredLogger``. Console output
is human-readable; when a log file is configured it also receives one JSON
object per record. The request id set by the HTTP middleware is attached to
both.
"""

import os
import json
import logging
import sys
from datetime import datetime, timezone
from threading import Lock
from typing import Optional, Dict, Any
from contextvars import ContextVar

# Set per HTTP request by the server middleware
request_context: ContextVar[Optional[str]] = ContextVar("request_context", default=None)

_loggers: Dict[str, "StructuredLogger"] = {}
_loggers_lock = Lock()


class JsonFormatter(logging.Formatter):
    """One JSON object per record, for log files."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": "chat-service",
            "component": record.name,
            "message": record.getMessage(),
        }

        request_id = request_context.get()
        if request_id:
            entry["request_id"] = request_id

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(getattr(record, "extra_fields", None) or {})
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Coloured single-line records for a terminal."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        message = record.getMessage()
        request_id = request_context.get()
        if request_id:
            message = f"[{request_id[:8]}] {message}"

        line = f"{timestamp} | {color}{record.levelname:8s}{self.RESET} | {record.name:30s} | {message}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger:
    """
    Logger that accepts keyword fields alongside the message.

    ``logger.info("Exchange complete", model="llama3.1:8b")`` prints the
    message on the console and writes ``model`` as a JSON field to the log
    file. Pass ``exc_info=True`` to attach the current traceback.
    """

    def __init__(self, name: str, log_level: str = "INFO", log_file: Optional[str] = None):
        self.logger = logging.getLogger(name)
        self.logger.propagate = False
        self.log_file: Optional[str] = None
        self.configure(log_level, log_file)

    def configure(self, log_level: str, log_file: Optional[str] = None):
        """(Re)build the handlers for a new level and log file."""
        self.logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(ConsoleFormatter())
        self.logger.addHandler(console_handler)

        self.log_file = log_file or None
        if self.log_file:
            file_handler = logging.FileHandler(self.log_file)
            file_handler.setFormatter(JsonFormatter())
            self.logger.addHandler(file_handler)

    def _log(self, levelno: int, message: str, fields: Dict[str, Any]):
        if not self.logger.isEnabledFor(levelno):
            return

        exc_info = sys.exc_info() if fields.pop("exc_info", False) else None
        record = self.logger.makeRecord(self.logger.name, levelno, "", 0, message, (), exc_info)
        if fields:
            record.extra_fields = fields
        self.logger.handle(record)

    def debug(self, message: str, **fields):
        self._log(logging.DEBUG, message, fields)

    def info(self, message: str, **fields):
        self._log(logging.INFO, message, fields)

    def warning(self, message: str, **fields):
        self._log(logging.WARNING, message, fields)

    def error(self, message: str, **fields):
        self._log(logging.ERROR, message, fields)

    def log_exchange(
        self,
        message: str,
        reply_length: int,
        processing_time: float,
        model: str,
        history_size: int,
    ):
        """
        Log a completed conversational exchange.

        Args:
            message: User message (truncated if too long)
            reply_length: Number of characters in the assistant reply
            processing_time: Total time spent waiting on the backend, in seconds
            model: Model name used
            history_size: Conversation log size after the exchange
        """
        message_preview = message[:100] + "..." if len(message) > 100 else message

        self.info(
            f"Exchange complete: {reply_length} chars in {processing_time:.2f}s (model: {model})",
            message_preview=message_preview,
            reply_length=reply_length,
            processing_time_seconds=processing_time,
            model=model,
            history_size=history_size,
        )

    def log_decode(
        self,
        completed: bool,
        lines_parsed: int,
        lines_recovered: int,
        lines_skipped: int,
    ):
        """
        Log the outcome of decoding a backend response body.

        Clean decodes go to DEBUG. A reply with recovered or skipped lines,
        or one missing the done marker, is a WARNING.
        """
        fields = {
            "completed": completed,
            "lines_parsed": lines_parsed,
            "lines_recovered": lines_recovered,
            "lines_skipped": lines_skipped,
        }
        if completed and not lines_recovered and not lines_skipped:
            self.debug(f"Decoded {lines_parsed} response lines", **fields)
        else:
            self.warning(
                f"Degraded decode: completed={completed}, parsed={lines_parsed}, "
                f"recovered={lines_recovered}, skipped={lines_skipped}",
                **fields,
            )


def get_logger(
    name: str,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> StructuredLogger:
    """
    Get the structured logger for ``name``, creating it on first use.

    Level and file default to the LOG_LEVEL and LOG_FILE environment
    variables. Explicit arguments reconfigure an existing logger.
    """
    with _loggers_lock:
        existing = _loggers.get(name)
        if existing is not None:
            if log_level is not None or log_file is not None:
                existing.configure(
                    log_level or logging.getLevelName(existing.logger.level),
                    log_file if log_file is not None else existing.log_file,
                )
            return existing

        logger = StructuredLogger(
            name=name,
            log_level=log_level or os.getenv("LOG_LEVEL", "INFO"),
            log_file=log_file if log_file is not None else os.getenv("LOG_FILE") or None,
        )
        _loggers[name] = logger
        return logger


def configure_logging(log_level: str, log_file: Optional[str] = None):
    """
    Apply a level and log file to every logger handed out so far.

    Loggers created afterwards pick the same settings up through the
    environment.
    """
    os.environ["LOG_LEVEL"] = log_level
    if log_file:
        os.environ["LOG_FILE"] = log_file
    else:
        os.environ.pop("LOG_FILE", None)

    with _loggers_lock:
        for logger in _loggers.values():
            logger.configure(log_level, log_file)
