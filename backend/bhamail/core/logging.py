"""Structured logging configuration for the BhaMail backend.

Provides:
- JSON structured logs for production, colored console output for DEBUG
- Optional rotating file handler (10MB max, 5 backups)
- Redaction of passwords, secrets and bearer/JWT tokens before any handler
  sees a record

Modules obtain loggers with ``get_logger(__name__)`` and attach structured
fields through ``extra={"context": {...}}``.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import ClassVar

from bhamail.core.config import settings


class SensitiveDataFilter(logging.Filter):
    """Filter that redacts credentials from log messages and arguments.

    Covers ``key: value`` / ``key=value`` pairs for the keys in
    ``SENSITIVE_KEYS`` and any JWT-shaped string, wherever it appears.

    Examples:
        >>> logger = logging.getLogger("bhamail")
        >>> logger.addFilter(SensitiveDataFilter())
        >>> logger.info("User password: secret123")
        # Logs: "User password: [REDACTED]"
    """

    SENSITIVE_KEYS: ClassVar[list[str]] = [
        "password",
        "passwd",
        "pwd",
        "secret",
        "token",
        "totp_code",
        "api_key",
        "authorization",
        "bearer",
        "credential",
    ]

    _KEY_VALUE_PATTERNS: ClassVar[list[tuple[str, re.Pattern[str]]]] = [
        (key, re.compile(rf"{key}[:=]\s*[\"']?[^\s\"',]+", re.IGNORECASE))
        for key in SENSITIVE_KEYS
    ]

    # header.payload.signature, base64url segments; JWT headers start with "eyJ"
    _JWT_PATTERN: ClassVar[re.Pattern[str]] = re.compile(
        r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"
    )

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive data in place. Always keeps the record."""
        record.msg = self.redact(str(record.msg))

        if record.args:
            record.args = tuple(
                self.redact(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True

    def redact(self, text: str) -> str:
        """Return ``text`` with credentials replaced by ``[REDACTED]``."""
        text = self._JWT_PATTERN.sub("[REDACTED]", text)
        for key, pattern in self._KEY_VALUE_PATTERNS:
            text = pattern.sub(f"{key}: [REDACTED]", text)
        return text


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Format:
        {
            "timestamp": "2026-01-12T10:30:45.123Z",
            "level": "INFO",
            "logger": "bhamail.services.auth_service",
            "message": "User signed up",
            "service": "BhaMail API",
            "context": {"user_id": "...", "action": "signup"}
        }
    """

    def __init__(
        self,
        service_name: str = "BhaMail API",
        service_version: str = "0.1.0",
    ) -> None:
        super().__init__()
        self.service_name = service_name
        self.service_version = service_version

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "version": self.service_version,
        }

        if hasattr(record, "context"):
            log_entry["context"] = record.context

        if record.exc_info:
            log_entry["exception"] = {  # type: ignore[assignment]
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if record.levelno >= logging.ERROR:
            log_entry["source"] = {  # type: ignore[assignment]
                "function": record.funcName,
                "line": record.lineno,
                "file": record.pathname,
                "process": record.process,
            }

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ColoredConsoleFormatter(logging.Formatter):
    """Human-readable colored console output for development."""

    COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[41m",  # Red background
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            line = f"{line} | Context: {json.dumps(context, default=str)}"
        return line.replace(
            record.levelname, f"{color}{record.levelname}{self.RESET}", 1
        )


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    service_name: str = "BhaMail API",
    enable_json: bool = True,
) -> logging.Logger:
    """Configure the root logger.

    Args:
        log_level: Logging level name. Defaults to ``settings.LOG_LEVEL``.
        log_file: Optional path of a rotating log file. No file handler is
            installed when omitted.
        service_name: Service name written into JSON records.
        enable_json: Use JSON for the file handler (console output is JSON
            unless ``settings.DEBUG`` is set).

    Returns:
        The configured root logger.
    """
    if log_level is None:
        log_level = settings.LOG_LEVEL
    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.handlers.clear()

    sensitive_filter = SensitiveDataFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    if settings.DEBUG:
        console_handler.setFormatter(ColoredConsoleFormatter())
    else:
        console_handler.setFormatter(JSONFormatter(service_name=service_name))
    console_handler.addFilter(sensitive_filter)
    logger.addHandler(console_handler)

    if log_file:
        log_file_path = Path(log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            filename=str(log_file_path),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        if enable_json:
            file_handler.setFormatter(JSONFormatter(service_name=service_name))
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
        file_handler.addFilter(sensitive_filter)
        logger.addHandler(file_handler)

    logger.info(
        f"Logging initialized - Level: {log_level}",
        extra={
            "context": {
                "log_level": log_level,
                "log_file": log_file,
                "service": service_name,
            }
        },
    )

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger that inherits the configuration from ``setup_logging``.

    Examples:
        >>> from bhamail.core.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Processing request")
    """
    return logging.getLogger(name)


__all__ = [
    "ColoredConsoleFormatter",
    "JSONFormatter",
    "SensitiveDataFilter",
    "get_logger",
    "setup_logging",
]
