"""Logging configuration for the FHIR conformance engine."""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional
import json
from datetime import datetime

_RESERVED_RECORD_KEYS = frozenset(
    (
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
    )
)

_MODULE_LOGGERS = ("client", "capability", "runner", "db", "sequences")


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Fields passed through ``extra=``
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, separators=(",", ":"), default=str)


def setup_logging(
    level: str = None,
    log_dir: Optional[str] = None,
    enable_console: bool = True,
    enable_file: bool = False,
    json_format: Optional[bool] = None,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """
    Setup logging for the conformance engine.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files (defaults to logs/)
        enable_console: Enable console logging (stderr, so stdout stays the report)
        enable_file: Enable rotating file logging
        json_format: Use JSON format for logs; defaults to on when
            FHIR_CONFORMANCE_ENVIRONMENT=production
        max_file_size_mb: Maximum size per log file in MB
        backup_count: Number of backup files to keep
    """
    if level is None:
        level = os.getenv("FHIR_CONFORMANCE_LOG_LEVEL", "INFO")
    level = level.upper()

    if json_format is None:
        json_format = (
            os.getenv("FHIR_CONFORMANCE_ENVIRONMENT", "development").lower()
            == "production"
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))
    root_logger.handlers.clear()

    if json_format:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s "
            "[%(filename)s:%(lineno)d]"
        )

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, level))
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if enable_file:
        if log_dir is None:
            log_dir = os.getenv("FHIR_CONFORMANCE_LOG_DIR", "logs")
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        main_handler = logging.handlers.RotatingFileHandler(
            log_path / "fhir_conformance.log",
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
        main_handler.setLevel(getattr(logging, level))
        main_handler.setFormatter(formatter)
        root_logger.addHandler(main_handler)

        # Error-only log
        error_handler = logging.handlers.RotatingFileHandler(
            log_path / "fhir_conformance_errors.log",
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        root_logger.addHandler(error_handler)

    _setup_module_loggers()


def _setup_module_loggers() -> None:
    """Apply per-module levels from FHIR_CONFORMANCE_LOG_LEVEL_<MODULE>."""
    for logger_name in _MODULE_LOGGERS:
        env_var = f"FHIR_CONFORMANCE_LOG_LEVEL_{logger_name.upper()}"
        level = os.getenv(env_var, None)
        if level:
            logger = logging.getLogger(f"fhir_conformance.{logger_name}")
            logger.setLevel(getattr(logging, level.upper()))


def get_logger(name: str) -> logging.Logger:
    """Get logger for specific module."""
    if not name.startswith("fhir_conformance."):
        name = f"fhir_conformance.{name}"
    return logging.getLogger(name)
