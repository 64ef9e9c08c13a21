"""Logging configuration for the worker process.

Logs go to standard output and to a daily rotating file at the same time.
Logging is configured once at startup; the returned logger is handed to the
pipeline components instead of being looked up as global state.

Security Impact:
    - Credentials are never passed to log calls
    - Message bodies (PII) are only emitted at DEBUG level
"""

import logging
import json
import sys
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from fhir_ingest.infrastructure.settings import Settings

WORKER_LOGGER_NAME = "fhir_ingest"
LOG_FILE_NAME = "worker.log"

_NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "pymongo")


class StructuredFormatter(logging.Formatter):
    """Structured JSON formatter for logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Parameters:
            record: Log record to format

        Returns:
            JSON string representation of log record
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Pipeline context
        for attr in ("message_id", "tenant", "stage"):
            if hasattr(record, attr):
                log_data[attr] = getattr(record, attr)

        return json.dumps(log_data, default=str)


def build_formatter(use_json: bool) -> logging.Formatter:
    if use_json:
        return StructuredFormatter()
    # Human-readable format for development
    return logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Setup process logging and return the worker logger.

    Parameters:
        settings: Worker settings (log level, format, file location, retention)

    Returns:
        logging.Logger: The worker logger to inject into pipeline components
    """
    settings = settings or Settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    formatter = build_formatter(settings.log_json)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if settings.log_file_enabled:
        log_path = Path(settings.log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # Rotated daily, e.g. worker.log.2024-05-01
        file_handler = TimedRotatingFileHandler(
            filename=str(log_path / LOG_FILE_NAME),
            when="midnight",
            interval=1,
            backupCount=settings.log_retention_days,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Set levels for third-party loggers
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger(WORKER_LOGGER_NAME)

