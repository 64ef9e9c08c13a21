"""Application Settings.

This module provides the non-secret runtime knobs of the worker: logging
output and loop pacing. Credentials and endpoints live in config_manager.

Security Impact:
    - No credentials are read here, settings may be printed freely
"""

import os
from typing import Optional

# Application metadata
APP_NAME = "FHIR-Ingest-Worker"
APP_VERSION = "1.0.0"

# Default log directory (container layout)
DEFAULT_LOG_DIR = "/app/logs"

# Rotated log files are kept for three days
DEFAULT_LOG_RETENTION_DAYS = 3

# Pause after an empty poll, in seconds
DEFAULT_IDLE_SLEEP = 1.0

# Pause after a queue failure, in seconds
DEFAULT_ERROR_SLEEP = 5.0


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Worker settings loaded from environment variables with defaults.

    Environment Variables:
        - LOG_LEVEL: Logging level (default: INFO)
        - LOG_JSON: Emit JSON log lines (default: false)
        - LOG_DIR: Directory of the rotating log file (default: /app/logs)
        - LOG_FILE_ENABLED: Write the rotating log file (default: true)
        - LOG_RETENTION_DAYS: Rotated files to keep (default: 3)
        - WORKER_IDLE_SLEEP: Seconds to wait after an empty poll (default: 1)
        - WORKER_ERROR_SLEEP: Seconds to wait after a queue failure (default: 5)
    """

    def __init__(self, app_name: Optional[str] = None):
        """Initialize settings from environment."""
        self.app_name = app_name or os.getenv("WORKER_APP_NAME", APP_NAME)
        self.app_version = APP_VERSION

        # Logging
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_json = _env_bool("LOG_JSON", False)
        self.log_dir = os.getenv("LOG_DIR", DEFAULT_LOG_DIR)
        self.log_file_enabled = _env_bool("LOG_FILE_ENABLED", True)
        self.log_retention_days = int(os.getenv("LOG_RETENTION_DAYS", str(DEFAULT_LOG_RETENTION_DAYS)))

        # Loop pacing
        self.idle_sleep = float(os.getenv("WORKER_IDLE_SLEEP", str(DEFAULT_IDLE_SLEEP)))
        self.error_sleep = float(os.getenv("WORKER_ERROR_SLEEP", str(DEFAULT_ERROR_SLEEP)))

    def as_dict(self) -> dict:
        """Settings as a flat dictionary, for display."""
        return {
            "app_name": self.app_name,
            "app_version": self.app_version,
            "log_level": self.log_level,
            "log_json": self.log_json,
            "log_dir": self.log_dir,
            "log_file_enabled": self.log_file_enabled,
            "log_retention_days": self.log_retention_days,
            "idle_sleep": self.idle_sleep,
            "error_sleep": self.error_sleep,
        }
