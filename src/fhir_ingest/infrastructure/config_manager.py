"""Configuration Manager for Secure Credential Handling.

This module loads the queue and datastore configuration the worker needs at
startup and validates it before any client is built.

Security Impact:
    - Credentials are never logged or exposed in error messages
    - Passwords and secret keys are held as SecretStr
    - Missing configuration is reported by variable name only

Architecture:
    - Follows Hexagonal Architecture: Infrastructure layer isolated from domain
    - Type-safe configuration using Pydantic models
    - Fail-fast validation raises ConfigurationError; converting it into a
      process exit is left to the outermost entry point
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse, urlunparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator, ValidationError as PydanticValidationError

logger = logging.getLogger(__name__)

# Environment variable names
ENV_QUEUE_URL = "SQS_QUEUE_URL"
ENV_QUEUE_REGION = "AWS_REGION"
ENV_QUEUE_ENDPOINT = "SQS_ENDPOINT_URL"
ENV_ACCESS_KEY_ID = "AWS_ACCESS_KEY_ID"
ENV_SECRET_ACCESS_KEY = "AWS_SECRET_ACCESS_KEY"
ENV_DB_URI = "DB_URI"
ENV_DB_USER = "DB_USER"
ENV_DB_PASSWORD = "DB_PWD"

DEFAULT_REGION = "sa-east-1"
DEFAULT_ENDPOINT = "http://localstack:4566"
DEFAULT_STATIC_CREDENTIAL = "test"


class ConfigurationError(Exception):
    """Raised when required startup configuration is missing or invalid.

    Attributes:
        missing: Names of the environment variables that were not provided
    """

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class QueueConfig(BaseModel):
    """Work queue configuration.

    Parameters:
        queue_url: URL of the SQS queue to poll
        region: AWS region of the queue
        endpoint_url: Endpoint override (LocalStack in development)
        access_key_id: Static access key id
        secret_access_key: Static secret access key (SecretStr - never logged)
        wait_seconds: Long-poll wait per receive call
        routing_attribute: Message attribute holding the routing key
    """

    queue_url: str = Field(..., description="SQS queue URL")
    region: str = Field(default=DEFAULT_REGION, description="AWS region")
    endpoint_url: Optional[str] = Field(default=DEFAULT_ENDPOINT, description="SQS endpoint override")
    access_key_id: Optional[str] = Field(default=DEFAULT_STATIC_CREDENTIAL, description="AWS access key id")
    secret_access_key: Optional[SecretStr] = Field(
        default=SecretStr(DEFAULT_STATIC_CREDENTIAL), description="AWS secret access key (secret)"
    )
    wait_seconds: int = Field(default=5, ge=0, le=20, description="Long-poll wait in seconds")
    routing_attribute: str = Field(default="MessageGroupId", description="Routing key attribute")

    @field_validator("queue_url")
    @classmethod
    def validate_queue_url(cls, v: str) -> str:
        """Validate that the queue URL is an http(s) URL."""
        if urlparse(v).scheme not in ("http", "https"):
            raise ValueError(f"Queue URL must be an http(s) URL. Got: {v}")
        return v


class DatabaseConfig(BaseModel):
    """MongoDB configuration with secure credential handling.

    Parameters:
        uri: MongoDB connection URI
        username: Database username
        password: Database password (SecretStr - never logged)
        server_selection_timeout_ms: How long a connect attempt may wait for a server
    """

    uri: str = Field(..., description="MongoDB connection URI")
    username: str = Field(..., description="Database username")
    password: SecretStr = Field(..., description="Database password (secret)")
    server_selection_timeout_ms: int = Field(default=5000, gt=0, description="Server selection timeout")

    @field_validator("uri")
    @classmethod
    def validate_uri(cls, v: str) -> str:
        """Validate the MongoDB URI scheme."""
        if urlparse(v).scheme not in ("mongodb", "mongodb+srv"):
            raise ValueError("Database URI must use the mongodb:// or mongodb+srv:// scheme")
        return v

    def redacted_uri(self) -> str:
        """Return the URI with any embedded credentials removed, safe for display."""
        parsed = urlparse(self.uri)
        hosts = parsed.netloc.rpartition("@")[2]
        return urlunparse(parsed._replace(netloc=hosts))


class ConfigManager:
    """Secure configuration manager for queue and datastore settings.

    Example Usage:
        ```python
        config = ConfigManager.from_environment()
        config.validate()
        queue_config = config.get_queue_config()
        db_config = config.get_database_config()
        ```
    """

    REQUIRED = {
        "queue": [ENV_QUEUE_URL],
        "database": [ENV_DB_URI, ENV_DB_USER, ENV_DB_PASSWORD],
    }

    def __init__(self, config_data: Dict[str, Any]):
        """Initialize configuration manager.

        Parameters:
            config_data: Configuration dictionary with "queue" and "database"
                sections; each section also records its missing variables
                under "_missing"
        """
        self._config_data = config_data
        self._queue_config: Optional[QueueConfig] = None
        self._database_config: Optional[DatabaseConfig] = None

    @classmethod
    def from_environment(cls, load_env_file: bool = True) -> 'ConfigManager':
        """Load configuration from environment variables.

        Environment Variables:
            - SQS_QUEUE_URL: Queue URL (required)
            - AWS_REGION: Queue region (default: sa-east-1)
            - SQS_ENDPOINT_URL: Endpoint override (default: http://localstack:4566)
            - AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY: Static credentials (default: test/test)
            - DB_URI: MongoDB URI (required)
            - DB_USER: Database username (required)
            - DB_PWD: Database password (required, secret)

        Parameters:
            load_env_file: Load a .env file from the project root first, if present.
                Variables already set in the environment take precedence.

        Returns:
            ConfigManager instance
        """
        if load_env_file:
            env_path = Path(__file__).resolve().parents[3] / ".env"
            if env_path.exists():
                load_dotenv(env_path)
                logger.debug(f"Loaded environment variables from {env_path}")

        config_data: Dict[str, Any] = {
            "queue": {
                "queue_url": os.getenv(ENV_QUEUE_URL),
                "region": os.getenv(ENV_QUEUE_REGION) or DEFAULT_REGION,
                "endpoint_url": os.getenv(ENV_QUEUE_ENDPOINT) or DEFAULT_ENDPOINT,
                "access_key_id": os.getenv(ENV_ACCESS_KEY_ID) or DEFAULT_STATIC_CREDENTIAL,
                "secret_access_key": os.getenv(ENV_SECRET_ACCESS_KEY) or DEFAULT_STATIC_CREDENTIAL,
            },
            "database": {
                "uri": os.getenv(ENV_DB_URI),
                "username": os.getenv(ENV_DB_USER),
                "password": os.getenv(ENV_DB_PASSWORD),
            },
        }
        for section, names in cls.REQUIRED.items():
            config_data[section]["_missing"] = [name for name in names if not os.getenv(name)]

        return cls(config_data)

    def missing_variables(self) -> list[str]:
        """Names of all required environment variables that were not provided."""
        missing = []
        for section in self.REQUIRED:
            missing.extend(self._config_data.get(section, {}).get("_missing", []))
        return missing

    def validate(self) -> None:
        """Validate the whole configuration at once.

        Raises:
            ConfigurationError: Listing every missing variable, or the first
                invalid section
        """
        missing = self.missing_variables()
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                missing=missing,
            )
        self.get_queue_config()
        self.get_database_config()

    def get_queue_config(self) -> QueueConfig:
        """Get validated queue configuration.

        Raises:
            ConfigurationError: If the queue URL is missing or invalid
        """
        if self._queue_config is None:
            self._queue_config = self._build("queue", QueueConfig)
        return self._queue_config

    def get_database_config(self) -> DatabaseConfig:
        """Get validated database configuration.

        Raises:
            ConfigurationError: If DB_URI, DB_USER or DB_PWD is missing or invalid
        """
        if self._database_config is None:
            self._database_config = self._build("database", DatabaseConfig)
        return self._database_config

    def _build(self, section: str, model: type) -> Any:
        data = dict(self._config_data.get(section, {}))
        missing = data.pop("_missing", [])
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                missing=missing,
            )
        try:
            return model(**{k: v for k, v in data.items() if v is not None})
        except PydanticValidationError as e:
            # Pydantic messages may echo input values, keep only field names
            fields = sorted({str(err["loc"][0]) for err in e.errors()})
            raise ConfigurationError(f"Invalid {section} configuration: {', '.join(fields)}") from None
