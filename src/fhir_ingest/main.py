"""Worker bootstrap for the FHIR ingest pipeline.

This module wires configuration, logging and the queue/datastore adapters
into an IngestionWorker. It never exits the process: configuration problems
surface as ConfigurationError for the CLI to turn into an exit code.

Architecture:
    - Follows Hexagonal Architecture principles
    - Adapters are built here and injected into the pipeline driver
"""

import logging
from typing import Optional

from fhir_ingest.adapters.queue import SQSMessageSource
from fhir_ingest.adapters.storage import MongoDatastoreConnector
from fhir_ingest.infrastructure.config_manager import ConfigManager
from fhir_ingest.infrastructure.logging_config import setup_logging
from fhir_ingest.infrastructure.settings import Settings
from fhir_ingest.pipeline import IngestionWorker


def load_configuration(config_manager: Optional[ConfigManager] = None) -> ConfigManager:
    """Load and validate startup configuration.

    Raises:
        ConfigurationError: If any required variable is missing or invalid
    """
    config_manager = config_manager or ConfigManager.from_environment()
    config_manager.validate()
    return config_manager


def create_worker(
    config_manager: ConfigManager,
    settings: Settings,
    logger: Optional[logging.Logger] = None,
) -> IngestionWorker:
    """Build an IngestionWorker from validated configuration.

    Parameters:
        config_manager: Validated configuration manager
        settings: Worker settings (pacing)
        logger: Worker logger (defaults to the module logger)

    Returns:
        IngestionWorker ready to run
    """
    logger = logger or logging.getLogger(__name__)
    queue_config = config_manager.get_queue_config()
    db_config = config_manager.get_database_config()

    logger.info(f"Queue: {queue_config.queue_url} (region {queue_config.region})")
    logger.info(f"Database: {db_config.redacted_uri()}")

    return IngestionWorker(
        source=SQSMessageSource.from_config(queue_config, logger=logger),
        connector=MongoDatastoreConnector(db_config, logger=logger),
        logger=logger,
        idle_sleep=settings.idle_sleep,
        error_sleep=settings.error_sleep,
    )


def run(config_manager: Optional[ConfigManager] = None, settings: Optional[Settings] = None) -> None:
    """Set up logging and run the worker until interrupted.

    Parameters:
        config_manager: Already validated configuration; loaded and validated
            from the environment when omitted
        settings: Worker settings (default: Settings())

    Raises:
        ConfigurationError: If configuration is loaded here and is missing
            required variables
    """
    if config_manager is None:
        config_manager = load_configuration()
    settings = settings or Settings()
    logger = setup_logging(settings)
    logger.info(f"Starting {settings.app_name} {settings.app_version}")

    worker = create_worker(config_manager, settings, logger=logger)
    worker.run_forever()
