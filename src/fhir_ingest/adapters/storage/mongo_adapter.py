"""MongoDB implementation of the tenant datastore ports.

Each tenant is a logical database on a shared MongoDB deployment. A fresh
client is opened and verified for every processing cycle and closed when the
cycle ends.

Security Impact:
    - Credentials are passed to the driver only and never logged
    - Connection failures are reported with the tenant name, not the URI

Architecture:
    - MongoDatastoreConnector implements DatastoreConnectorPort
    - MongoTenantHandle implements TenantDatastoreHandle
    - Driver errors are translated into ConnectError / StorageError
"""

import logging
from typing import Any, Callable, Optional

from bson.errors import BSONError
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from fhir_ingest.domain.ports import (
    ConnectError,
    DatastoreConnectorPort,
    StorageError,
    TenantDatastoreHandle,
)
from fhir_ingest.infrastructure.config_manager import DatabaseConfig


class MongoTenantHandle(TenantDatastoreHandle):
    """Handle bound to one tenant database.

    Parameters:
        client: Connected MongoClient owned by this handle
        tenant: Name of the tenant database
    """

    def __init__(self, client: Any, tenant: str):
        self._client = client
        self._database = client[tenant]
        self.tenant = tenant

    def insert_one(self, collection: str, document: dict) -> Any:
        """Insert a document and return the ``_id`` assigned by MongoDB.

        Raises:
            StorageError: If the driver reports any error or the document
                cannot be encoded as BSON
        """
        # Lone surrogates in decoded text fail BSON encoding with UnicodeEncodeError
        try:
            result = self._database[collection].insert_one(document)
        except (PyMongoError, BSONError, UnicodeEncodeError) as e:
            raise StorageError(
                f"Insert into {self.tenant}.{collection} failed: {e}",
                operation="insert_one",
                details={"tenant": self.tenant, "collection": collection},
            ) from e
        return result.inserted_id

    def close(self) -> None:
        """Close the underlying client."""
        self._client.close()


class MongoDatastoreConnector(DatastoreConnectorPort):
    """Open verified MongoDB handles for tenant databases.

    Parameters:
        db_config: DatabaseConfig with URI and credentials
        client_factory: Callable building a MongoClient (overridable for tests)
        logger: Logger to report on (defaults to the module logger)

    Example Usage:
        ```python
        connector = MongoDatastoreConnector(config.get_database_config())
        with connector.connect("fhir_hca") as handle:
            handle.insert_one("patients", {"fhirId": "patient-123"})
        ```
    """

    def __init__(
        self,
        db_config: DatabaseConfig,
        client_factory: Optional[Callable[..., Any]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.db_config = db_config
        self._client_factory = client_factory or MongoClient
        self.logger = logger or logging.getLogger(__name__)

    def connect(self, tenant: str) -> MongoTenantHandle:
        """Open a client, ping the deployment and bind it to ``tenant``.

        Raises:
            ConnectError: If the client cannot be created or the ping fails
        """
        client = None
        try:
            client = self._client_factory(
                self.db_config.uri,
                username=self.db_config.username,
                password=self.db_config.password.get_secret_value(),
                serverSelectionTimeoutMS=self.db_config.server_selection_timeout_ms,
            )
            client.admin.command("ping")
        except PyMongoError as e:
            if client is not None:
                client.close()
            raise ConnectError(
                f"Failed to connect to database for tenant {tenant}: {e}",
                tenant=tenant,
            ) from e

        self.logger.debug(f"Connected to {self.db_config.redacted_uri()} for tenant {tenant}")
        return MongoTenantHandle(client, tenant)
