"""Storage adapters for the FHIR ingest worker.

This module contains storage adapters that implement the datastore ports
for persisting the sub-records of each bundle into tenant databases.
"""

from fhir_ingest.adapters.storage.mongo_adapter import MongoDatastoreConnector, MongoTenantHandle

__all__ = ["MongoDatastoreConnector", "MongoTenantHandle"]
