"""FHIR ingest worker: queue-driven persistence of encounter bundles."""

__version__ = "1.0.0"
