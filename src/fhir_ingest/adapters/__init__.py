"""Adapters layer for the FHIR ingest worker.

This module contains input/output adapters that interface with external systems.
Adapters implement Port interfaces defined in the domain layer and translate
queue and datastore client errors into domain errors.
"""
