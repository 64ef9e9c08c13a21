"""Domain layer for the FHIR ingest worker.

This module contains the clinical bundle schemas, the stored document schemas
and the pure services of the pipeline (routing, decoding, persistence).
All domain models are pure Python with no external dependencies beyond Pydantic.
"""

from .clinical_bundle import (
    ClinicalRecordBundle,
    EncounterRecord,
    PatientRecord,
    Period,
    PractitionerRecord,
)
from .documents import PersistedBundle

__all__ = [
    "ClinicalRecordBundle",
    "EncounterRecord",
    "PatientRecord",
    "Period",
    "PractitionerRecord",
    "PersistedBundle",
]
