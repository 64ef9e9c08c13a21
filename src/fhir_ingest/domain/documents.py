"""Stored document schemas for the three sub-records of a bundle.

Each collection has an explicit schema so that a missing field is a model
error rather than a silently absent key. Documents serialize to the
camelCase layout used in the tenant databases.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from fhir_ingest.domain.clinical_bundle import (
    EncounterRecord,
    PatientRecord,
    Period,
    PractitionerRecord,
)

PATIENTS_COLLECTION = "patients"
PRACTITIONERS_COLLECTION = "practitioners"
ENCOUNTERS_COLLECTION = "encounters"


class _StoredDocument(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True)

    def to_document(self) -> dict:
        """Serialize to the datastore document layout."""
        return self.model_dump(by_alias=True)


class PatientDocument(_StoredDocument):
    fhir_id: Optional[str] = Field(..., alias="fhirId")
    given_name: Optional[str] = Field(..., alias="givenName")
    family_name: Optional[str] = Field(..., alias="familyName")
    birth_date: Optional[str] = Field(..., alias="birthDate")
    gender: Optional[str] = Field(...)
    processed_at: datetime = Field(..., alias="processedAt")

    @classmethod
    def from_record(cls, patient: PatientRecord, processed_at: datetime) -> 'PatientDocument':
        return cls(
            fhir_id=patient.fhir_id,
            given_name=patient.given_name,
            family_name=patient.family_name,
            birth_date=patient.birth_date,
            gender=patient.gender,
            processed_at=processed_at,
        )


class PractitionerDocument(_StoredDocument):
    fhir_id: Optional[str] = Field(..., alias="fhirId")
    given_name: Optional[str] = Field(..., alias="givenName")
    family_name: Optional[str] = Field(..., alias="familyName")
    processed_at: datetime = Field(..., alias="processedAt")

    @classmethod
    def from_record(cls, practitioner: PractitionerRecord, processed_at: datetime) -> 'PractitionerDocument':
        return cls(
            fhir_id=practitioner.fhir_id,
            given_name=practitioner.given_name,
            family_name=practitioner.family_name,
            processed_at=processed_at,
        )


class EncounterDocument(_StoredDocument):
    """Encounter sub-record with its derived reference fields.

    ``practitioner_id`` and ``patient_id`` hold the storage identifiers
    assigned to the practitioner and patient documents of the same bundle.
    """

    fhir_id: Optional[str] = Field(..., alias="fhirId")
    full_url: Optional[str] = Field(..., alias="fullUrl")
    status: Optional[str] = Field(...)
    encounter_class: Optional[str] = Field(..., alias="class")
    period: Period = Field(...)
    practitioner_id: Any = Field(..., alias="practitionerId")
    patient_id: Any = Field(..., alias="patientId")
    processed_at: datetime = Field(..., alias="processedAt")

    @classmethod
    def from_record(
        cls,
        encounter: EncounterRecord,
        practitioner_id: Any,
        patient_id: Any,
        processed_at: datetime,
    ) -> 'EncounterDocument':
        return cls(
            fhir_id=encounter.fhir_id,
            full_url=encounter.full_url,
            status=encounter.status,
            encounter_class=encounter.encounter_class,
            period=encounter.period,
            practitioner_id=practitioner_id,
            patient_id=patient_id,
            processed_at=processed_at,
        )


class PersistedBundle(BaseModel):
    """Storage identifiers of the three sub-records written for one bundle."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    tenant: str
    patient_id: Any
    practitioner_id: Any
    encounter_id: Any
