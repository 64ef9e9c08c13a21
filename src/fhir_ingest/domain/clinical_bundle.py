"""Clinical Record Bundle Schema Definitions.

This module defines the decoded, in-memory representation of one queue message:
a Patient, a Practitioner and the Encounter that links them.

Security Impact:
    - Contains PII (names, birth dates) that must never be written to logs
    - Structural validation prevents malformed payloads from reaching persistence
    - Type safety enforced at runtime via Pydantic V2

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Models are immutable once decoded
    - No cross-field business rules: a bundle is valid iff it decodes
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    """Base for models decoded from the camelCase wire format."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Period(_WireModel):
    """Time period of an encounter. Start/end ordering is not enforced."""

    start: Optional[datetime] = Field(None, description="Encounter start (RFC 3339)")
    end: Optional[datetime] = Field(None, description="Encounter end (RFC 3339)")


class PatientRecord(_WireModel):
    """Patient demographics as received on the queue.

    Parameters:
        fhir_id: FHIR resource id (accepted as ``fhirId`` or ``id``)
        given_name: Given/first name (PII)
        family_name: Family/last name (PII)
        birth_date: Birth date string, kept verbatim (PII)
        gender: Gender string, not normalized
    """

    fhir_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("fhirId", "id", "fhir_id"),
        description="FHIR Patient id",
    )
    given_name: Optional[str] = Field(None, alias="givenName", description="Given name (PII)")
    family_name: Optional[str] = Field(None, alias="familyName", description="Family name (PII)")
    birth_date: Optional[str] = Field(None, alias="birthDate", description="Birth date (PII)")
    gender: Optional[str] = Field(None, description="Gender, unvalidated")


class PractitionerRecord(_WireModel):
    """Practitioner identity as received on the queue."""

    fhir_id: Optional[str] = Field(None, alias="fhirId", description="FHIR Practitioner id")
    given_name: Optional[str] = Field(None, alias="givenName", description="Given name")
    family_name: Optional[str] = Field(None, alias="familyName", description="Family name")


class EncounterRecord(_WireModel):
    """Encounter as received on the queue.

    The practitioner and patient references are not part of the decoded
    record: they are storage identifiers and only exist once the other two
    sub-records have been persisted (see EncounterDocument).
    """

    fhir_id: Optional[str] = Field(None, alias="fhirId", description="FHIR Encounter id")
    full_url: Optional[str] = Field(None, alias="fullUrl", description="Canonical URL")
    status: Optional[str] = Field(None, description="Encounter status")
    encounter_class: Optional[str] = Field(None, alias="class", description="Encounter class")
    period: Period = Field(default_factory=Period, description="Encounter period")


class ClinicalRecordBundle(_WireModel):
    """Decoded payload of one queue message.

    Parameters:
        encounter: The encounter linking patient and practitioner
        practitioner: The attending practitioner
        patient: The patient seen during the encounter
    """

    encounter: EncounterRecord
    practitioner: PractitionerRecord
    patient: PatientRecord
