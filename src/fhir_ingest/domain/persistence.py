"""Persistence Gateway - Linked sub-record writes for a ClinicalRecordBundle.

This module writes one bundle as three documents into a tenant database and
derives the encounter's reference fields from the identifiers the datastore
assigns to the patient and practitioner documents.

Security Impact:
    - Only storage identifiers and FHIR ids are logged, never names or birth dates
    - Each document is built from an explicit schema before it is written

Architecture:
    - Depends only on the TenantDatastoreHandle port
    - Writes are ordered, not transactional: a failure at one stage leaves the
      earlier sub-records in place and is reported, not compensated
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from fhir_ingest.domain.clinical_bundle import ClinicalRecordBundle
from fhir_ingest.domain.documents import (
    ENCOUNTERS_COLLECTION,
    PATIENTS_COLLECTION,
    PRACTITIONERS_COLLECTION,
    EncounterDocument,
    PatientDocument,
    PersistedBundle,
    PractitionerDocument,
)
from fhir_ingest.domain.ports import PersistError, Result, StorageError, TenantDatastoreHandle


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PersistenceGateway:
    """Write a bundle as patient, practitioner and encounter documents.

    Algorithm:
        1. Insert the patient document; capture its storage id.
        2. Insert the practitioner document; capture its storage id.
        3. Insert the encounter document with both ids as its
           ``practitionerId``/``patientId`` references.

    Parameters:
        logger: Logger to report progress on (defaults to the module logger)
        clock: Source of processing timestamps (defaults to UTC now)
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock or _utcnow

    def persist(self, handle: TenantDatastoreHandle, bundle: ClinicalRecordBundle) -> Result[PersistedBundle]:
        """Persist a decoded bundle into the tenant database behind ``handle``.

        Parameters:
            handle: Live handle bound to the target tenant database
            bundle: Decoded bundle to write

        Returns:
            Result[PersistedBundle]: Identifiers of the three documents, or a
            PersistError failure whose details carry ``stage`` and the
            ``inserted_ids`` already written before the failure
        """
        inserted: dict[str, Any] = {}

        try:
            self.logger.info(f"Inserting Patient {bundle.patient.fhir_id}")
            patient_doc = PatientDocument.from_record(bundle.patient, self._clock())
            inserted["patient"] = self._insert(handle, "patient", PATIENTS_COLLECTION, patient_doc.to_document(), inserted)
            self.logger.info(f"Patient {bundle.patient.fhir_id} stored as {inserted['patient']}")

            self.logger.info(f"Inserting Practitioner {bundle.practitioner.fhir_id}")
            practitioner_doc = PractitionerDocument.from_record(bundle.practitioner, self._clock())
            inserted["practitioner"] = self._insert(
                handle, "practitioner", PRACTITIONERS_COLLECTION, practitioner_doc.to_document(), inserted
            )
            self.logger.info(f"Practitioner {bundle.practitioner.fhir_id} stored as {inserted['practitioner']}")

            self.logger.info(f"Inserting Encounter {bundle.encounter.fhir_id}")
            encounter_doc = EncounterDocument.from_record(
                bundle.encounter,
                practitioner_id=inserted["practitioner"],
                patient_id=inserted["patient"],
                processed_at=self._clock(),
            )
            inserted["encounter"] = self._insert(
                handle, "encounter", ENCOUNTERS_COLLECTION, encounter_doc.to_document(), inserted
            )
            self.logger.info(f"Encounter {bundle.encounter.fhir_id} stored as {inserted['encounter']}")
        except PersistError as e:
            if e.inserted_ids:
                self.logger.warning(
                    f"Partial write in {handle.tenant}: {e.stage} failed after inserting {e.inserted_ids}"
                )
            return Result.failure_result(
                e,
                error_type="PersistError",
                error_details={"stage": e.stage, "inserted_ids": e.inserted_ids, "tenant": handle.tenant},
            )

        return Result.success_result(PersistedBundle(
            tenant=handle.tenant,
            patient_id=inserted["patient"],
            practitioner_id=inserted["practitioner"],
            encounter_id=inserted["encounter"],
        ))

    @staticmethod
    def _insert(
        handle: TenantDatastoreHandle,
        stage: str,
        collection: str,
        document: dict,
        inserted: dict,
    ) -> Any:
        try:
            return handle.insert_one(collection, document)
        except StorageError as e:
            raise PersistError(
                f"Failed to insert {stage}: {e}",
                stage=stage,
                inserted_ids=dict(inserted),
            ) from e
