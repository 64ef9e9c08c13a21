"""Payload Decoder - JSON message bodies to ClinicalRecordBundle.

Security Impact:
    - Decoding is structural only; no business rules are applied
    - Raw bodies are kept on the error for diagnostics, never on success
    - No I/O: decoding the same body always yields the same outcome

Architecture:
    - Pure domain service, returns Result instead of raising
    - Pydantic performs type checking of every field
"""

import json
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from fhir_ingest.domain.clinical_bundle import ClinicalRecordBundle
from fhir_ingest.domain.ports import DecodeError, Result


class PayloadDecoder:
    """Decode queue message bodies into ClinicalRecordBundle objects.

    The body must be a JSON object with ``encounter``, ``practitioner`` and
    ``patient`` objects. Scalar fields missing inside a section decode as
    None; a wrong JSON type, an unparsable timestamp, a missing section or a
    non-object body is a DecodeError.

    Example:
        ```python
        decoder = PayloadDecoder()
        result = decoder.decode(message.body, message.message_id)
        if result.is_success():
            bundle = result.value
        ```
    """

    def decode(self, raw: Optional[str], message_id: Optional[str] = None) -> Result[ClinicalRecordBundle]:
        """Decode a raw message body.

        Parameters:
            raw: Message body as received from the queue
            message_id: Queue message identifier, attached to failures

        Returns:
            Result[ClinicalRecordBundle]: The decoded bundle, or a DecodeError
            failure whose details carry ``message_id`` and ``raw_body``
        """
        try:
            payload = json.loads(raw) if raw is not None else None
        except (TypeError, ValueError) as e:
            return self._failure(f"Message body is not valid JSON: {e}", raw, message_id)

        if not isinstance(payload, dict):
            return self._failure(
                f"Message body must be a JSON object, got {type(payload).__name__}",
                raw,
                message_id,
            )

        try:
            bundle = ClinicalRecordBundle.model_validate(payload)
        except PydanticValidationError as e:
            fields = sorted({".".join(str(loc) for loc in err["loc"]) for err in e.errors()})
            return self._failure(
                f"Message body does not match the bundle structure: {', '.join(fields)}",
                raw,
                message_id,
            )

        return Result.success_result(bundle)

    @staticmethod
    def _failure(reason: str, raw: Optional[str], message_id: Optional[str]) -> Result[ClinicalRecordBundle]:
        error = DecodeError(reason, message_id=message_id, raw_body=raw)
        return Result.failure_result(
            error,
            error_type="DecodeError",
            error_details={"message_id": message_id, "raw_body": raw},
        )
