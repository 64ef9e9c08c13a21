"""Queue adapters implementing MessageSourcePort."""

from fhir_ingest.adapters.queue.sqs_source import SQSMessageSource, create_sqs_client

__all__ = ["SQSMessageSource", "create_sqs_client"]
