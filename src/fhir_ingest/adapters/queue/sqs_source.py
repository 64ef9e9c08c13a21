"""Amazon SQS implementation of MessageSourcePort.

This adapter long-polls an SQS queue for one message at a time and hands it
to the pipeline as an InboundMessage tagged with its routing key.

Security Impact:
    - Credentials are passed to boto3 only and never logged
    - Message bodies are not inspected or logged here

Architecture:
    - Implements MessageSourcePort from the domain layer
    - Messages are not deleted after receipt; redelivery after the visibility
      timeout is governed by the queue's own policy
"""

import logging
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from fhir_ingest.domain.ports import InboundMessage, MessageSourcePort, SourceUnavailableError
from fhir_ingest.infrastructure.config_manager import QueueConfig


def create_sqs_client(queue_config: QueueConfig) -> Any:
    """Create a boto3 SQS client from queue configuration.

    Parameters:
        queue_config: Validated queue configuration

    Returns:
        A boto3 SQS client
    """
    secret = queue_config.secret_access_key.get_secret_value() if queue_config.secret_access_key else None
    return boto3.client(
        "sqs",
        region_name=queue_config.region,
        endpoint_url=queue_config.endpoint_url,
        aws_access_key_id=queue_config.access_key_id,
        aws_secret_access_key=secret,
    )


class SQSMessageSource(MessageSourcePort):
    """Receive single messages from an SQS queue.

    Parameters:
        client: boto3 SQS client (or any object with a compatible receive_message)
        queue_url: URL of the queue to poll
        wait_seconds: Long-poll wait per receive call (default: 5)
        routing_attribute: System attribute carrying the routing key
        logger: Logger to report on (defaults to the module logger)

    Example Usage:
        ```python
        source = SQSMessageSource.from_config(queue_config)
        message = source.receive_one()
        if message is not None:
            print(message.message_id, message.routing_key)
        ```
    """

    def __init__(
        self,
        client: Any,
        queue_url: str,
        wait_seconds: int = 5,
        routing_attribute: str = "MessageGroupId",
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.queue_url = queue_url
        self.wait_seconds = wait_seconds
        self.routing_attribute = routing_attribute
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(cls, queue_config: QueueConfig, logger: Optional[logging.Logger] = None) -> 'SQSMessageSource':
        """Build a source and its boto3 client from queue configuration."""
        return cls(
            client=create_sqs_client(queue_config),
            queue_url=queue_config.queue_url,
            wait_seconds=queue_config.wait_seconds,
            routing_attribute=queue_config.routing_attribute,
            logger=logger,
        )

    def describe(self) -> str:
        return self.queue_url

    def receive_one(self) -> Optional[InboundMessage]:
        """Receive at most one message, waiting up to ``wait_seconds``.

        Returns:
            Optional[InboundMessage]: The message, or None if none arrived

        Raises:
            SourceUnavailableError: On transport, throttling or authorization errors
        """
        self.logger.debug("Consuming one message...")
        try:
            response = self.client.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=1,
                WaitTimeSeconds=self.wait_seconds,
                AttributeNames=[self.routing_attribute],
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            raise SourceUnavailableError(
                f"Queue rejected receive request ({code}): {e}",
                source=self.queue_url,
            ) from e
        except BotoCoreError as e:
            raise SourceUnavailableError(
                f"Queue is unreachable: {e}",
                source=self.queue_url,
            ) from e

        messages = response.get("Messages") or []
        if not messages:
            self.logger.debug("No message available")
            return None

        raw = messages[0]
        attributes = raw.get("Attributes") or {}
        return InboundMessage(
            message_id=raw.get("MessageId", ""),
            body=raw.get("Body", ""),
            routing_key=attributes.get(self.routing_attribute, ""),
            receipt_handle=raw.get("ReceiptHandle"),
            attributes=dict(attributes),
        )
