"""Tests for SQSMessageSource using a mocked boto3 client."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError
from pydantic import SecretStr

from fhir_ingest.adapters.queue.sqs_source import SQSMessageSource, create_sqs_client
from fhir_ingest.domain.ports import InboundMessage, SourceUnavailableError
from fhir_ingest.infrastructure.config_manager import QueueConfig

QUEUE_URL = "http://localstack:4566/000000000000/fhir-encounters.fifo"


@pytest.fixture
def sqs_client():
    return MagicMock()


@pytest.fixture
def source(sqs_client):
    return SQSMessageSource(client=sqs_client, queue_url=QUEUE_URL)


class TestReceiveOne:
    """Test single message receipt."""

    def test_receive_request_parameters(self, source, sqs_client):
        """Test one message is requested with a 5 second long poll and the group attribute."""
        sqs_client.receive_message.return_value = {}

        source.receive_one()

        sqs_client.receive_message.assert_called_once_with(
            QueueUrl=QUEUE_URL,
            MaxNumberOfMessages=1,
            WaitTimeSeconds=5,
            AttributeNames=["MessageGroupId"],
        )

    def test_receive_message(self, source, sqs_client, sample_body):
        """Test a received message is mapped with its routing key."""
        sqs_client.receive_message.return_value = {
            "Messages": [{
                "MessageId": "abc-123",
                "ReceiptHandle": "rh-1",
                "Body": sample_body,
                "Attributes": {"MessageGroupId": "001"},
            }]
        }

        message = source.receive_one()

        assert message == InboundMessage(
            message_id="abc-123",
            body=sample_body,
            routing_key="001",
            receipt_handle="rh-1",
            attributes={"MessageGroupId": "001"},
        )

    def test_message_is_not_deleted(self, source, sqs_client):
        """Test receipt does not acknowledge the message."""
        sqs_client.receive_message.return_value = {
            "Messages": [{"MessageId": "abc", "Body": "{}", "Attributes": {}}]
        }

        source.receive_one()

        sqs_client.delete_message.assert_not_called()

    def test_missing_group_attribute(self, source, sqs_client):
        """Test a message without MessageGroupId gets an empty routing key."""
        sqs_client.receive_message.return_value = {
            "Messages": [{"MessageId": "abc", "Body": "{}"}]
        }

        message = source.receive_one()

        assert message.routing_key == ""

    @pytest.mark.parametrize("response", [{}, {"Messages": []}])
    def test_empty_queue(self, source, sqs_client, response):
        """Test an empty long poll returns None."""
        sqs_client.receive_message.return_value = response

        assert source.receive_one() is None

    def test_client_error(self, source, sqs_client):
        """Test an AWS error response becomes SourceUnavailableError."""
        sqs_client.receive_message.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "not allowed"}},
            "ReceiveMessage",
        )

        with pytest.raises(SourceUnavailableError) as exc_info:
            source.receive_one()

        assert "AccessDenied" in str(exc_info.value)
        assert exc_info.value.source == QUEUE_URL

    def test_transport_error(self, source, sqs_client):
        """Test an unreachable endpoint becomes SourceUnavailableError."""
        sqs_client.receive_message.side_effect = EndpointConnectionError(
            endpoint_url="http://localstack:4566"
        )

        with pytest.raises(SourceUnavailableError):
            source.receive_one()

    def test_describe(self, source):
        assert source.describe() == QUEUE_URL


class TestClientConstruction:
    """Test boto3 client construction from configuration."""

    def test_create_sqs_client(self):
        """Test region, endpoint and static credentials are passed to boto3."""
        config = QueueConfig(
            queue_url=QUEUE_URL,
            region="sa-east-1",
            endpoint_url="http://localstack:4566",
            access_key_id="test",
            secret_access_key=SecretStr("secret"),
        )

        with patch("fhir_ingest.adapters.queue.sqs_source.boto3") as mock_boto3:
            create_sqs_client(config)

        mock_boto3.client.assert_called_once_with(
            "sqs",
            region_name="sa-east-1",
            endpoint_url="http://localstack:4566",
            aws_access_key_id="test",
            aws_secret_access_key="secret",
        )

    def test_from_config(self):
        """Test the source takes queue URL and wait time from configuration."""
        config = QueueConfig(queue_url=QUEUE_URL, wait_seconds=3)

        with patch("fhir_ingest.adapters.queue.sqs_source.boto3") as mock_boto3:
            source = SQSMessageSource.from_config(config)

        assert source.client is mock_boto3.client.return_value
        assert source.queue_url == QUEUE_URL
        assert source.wait_seconds == 3
