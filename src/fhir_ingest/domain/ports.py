"""Domain Ports - Abstract Contracts for Queue Ingestion.

This module defines the Port interfaces (abstract contracts) that Adapters must implement.
Following Hexagonal Architecture, the Domain Core defines what it needs, not how it's provided.

Security Impact:
    - Ports never expose credentials or client objects to the domain
    - Failures travel as typed errors carrying only diagnostic context
    - Message bodies are treated as untrusted input until decoded

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (SQS, MongoDB, etc.) implement these ports
    - Domain Core is isolated from queue and datastore specifics
    - One message in flight at a time; no port is required to be thread-safe
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar, Union

# Type variable for Result generic
T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    The pipeline driver inspects results from the decoder and the persistence
    gateway to decide whether a message completed or must be skipped, without
    relying on exception handling for expected per-message failures.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error information (only present if success=False)
        error_type: Type of error (DecodeError, PersistError, etc.)
        error_details: Additional error context (message_id, stage, etc.)

    Example:
        ```python
        result = decoder.decode(message.body, message.message_id)
        if result.is_failure():
            logger.warning(result.error, extra=result.error_details)
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result.

        Parameters:
            value: The successful result value

        Returns:
            Result: Success result with the value
        """
        return cls(
            success=True,
            value=value,
            error=None,
            error_type=None,
            error_details=None
        )

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error (e.g., "DecodeError", "PersistError")
            error_details: Additional context (message_id, stage, inserted_ids, etc.)

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class IngestionError(Exception):
    """Base exception for all ingestion-related errors."""
    pass


class SourceUnavailableError(IngestionError):
    """Raised when the message source cannot be reached.

    Covers transport failures, throttling and authentication errors on the
    receive call. The driver backs off before polling again.

    Attributes:
        source: Queue identifier that could not be polled
    """

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class DecodeError(IngestionError):
    """Raised when a message body cannot be decoded into a ClinicalRecordBundle.

    Attributes:
        message_id: Identifier of the message whose body failed to decode
        raw_body: The original, undecoded message body
    """

    def __init__(self, message: str, message_id: Optional[str] = None, raw_body: Optional[str] = None):
        super().__init__(message)
        self.message_id = message_id
        self.raw_body = raw_body


class ConnectError(IngestionError):
    """Raised when a tenant datastore handle cannot be acquired.

    Attributes:
        tenant: Tenant datastore identifier the connection was meant for
    """

    def __init__(self, message: str, tenant: Optional[str] = None):
        super().__init__(message)
        self.tenant = tenant


class StorageError(IngestionError):
    """Raised by datastore handles when a single storage operation fails.

    Attributes:
        operation: Storage operation that failed (insert_one, ping, etc.)
        details: Additional error details (collection, tenant, etc.)
    """

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}


class PersistError(IngestionError):
    """Raised when one of the three sub-record inserts fails.

    Writes are ordered but not transactional: sub-records inserted before the
    failing stage stay in the datastore. ``inserted_ids`` names them so they
    can be located from the logs.

    Attributes:
        stage: Sub-record that failed (patient, practitioner or encounter)
        inserted_ids: Storage identifiers written before the failure, by stage
    """

    def __init__(self, message: str, stage: Optional[str] = None, inserted_ids: Optional[dict] = None):
        super().__init__(message)
        self.stage = stage
        self.inserted_ids = inserted_ids or {}


# ============================================================================
# Queue Message
# ============================================================================

@dataclass(frozen=True)
class InboundMessage:
    """A single message received from the work queue.

    Attributes:
        message_id: Opaque queue-assigned identifier
        body: Raw, undecoded message body
        routing_key: Classification attribute used for tenant routing
        receipt_handle: Queue-specific handle (not used by the pipeline)
        attributes: Raw attribute map as returned by the queue
    """
    message_id: str
    body: str
    routing_key: str = ""
    receipt_handle: Optional[str] = None
    attributes: dict = field(default_factory=dict)


# ============================================================================
# Ports
# ============================================================================

class MessageSourcePort(ABC):
    """Abstract contract for work queue adapters.

    Key Principles:
        - At most one message per call
        - Long-poll: waits up to the configured interval before returning empty
        - No acknowledgment: deleting or re-queueing messages is the source's own concern
    """

    @abstractmethod
    def receive_one(self) -> Optional[InboundMessage]:
        """Receive at most one message from the queue.

        Returns:
            Optional[InboundMessage]: The received message, or None if the queue
            stayed empty for the whole wait interval

        Raises:
            SourceUnavailableError: If the queue cannot be reached or the caller
                is not authorized to receive from it
        """
        pass

    def describe(self) -> str:
        """Human-readable identifier of the source, used in log lines."""
        return self.__class__.__name__


class TenantDatastoreHandle(ABC):
    """A live session bound to one tenant's logical database.

    Handles are acquired once per processing cycle and closed when the
    cycle ends. They are never shared between messages.
    """

    tenant: str

    @abstractmethod
    def insert_one(self, collection: str, document: dict) -> Any:
        """Insert a document into a collection of this tenant's database.

        Parameters:
            collection: Collection name (patients, practitioners, encounters)
            document: Document to insert

        Returns:
            The storage identifier assigned by the datastore

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the underlying connection."""
        pass

    def __enter__(self) -> 'TenantDatastoreHandle':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class DatastoreConnectorPort(ABC):
    """Abstract contract for acquiring tenant datastore handles."""

    @abstractmethod
    def connect(self, tenant: str) -> TenantDatastoreHandle:
        """Open a fresh handle bound to the tenant's database.

        Parameters:
            tenant: Tenant datastore identifier (as returned by TenantRouter)

        Returns:
            TenantDatastoreHandle: Live, verified handle

        Raises:
            ConnectError: If the datastore is unreachable or rejects the credentials
        """
        pass
