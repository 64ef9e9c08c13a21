"""Pipeline Driver - the queue-to-datastore control loop.

Each cycle moves one message through Polling, Routing, Decoding, Connecting
and Persisting. Any failure ends the cycle for that message only: it is
logged and the loop goes back to polling.

Security Impact:
    - Log lines carry message ids, tenants and storage ids, never payload fields
    - Raw bodies of undecodable messages are logged at DEBUG level only

Architecture:
    - Single-threaded, at most one message in flight
    - Depends only on domain ports; adapters are injected
    - Pacing: sleeps after an empty poll and after a queue failure, nowhere else
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from fhir_ingest.domain.decoder import PayloadDecoder
from fhir_ingest.domain.persistence import PersistenceGateway
from fhir_ingest.domain.ports import (
    ConnectError,
    DatastoreConnectorPort,
    InboundMessage,
    MessageSourcePort,
    SourceUnavailableError,
)
from fhir_ingest.domain.routing import TenantRouter
from fhir_ingest.domain.utils import format_body_for_log
from fhir_ingest.infrastructure.settings import DEFAULT_ERROR_SLEEP, DEFAULT_IDLE_SLEEP


class PipelineStage(str, Enum):
    """Stages a message passes through within one cycle."""
    POLLING = "polling"
    ROUTING = "routing"
    DECODING = "decoding"
    CONNECTING = "connecting"
    PERSISTING = "persisting"


class CycleOutcome(str, Enum):
    """How a single processing cycle ended."""
    IDLE = "idle"
    SOURCE_UNAVAILABLE = "source_unavailable"
    UNKNOWN_TENANT = "unknown_tenant"
    DECODE_FAILED = "decode_failed"
    CONNECT_FAILED = "connect_failed"
    PERSIST_FAILED = "persist_failed"
    UNEXPECTED_ERROR = "unexpected_error"
    COMPLETED = "completed"


@dataclass
class WorkerStatistics:
    """Per-outcome cycle counters.

    Attributes:
        cycles: Total number of cycles run
        outcomes: Number of cycles per CycleOutcome value
    """
    cycles: int = 0
    outcomes: dict = field(default_factory=lambda: {outcome.value: 0 for outcome in CycleOutcome})

    def record(self, outcome: CycleOutcome) -> None:
        self.cycles += 1
        self.outcomes[outcome.value] += 1

    @property
    def messages_received(self) -> int:
        """Cycles that got a message from the queue."""
        return self.cycles - self.outcomes[CycleOutcome.IDLE.value] - self.outcomes[CycleOutcome.SOURCE_UNAVAILABLE.value]

    def get_statistics(self) -> dict:
        return {
            "cycles": self.cycles,
            "messages_received": self.messages_received,
            **self.outcomes,
        }


class IngestionWorker:
    """Poll the queue and persist each message into its tenant datastore.

    Parameters:
        source: Work queue to poll
        connector: Opens a fresh tenant datastore handle per message
        router: Routing key to tenant mapping (default: TenantRouter())
        decoder: Message body decoder (default: PayloadDecoder())
        gateway: Sub-record writer (default: PersistenceGateway(logger))
        logger: Worker logger, as returned by setup_logging
        idle_sleep: Seconds to wait after an empty poll
        error_sleep: Seconds to wait after a queue failure or unexpected error
        sleep: Sleep function (injectable for tests)

    Example Usage:
        ```python
        worker = IngestionWorker(
            source=SQSMessageSource.from_config(queue_config),
            connector=MongoDatastoreConnector(db_config),
            logger=setup_logging(settings),
        )
        worker.run_forever()
        ```
    """

    def __init__(
        self,
        source: MessageSourcePort,
        connector: DatastoreConnectorPort,
        router: Optional[TenantRouter] = None,
        decoder: Optional[PayloadDecoder] = None,
        gateway: Optional[PersistenceGateway] = None,
        logger: Optional[logging.Logger] = None,
        idle_sleep: float = DEFAULT_IDLE_SLEEP,
        error_sleep: float = DEFAULT_ERROR_SLEEP,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source = source
        self.connector = connector
        self.logger = logger or logging.getLogger(__name__)
        self.router = router or TenantRouter()
        self.decoder = decoder or PayloadDecoder()
        self.gateway = gateway or PersistenceGateway(logger=self.logger)
        self.idle_sleep = idle_sleep
        self.error_sleep = error_sleep
        self._sleep = sleep
        self.statistics = WorkerStatistics()

    def pause_for(self, outcome: CycleOutcome) -> float:
        """Seconds to wait before the next poll after a cycle ended with ``outcome``."""
        if outcome == CycleOutcome.IDLE:
            return self.idle_sleep
        if outcome in (CycleOutcome.SOURCE_UNAVAILABLE, CycleOutcome.UNEXPECTED_ERROR):
            return self.error_sleep
        return 0.0

    def run_forever(self, max_cycles: Optional[int] = None) -> WorkerStatistics:
        """Run cycles until interrupted, or until ``max_cycles`` cycles have run.

        Returns:
            WorkerStatistics: Counters of the cycles run
        """
        self.logger.info(f"Worker started, polling {self.source.describe()}")
        try:
            while max_cycles is None or self.statistics.cycles < max_cycles:
                try:
                    outcome = self.run_cycle()
                except Exception as e:
                    self.logger.error(f"Unexpected error in processing cycle: {e}", exc_info=True)
                    outcome = CycleOutcome.UNEXPECTED_ERROR

                self.statistics.record(outcome)
                pause = self.pause_for(outcome)
                if pause > 0:
                    self._sleep(pause)
        finally:
            self.logger.info(f"Worker stopped: {self.statistics.get_statistics()}")
        return self.statistics

    def run_cycle(self) -> CycleOutcome:
        """Receive and process at most one message.

        Returns:
            CycleOutcome: How the cycle ended
        """
        self.logger.debug(f"Stage {PipelineStage.POLLING.value}: consuming message")
        try:
            message = self.source.receive_one()
        except SourceUnavailableError as e:
            self.logger.error(f"Error consuming message: {e}", extra={"stage": PipelineStage.POLLING.value})
            return CycleOutcome.SOURCE_UNAVAILABLE

        if message is None:
            return CycleOutcome.IDLE

        return self.process_message(message)

    def process_message(self, message: InboundMessage) -> CycleOutcome:
        """Route, decode and persist one received message."""
        message_id = message.message_id
        self.logger.info(f"Processing message {message_id} (group {message.routing_key!r})")
        self.logger.debug(f"Message {message_id} body:\n{format_body_for_log(message.body)}")

        tenant = self.router.route(message.routing_key)
        if tenant is None:
            self.logger.warning(
                f"Message {message_id} has unknown routing key {message.routing_key!r}, skipping",
                extra=self._context(message_id, PipelineStage.ROUTING),
            )
            return CycleOutcome.UNKNOWN_TENANT

        decoded = self.decoder.decode(message.body, message_id)
        if decoded.is_failure():
            self.logger.error(
                f"Failed to decode message {message_id}: {decoded.error}",
                extra=self._context(message_id, PipelineStage.DECODING),
            )
            self.logger.debug(f"Undecodable body of message {message_id}: {decoded.error_details.get('raw_body')!r}")
            return CycleOutcome.DECODE_FAILED

        self.logger.debug(f"Stage {PipelineStage.CONNECTING.value}: tenant {tenant}")
        try:
            handle = self.connector.connect(tenant)
        except ConnectError as e:
            self.logger.error(
                f"Error connecting to database for message {message_id}: {e}",
                extra=self._context(message_id, PipelineStage.CONNECTING, tenant),
            )
            return CycleOutcome.CONNECT_FAILED

        with handle:
            persisted = self.gateway.persist(handle, decoded.value)

        if persisted.is_failure():
            self.logger.error(
                f"Error persisting message {message_id} into {tenant}: {persisted.error} "
                f"(already written: {persisted.error_details.get('inserted_ids')})",
                extra=self._context(message_id, PipelineStage.PERSISTING, tenant),
            )
            return CycleOutcome.PERSIST_FAILED

        self.logger.info(
            f"Message {message_id} stored in {tenant}: encounter {persisted.value.encounter_id}"
        )
        return CycleOutcome.COMPLETED

    @staticmethod
    def _context(message_id: str, stage: PipelineStage, tenant: Optional[str] = None) -> dict:
        context = {"message_id": message_id, "stage": stage.value}
        if tenant is not None:
            context["tenant"] = tenant
        return context
