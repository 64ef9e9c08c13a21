"""Tests for the IngestionWorker control loop.

These tests drive the worker with a scripted source, an in-memory datastore
connector and a recording sleep function. No queue or database is needed.
"""

import logging
from unittest.mock import MagicMock

import pytest

from fhir_ingest.domain.ports import SourceUnavailableError
from fhir_ingest.pipeline import CycleOutcome, IngestionWorker, WorkerStatistics


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def build_worker(fake_connector, sleeps, scripted_source):
    """Factory building a worker over a scripted source."""

    def _build(script, connector=None):
        return IngestionWorker(
            source=scripted_source(script),
            connector=connector or fake_connector,
            idle_sleep=1.0,
            error_sleep=5.0,
            sleep=sleeps.append,
        )

    return _build


class TestEndToEnd:
    """Test the full path from queue message to tenant documents."""

    def test_sample_message_is_stored_in_tenant_a(self, build_worker, make_message, fake_connector):
        """Test one document per collection in fhir_hca, with the encounter linking the others."""
        worker = build_worker([make_message(routing_key="001")])

        outcome = worker.run_cycle()

        assert outcome == CycleOutcome.COMPLETED
        assert fake_connector.connect_calls == ["fhir_hca"]
        handle = fake_connector.handles[0]
        patients = handle.collections["patients"]
        practitioners = handle.collections["practitioners"]
        encounters = handle.collections["encounters"]
        assert len(patients) == len(practitioners) == len(encounters) == 1
        assert encounters[0]["fhirId"] == "123"
        assert practitioners[0]["fhirId"] == "dr-smith"
        assert patients[0]["fhirId"] == "patient-123"
        assert encounters[0]["patientId"] == patients[0]["_id"]
        assert encounters[0]["practitionerId"] == practitioners[0]["_id"]

    def test_routing_key_002_goes_to_tenant_b(self, build_worker, make_message, fake_connector):
        """Test the second hospital's messages land in fhir_hcb."""
        worker = build_worker([make_message(routing_key="002")])

        assert worker.run_cycle() == CycleOutcome.COMPLETED
        assert fake_connector.connect_calls == ["fhir_hcb"]

    def test_handle_is_closed_after_cycle(self, build_worker, make_message, fake_connector):
        """Test the tenant handle does not outlive its cycle."""
        worker = build_worker([make_message(), make_message("second")])

        worker.run_cycle()
        worker.run_cycle()

        assert len(fake_connector.handles) == 2
        assert all(handle.closed for handle in fake_connector.handles)
        assert fake_connector.handles[0] is not fake_connector.handles[1]


class TestCycleOutcomes:
    """Test each way a cycle can end."""

    def test_empty_queue_makes_no_connection(self, build_worker, fake_connector):
        """Test an empty poll never touches the datastore."""
        worker = build_worker([None])

        assert worker.run_cycle() == CycleOutcome.IDLE
        assert fake_connector.connect_calls == []

    def test_source_unavailable(self, build_worker, fake_connector):
        """Test a queue failure is reported as an outcome, not raised."""
        worker = build_worker([SourceUnavailableError("throttled", source="q")])

        assert worker.run_cycle() == CycleOutcome.SOURCE_UNAVAILABLE
        assert fake_connector.connect_calls == []

    @pytest.mark.parametrize("routing_key", ["999", ""])
    def test_unknown_tenant(self, build_worker, make_message, fake_connector, routing_key):
        """Test unknown routing keys are skipped before decoding or connecting."""
        worker = build_worker([make_message(routing_key=routing_key)])

        assert worker.run_cycle() == CycleOutcome.UNKNOWN_TENANT
        assert fake_connector.connect_calls == []

    def test_decode_failure_performs_no_writes(self, build_worker, make_message, fake_connector):
        """Test an undecodable body never opens a datastore handle."""
        worker = build_worker([make_message(body="invalid json")])

        assert worker.run_cycle() == CycleOutcome.DECODE_FAILED
        assert fake_connector.connect_calls == []
        assert fake_connector.handles == []

    def test_connect_failure(self, build_worker, make_message, connector_factory):
        """Test a datastore connection failure skips the message."""
        worker = build_worker([make_message()], connector=connector_factory(fail=True))

        assert worker.run_cycle() == CycleOutcome.CONNECT_FAILED

    def test_persist_failure_keeps_partial_writes(self, build_worker, make_message, connector_factory):
        """Test a failed encounter insert leaves patient and practitioner behind."""
        connector = connector_factory(fail_on={"encounters"})
        worker = build_worker([make_message()], connector=connector)

        assert worker.run_cycle() == CycleOutcome.PERSIST_FAILED
        handle = connector.handles[0]
        assert handle.insert_order == ["patients", "practitioners"]
        assert handle.closed


class TestRunForever:
    """Test pacing and failure isolation across cycles."""

    def test_pacing(self, build_worker, make_message, sleeps):
        """Test sleeps follow empty polls and queue failures only."""
        worker = build_worker([
            None,
            SourceUnavailableError("down"),
            make_message(routing_key="999"),
            make_message(body="invalid json"),
            make_message(),
        ])

        worker.run_forever(max_cycles=5)

        assert sleeps == [1.0, 5.0]

    def test_failures_do_not_block_later_messages(self, build_worker, make_message, fake_connector):
        """Test every failing stage is followed by a successful cycle."""
        worker = build_worker([
            make_message("bad-route", routing_key="777"),
            make_message("bad-body", body="{\"encounter\": []}"),
            SourceUnavailableError("down"),
            make_message("good"),
        ])

        stats = worker.run_forever(max_cycles=4)

        assert stats.outcomes["unknown_tenant"] == 1
        assert stats.outcomes["decode_failed"] == 1
        assert stats.outcomes["source_unavailable"] == 1
        assert stats.outcomes["completed"] == 1
        assert len(fake_connector.handles) == 1

    @pytest.mark.parametrize("connector_kwargs,failed_outcome", [
        ({"fail": True}, "connect_failed"),
        ({"fail_on": {"encounters"}}, "persist_failed"),
    ])
    def test_datastore_failure_returns_to_polling_without_pause(
        self, build_worker, make_message, connector_factory, sleeps, connector_kwargs, failed_outcome
    ):
        """Test connect and persist failures are not paced and do not block the next message."""
        connector = connector_factory(**connector_kwargs)
        worker = build_worker([make_message("failing"), make_message("next")], connector=connector)

        stats = worker.run_forever(max_cycles=1)
        # The next message reaches a healthy datastore
        connector.fail = False
        connector.fail_on = set()
        worker.run_forever(max_cycles=2)

        assert stats.outcomes[failed_outcome] == 1
        assert stats.outcomes["completed"] == 1
        assert sleeps == []
        assert worker.pause_for(CycleOutcome(failed_outcome)) == 0.0

    def test_unexpected_error_does_not_stop_loop(self, build_worker, make_message, sleeps):
        """Test a bug in one cycle is logged and followed by an error pause."""
        worker = build_worker([RuntimeError("boom"), make_message()])

        stats = worker.run_forever(max_cycles=2)

        assert stats.outcomes["unexpected_error"] == 1
        assert stats.outcomes["completed"] == 1
        assert sleeps == [5.0]

    def test_interrupt_propagates_and_logs_statistics(self, fake_connector):
        """Test KeyboardInterrupt ends the loop after logging statistics."""
        source = MagicMock()
        source.receive_one.side_effect = KeyboardInterrupt
        source.describe.return_value = "queue"
        logger = MagicMock(spec=logging.Logger)
        worker = IngestionWorker(source=source, connector=fake_connector, logger=logger, sleep=lambda s: None)

        with pytest.raises(KeyboardInterrupt):
            worker.run_forever()

        assert any("Worker stopped" in str(call.args[0]) for call in logger.info.call_args_list)

    def test_max_cycles_counts_idle_polls(self, build_worker):
        """Test idle polls count as cycles."""
        worker = build_worker([])

        stats = worker.run_forever(max_cycles=3)

        assert stats.cycles == 3
        assert stats.outcomes["idle"] == 3
        assert stats.messages_received == 0


class TestWorkerStatistics:
    """Test outcome counters."""

    def test_get_statistics(self):
        stats = WorkerStatistics()
        stats.record(CycleOutcome.COMPLETED)
        stats.record(CycleOutcome.IDLE)
        stats.record(CycleOutcome.DECODE_FAILED)

        summary = stats.get_statistics()

        assert summary["cycles"] == 3
        assert summary["messages_received"] == 2
        assert summary["completed"] == 1
        assert summary["persist_failed"] == 0
