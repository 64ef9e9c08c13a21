"""Shared fixtures: the sample queue message and in-memory pipeline collaborators."""

import json
from collections import defaultdict, deque
from typing import Any, Optional

import pytest
from bson import ObjectId

from fhir_ingest.domain.ports import (
    ConnectError,
    DatastoreConnectorPort,
    InboundMessage,
    MessageSourcePort,
    StorageError,
    TenantDatastoreHandle,
)


SAMPLE_BUNDLE = {
    "encounter": {
        "fhirId": "123",
        "fullUrl": "urn:uuid:123",
        "status": "finished",
        "class": "outpatient",
        "period": {
            "start": "2023-01-01T10:00:00Z",
            "end": "2023-01-01T11:00:00Z",
        },
        "practitionerId": "dr-smith",
        "patientId": "patient-123",
    },
    "practitioner": {
        "fhirId": "dr-smith",
        "givenName": "John",
        "familyName": "Smith",
    },
    "patient": {
        "fhirId": "patient-123",
        "givenName": "Maria",
        "familyName": "Silva",
        "birthDate": "1990-01-01",
        "gender": "female",
    },
}


class InMemoryTenantHandle(TenantDatastoreHandle):
    """Tenant handle storing documents in dictionaries.

    Collections listed in ``fail_on`` raise StorageError on insert.
    """

    def __init__(self, tenant: str, fail_on: Optional[set] = None):
        self.tenant = tenant
        self.fail_on = fail_on or set()
        self.collections: dict[str, list[dict]] = defaultdict(list)
        self.insert_order: list[str] = []
        self.closed = False

    def insert_one(self, collection: str, document: dict) -> Any:
        if collection in self.fail_on:
            raise StorageError(f"write to {collection} rejected", operation="insert_one")
        inserted_id = ObjectId()
        self.collections[collection].append({"_id": inserted_id, **document})
        self.insert_order.append(collection)
        return inserted_id

    def close(self) -> None:
        self.closed = True


class FakeConnector(DatastoreConnectorPort):
    """Connector handing out InMemoryTenantHandle objects."""

    def __init__(self, fail: bool = False, fail_on: Optional[set] = None):
        self.fail = fail
        self.fail_on = fail_on or set()
        self.handles: list[InMemoryTenantHandle] = []
        self.connect_calls: list[str] = []

    def connect(self, tenant: str) -> InMemoryTenantHandle:
        self.connect_calls.append(tenant)
        if self.fail:
            raise ConnectError("database unreachable", tenant=tenant)
        handle = InMemoryTenantHandle(tenant, fail_on=self.fail_on)
        self.handles.append(handle)
        return handle


class ScriptedSource(MessageSourcePort):
    """Source replaying a script of messages, None (empty poll) or exceptions."""

    def __init__(self, script: list):
        self.script = deque(script)
        self.receive_calls = 0

    def receive_one(self) -> Optional[InboundMessage]:
        self.receive_calls += 1
        if not self.script:
            return None
        item = self.script.popleft()
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def sample_payload() -> dict:
    return json.loads(json.dumps(SAMPLE_BUNDLE))


@pytest.fixture
def sample_body(sample_payload) -> str:
    return json.dumps(sample_payload)


@pytest.fixture
def make_message(sample_body):
    """Factory for InboundMessage objects, defaulting to the sample bundle routed to "001"."""

    def _make(message_id: str = "test-message", body: Optional[str] = None, routing_key: str = "001"):
        return InboundMessage(
            message_id=message_id,
            body=sample_body if body is None else body,
            routing_key=routing_key,
        )

    return _make


@pytest.fixture
def fake_connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def memory_handle() -> InMemoryTenantHandle:
    return InMemoryTenantHandle("fhir_hca")


@pytest.fixture
def scripted_source():
    return ScriptedSource


@pytest.fixture
def connector_factory():
    return FakeConnector
