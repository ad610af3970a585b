import json

import httpx
import pytest
from unittest.mock import MagicMock

from fhir_conformance.capability import CapabilityStatement
from fhir_conformance.client import FHIRClient
from fhir_conformance.context import ExecutionContext

BASE_URL = "https://fhir.example.org/api"
TOKEN = "secret-token"
PATIENT_ID = "123"


class FakeFHIRServer:
    """In-memory FHIR server behind httpx.MockTransport.

    Requests without the expected bearer token get 401. Searches return
    every stored resource of the requested type.
    """

    def __init__(self, token=TOKEN, conformance=None):
        self.token = token
        self.resources = {}
        self.conformance = conformance or {"resourceType": "Conformance", "rest": []}
        self.requests = []

    def add(self, resource):
        self.resources[(resource["resourceType"], resource["id"])] = resource
        return resource

    def transport(self):
        return httpx.MockTransport(self.handle)

    def handle(self, request):
        self.requests.append(request)
        parts = [p for p in request.url.path.split("/") if p][1:]  # drop "api"
        if parts == ["metadata"]:
            return self._json(200, self.conformance)
        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return self._json(401, {"resourceType": "OperationOutcome"})
        kind = parts[0]
        if len(parts) == 1:
            return self._json(200, self._bundle("searchset", self._of_kind(kind)))
        resource = self.resources.get((kind, parts[1]))
        if resource is None:
            return self._json(404, {"resourceType": "OperationOutcome"})
        if len(parts) == 2:
            return self._json(200, resource)
        if len(parts) == 3 and parts[2] == "_history":
            return self._json(200, self._bundle("history", [resource]))
        if len(parts) == 4 and parts[3] == resource.get("meta", {}).get("versionId"):
            return self._json(200, resource)
        return self._json(404, {"resourceType": "OperationOutcome"})

    def _of_kind(self, kind):
        return [r for (k, _), r in self.resources.items() if k == kind]

    @staticmethod
    def _bundle(bundle_type, resources):
        return {
            "resourceType": "Bundle",
            "type": bundle_type,
            "entry": [{"resource": r} for r in resources],
        }

    @staticmethod
    def _json(status, body):
        return httpx.Response(
            status,
            content=json.dumps(body).encode("utf-8"),
            headers={"Content-Type": "application/json+fhir"},
        )


def conformance_doc(interactions):
    """Build a DSTU2 Conformance resource from {kind: [codes]}."""
    return {
        "resourceType": "Conformance",
        "rest": [
            {
                "mode": "server",
                "resource": [
                    {"type": kind, "interaction": [{"code": c} for c in codes]}
                    for kind, codes in interactions.items()
                ],
            }
        ],
    }


@pytest.fixture
def sample_patient():
    return {
        "resourceType": "Patient",
        "id": PATIENT_ID,
        "meta": {"versionId": "1"},
        "identifier": [{"system": "urn:mrn", "value": "MRN-42"}],
        "name": [{"family": ["Shaw"], "given": ["Amy"]}],
        "gender": "female",
        "birthDate": "1987-02-20",
    }


@pytest.fixture
def fake_server(sample_patient):
    server = FakeFHIRServer()
    server.add(sample_patient)
    return server


@pytest.fixture
def client(fake_server):
    fhir_client = FHIRClient(BASE_URL, token=TOKEN, transport=fake_server.transport())
    yield fhir_client
    fhir_client.close()


@pytest.fixture
def patient_capabilities():
    return CapabilityStatement({"Patient": ["read", "search-type", "history-instance", "vread"]})


@pytest.fixture
def context():
    return ExecutionContext({"patient_id": PATIENT_ID})


@pytest.fixture
def mock_client():
    """Mock FHIR client for tests that never touch HTTP."""
    fhir_client = MagicMock(spec=FHIRClient)
    fhir_client.has_credential = True
    return fhir_client


@pytest.fixture
def build_conformance():
    return conformance_doc


@pytest.fixture
def make_client():
    """Factory for clients bound to a FakeFHIRServer; closed after the test."""
    clients = []

    def _make(server, token=TOKEN):
        fhir_client = FHIRClient(BASE_URL, token=token, transport=server.transport())
        clients.append(fhir_client)
        return fhir_client

    yield _make
    for fhir_client in clients:
        fhir_client.close()


@pytest.fixture
def server_factory():
    return FakeFHIRServer
