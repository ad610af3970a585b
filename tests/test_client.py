import httpx
import pytest
from fhir_conformance.client import FHIRClient, Reply
from fhir_conformance.exceptions import ServerRequestError

BASE_URL = "https://fhir.example.org/api"


class TestReply:
    def test_from_json_response(self):
        request = httpx.Request("GET", f"{BASE_URL}/Patient/1")
        response = httpx.Response(200, json={"resourceType": "Patient", "id": "1"}, request=request)

        reply = Reply.from_response(response)

        assert reply.status_code == 200
        assert reply.resource == {"resourceType": "Patient", "id": "1"}
        assert reply.url.endswith("/Patient/1")

    def test_non_json_body_has_no_resource(self):
        request = httpx.Request("GET", f"{BASE_URL}/Patient/1")
        response = httpx.Response(502, text="<html>Bad gateway</html>", request=request)

        reply = Reply.from_response(response)

        assert reply.resource is None
        assert "Bad gateway" in reply.body


class TestInteractions:
    def test_read(self, client, fake_server):
        reply = client.read("Patient", "123")

        assert reply.status_code == 200
        assert reply.resource["id"] == "123"
        request = fake_server.requests[-1]
        assert request.url.path == "/api/Patient/123"
        assert request.headers["Authorization"] == "Bearer secret-token"
        assert request.headers["Accept"] == "application/json+fhir"

    def test_search_params(self, client, fake_server):
        reply = client.search("Patient", {"family": "Shaw", "gender": "female"})

        assert reply.status_code == 200
        assert reply.resource["resourceType"] == "Bundle"
        params = fake_server.requests[-1].url.params
        assert params["family"] == "Shaw"
        assert params["gender"] == "female"

    def test_history_and_vread_paths(self, client, fake_server):
        client.history("Patient", "123")
        assert fake_server.requests[-1].url.path == "/api/Patient/123/_history"

        reply = client.vread("Patient", "123", "1")
        assert fake_server.requests[-1].url.path == "/api/Patient/123/_history/1"
        assert reply.status_code == 200

    def test_conformance_path(self, client, fake_server):
        client.conformance()

        assert fake_server.requests[-1].url.path == "/api/metadata"

    def test_transport_error_raises(self):
        def broken(request):
            raise httpx.ConnectError("connection refused", request=request)

        with FHIRClient(BASE_URL, token="t", transport=httpx.MockTransport(broken)) as client:
            with pytest.raises(ServerRequestError, match="connection refused"):
                client.read("Patient", "1")


class TestCredentialMode:
    def test_use_no_credential_sends_no_header(self, client, fake_server):
        client.use_no_credential()
        reply = client.read("Patient", "123")

        assert reply.status_code == 401
        assert "Authorization" not in fake_server.requests[-1].headers
        assert not client.has_credential

    def test_use_credential(self, client):
        client.use_no_credential()
        client.use_credential("secret-token")

        assert client.has_credential
        assert client.read("Patient", "123").status_code == 200

    def test_without_credentials_restores_token(self, client):
        with client.without_credentials():
            assert client.read("Patient", "123").status_code == 401
            assert client.token is None

        assert client.token == "secret-token"

    def test_without_credentials_restores_on_exception(self, client):
        with pytest.raises(RuntimeError):
            with client.without_credentials():
                raise RuntimeError("assertion while unauthenticated")

        assert client.token == "secret-token"

    def test_preserve_credentials_undoes_changes(self, client):
        with client.preserve_credentials():
            client.use_credential("other-token")

        assert client.token == "secret-token"

    def test_preserve_credentials_keeps_unauthenticated_mode(self, client):
        client.use_no_credential()
        with client.preserve_credentials():
            client.use_credential("secret-token")

        assert client.token is None
