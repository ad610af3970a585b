import pytest
from fhir_conformance.capability import CapabilityStatement
from fhir_conformance.client import Reply
from fhir_conformance.context import ABSENT, ExecutionContext
from fhir_conformance.sequences.assertions import (
    RESOURCE_REFERENCES_KEY,
    assert_response_ok,
    assert_response_unauthorized,
    assert_that,
    require,
    require_path,
    save_resource_ids_in_bundle,
    search_params,
    skip_if_not_supported,
    validate_history_reply,
    validate_read_reply,
    validate_search_reply,
    validate_vread_reply,
)
from fhir_conformance.sequences.base import ExpectationFailed, SkipRequested


def _bundle(*resources, bundle_type="searchset"):
    return {
        "resourceType": "Bundle",
        "type": bundle_type,
        "entry": [{"resource": r} for r in resources],
    }


class TestBasicAssertions:
    def test_assert_that(self):
        assert_that(True, "never raised")

        with pytest.raises(ExpectationFailed, match="Patient identifier not returned"):
            assert_that(False, "Patient identifier not returned")

    def test_require_returns_value(self):
        assert require("MRN-42", "missing") == "MRN-42"
        assert require(0, "missing") == 0

    @pytest.mark.parametrize("value", [ABSENT, None])
    def test_require_absent(self, value):
        with pytest.raises(ExpectationFailed, match="Patient gender not returned"):
            require(value, "Patient gender not returned")

    def test_require_path(self, sample_patient):
        assert require_path(sample_patient, "gender", "missing") == "female"

        with pytest.raises(ExpectationFailed, match="no telecom"):
            require_path(sample_patient, "telecom.0.value", "no telecom")


class TestResponseCodes:
    def test_ok(self):
        assert_response_ok(Reply(status_code=200))

        with pytest.raises(ExpectationFailed, match="expected 200, but found 404"):
            assert_response_ok(Reply(status_code=404))

    @pytest.mark.parametrize("status", [401, 406])
    def test_unauthorized_accepted(self, status):
        assert_response_unauthorized(Reply(status_code=status))

    def test_unauthorized_rejects_success(self):
        with pytest.raises(ExpectationFailed, match="expected 401 or 406, but found 200"):
            assert_response_unauthorized(Reply(status_code=200))


class TestSkipIfNotSupported:
    def test_supported_does_nothing(self):
        capabilities = CapabilityStatement({"Device": ["search-type", "read"]})

        skip_if_not_supported(capabilities, "Device", ["search", "read"])

    def test_unsupported_requests_skip(self):
        capabilities = CapabilityStatement({"Device": ["read"]})

        with pytest.raises(SkipRequested) as excinfo:
            skip_if_not_supported(capabilities, "Device", ["search", "read"])

        assert excinfo.value.message == (
            "This server does not support Device search,read operation(s) "
            "according to conformance statement."
        )


class TestValidateSearchReply:
    def test_valid_searchset(self):
        reply = Reply(status_code=200, resource=_bundle({"resourceType": "Condition", "id": "c1"}))

        validate_search_reply(reply, "Condition")

    def test_empty_bundle_fails(self):
        reply = Reply(status_code=200, resource=_bundle())

        with pytest.raises(ExpectationFailed, match="No Condition resources were returned"):
            validate_search_reply(reply, "Condition")

    def test_wrong_kind_fails(self):
        reply = Reply(status_code=200, resource=_bundle({"resourceType": "Goal", "id": "g1"}))

        with pytest.raises(ExpectationFailed):
            validate_search_reply(reply, "Condition")

    def test_not_a_bundle_fails(self):
        reply = Reply(status_code=200, resource={"resourceType": "Condition", "id": "c1"})

        with pytest.raises(ExpectationFailed, match="valid DSTU2 Bundle"):
            validate_search_reply(reply, "Condition")

    def test_unparseable_body_fails(self):
        reply = Reply(status_code=200, body="<html/>", resource=None)

        with pytest.raises(ExpectationFailed):
            validate_search_reply(reply, "Condition")


class TestInstanceInteractions:
    def test_read(self, client, sample_patient):
        validate_read_reply(client, sample_patient, "Patient")

    def test_read_without_resource_fails(self, client):
        with pytest.raises(ExpectationFailed, match="No Patient resources available from search"):
            validate_read_reply(client, ABSENT, "Patient")

    def test_read_not_found_fails(self, client):
        with pytest.raises(ExpectationFailed, match="found 404"):
            validate_read_reply(client, {"resourceType": "Patient", "id": "999"}, "Patient")

    def test_history(self, client, sample_patient):
        validate_history_reply(client, sample_patient, "Patient")

    def test_vread(self, client, sample_patient):
        validate_vread_reply(client, sample_patient, "Patient")

    def test_vread_needs_version(self, client):
        resource = {"resourceType": "Patient", "id": "123"}

        with pytest.raises(ExpectationFailed, match="meta.versionId not returned"):
            validate_vread_reply(client, resource, "Patient")


class TestSaveResourceIds:
    def test_records_ids_without_duplicates(self):
        context = ExecutionContext()
        reply = Reply(
            status_code=200,
            resource=_bundle(
                {"resourceType": "Condition", "id": "c1"},
                {"resourceType": "Condition", "id": "c2"},
            ),
        )

        save_resource_ids_in_bundle(context, "Condition", reply)
        save_resource_ids_in_bundle(context, "Condition", reply)

        assert context.get(RESOURCE_REFERENCES_KEY) == [("Condition", "c1"), ("Condition", "c2")]

    def test_accumulates_across_kinds(self):
        context = ExecutionContext()
        save_resource_ids_in_bundle(
            context, "Goal", Reply(status_code=200, resource=_bundle({"resourceType": "Goal", "id": "g1"}))
        )
        save_resource_ids_in_bundle(
            context, "Device", Reply(status_code=200, resource=_bundle({"resourceType": "Device", "id": "d1"}))
        )

        assert context.get(RESOURCE_REFERENCES_KEY) == [("Goal", "g1"), ("Device", "d1")]


def test_search_params():
    assert search_params("123", {"category": "LAB"}) == {"patient": "123", "category": "LAB"}
    assert search_params("123") == {"patient": "123"}
