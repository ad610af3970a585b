"""Assertion and skip helpers used inside test case bodies.

Every helper either returns normally or raises :class:`ExpectationFailed` /
:class:`SkipRequested`, which the runner classifies as ``fail`` / ``skip``.
"""

from typing import Any, Iterable, Mapping

from fhir_conformance.config import UNAUTHORIZED_STATUS_CODES
from fhir_conformance.context import ABSENT
from fhir_conformance.resources import bundle_resources, get_path, resource_ids
from fhir_conformance.sequences.base import ExpectationFailed, SkipRequested

RESOURCE_REFERENCES_KEY = "resource_references"


def assert_that(condition: Any, message: str) -> None:
    if not condition:
        raise ExpectationFailed(message)


def require(value: Any, message: str) -> Any:
    """Return ``value`` unless it is ABSENT/None, otherwise fail with ``message``."""
    if value is ABSENT or value is None:
        raise ExpectationFailed(message)
    return value


def require_path(resource: Any, path: str, message: str) -> Any:
    return require(get_path(resource, path), message)


def skip(message: str) -> None:
    raise SkipRequested(message)


def skip_if_not_supported(capabilities, resource_kind: str, interactions: Iterable[str]) -> None:
    interactions = list(interactions)
    if not capabilities.supports(resource_kind, interactions):
        raise SkipRequested(
            f"This server does not support {resource_kind} {','.join(interactions)} "
            "operation(s) according to conformance statement."
        )


def assert_response_ok(reply) -> None:
    assert_that(
        reply.status_code == 200,
        f"Bad response code: expected 200, but found {reply.status_code}",
    )


def assert_response_unauthorized(reply) -> None:
    expected = " or ".join(str(c) for c in UNAUTHORIZED_STATUS_CODES)
    assert_that(
        reply.status_code in UNAUTHORIZED_STATUS_CODES,
        f"Bad response code: expected {expected}, but found {reply.status_code}",
    )


def assert_resource_type(resource: Any, kind: str) -> None:
    found = get_path(resource, "resourceType")
    assert_that(
        found == kind,
        f"Expected resource to be valid DSTU2 {kind}, but found {found!r}",
    )


def assert_bundle(reply, bundle_type: str = None) -> dict:
    bundle = reply.resource
    assert_resource_type(bundle, "Bundle")
    if bundle_type is not None:
        found = get_path(bundle, "type")
        assert_that(
            found == bundle_type,
            f"Expected Bundle of type '{bundle_type}', but found {found!r}",
        )
    return bundle


def validate_search_reply(reply, kind: str) -> None:
    assert_response_ok(reply)
    bundle = assert_bundle(reply)
    entries = bundle_resources(bundle, kind)
    assert_that(entries, f"No {kind} resources were returned from the search")


def validate_read_reply(client, resource: Any, kind: str) -> None:
    require(resource, f"No {kind} resources available from search")
    resource_id = require_path(resource, "id", f"{kind} id not returned")
    reply = client.read(kind, resource_id)
    assert_response_ok(reply)
    assert_resource_type(reply.resource, kind)


def validate_history_reply(client, resource: Any, kind: str) -> None:
    require(resource, f"No {kind} resources available from search")
    resource_id = require_path(resource, "id", f"{kind} id not returned")
    reply = client.history(kind, resource_id)
    assert_response_ok(reply)
    bundle = assert_bundle(reply, bundle_type="history")
    assert_that(
        bundle_resources(bundle, kind),
        f"No {kind} versions returned in history",
    )


def validate_vread_reply(client, resource: Any, kind: str) -> None:
    require(resource, f"No {kind} resources available from search")
    resource_id = require_path(resource, "id", f"{kind} id not returned")
    version_id = require_path(resource, "meta.versionId", f"{kind} meta.versionId not returned")
    reply = client.vread(kind, resource_id, version_id)
    assert_response_ok(reply)
    assert_resource_type(reply.resource, kind)


def save_resource_ids_in_bundle(context, kind: str, reply) -> None:
    """Record ``(kind, id)`` for every resource of ``kind`` in the reply bundle."""
    references = list(context.get(RESOURCE_REFERENCES_KEY, []))
    for rid in resource_ids(bundle_resources(reply.resource, kind)):
        ref = (kind, rid)
        if ref not in references:
            references.append(ref)
    context.set(RESOURCE_REFERENCES_KEY, references)


def search_params(patient_id: str, extra: Mapping[str, Any] = None) -> dict:
    params = {"patient": patient_id}
    params.update(extra or {})
    return params
