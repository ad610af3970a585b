#!/usr/bin/env python3
"""Example of defining a custom sequence.

A sequence is a named, ordered list of test cases plus preconditions.
Bodies receive the shared execution context, the client and the server's
capability statement, and signal their outcome through the assertion
helpers.
"""

from fhir_conformance import Sequence
from fhir_conformance.sequences.assertions import (
    assert_response_ok,
    require,
    require_path,
    skip_if_not_supported,
    validate_search_reply,
)
from fhir_conformance.sequences.registry import register_sequence

PRACTITIONER_LOOKUP = Sequence(
    name="practitioner_lookup",
    title="Practitioner Lookup",
    description="Read the configured practitioner and search by name.",
)
test = PRACTITIONER_LOOKUP.registry.test


@PRACTITIONER_LOOKUP.precondition("Practitioner id configured")
def _has_practitioner(client, context):
    return context.has("practitioner_id")


@test("practitioner_read", "Server returns the configured Practitioner")
def practitioner_read(context, client, capabilities):
    skip_if_not_supported(capabilities, "Practitioner", ["read"])
    reply = client.read("Practitioner", require(context.get("practitioner_id"), "No practitioner id"))
    assert_response_ok(reply)
    context.set("practitioner", reply.resource)


@test("practitioner_search_name", "Server finds the Practitioner by family name", optional=True)
def practitioner_search_name(context, client, capabilities):
    skip_if_not_supported(capabilities, "Practitioner", ["search"])
    practitioner = require(context.get("practitioner"), "Practitioner not present")
    family = require_path(practitioner, "name.family.0", "Practitioner family name not returned")
    validate_search_reply(client.search("Practitioner", {"family": family}), "Practitioner")


register_sequence(PRACTITIONER_LOOKUP)


if __name__ == "__main__":
    for entry in PRACTITIONER_LOOKUP.registry.list_registered():
        print(f"{entry['ordinal']}. {entry['key']}: {entry['title']}")
