"""Patient read, search, history and vread test cases."""

from fhir_conformance.config import ARGONAUT_GUIDE_URL
from fhir_conformance.resources import get_path
from fhir_conformance.sequences.argonaut.sequence import ARGONAUT_DATA_QUERY, PATIENT_ID_KEY
from fhir_conformance.sequences.assertions import (
    assert_resource_type,
    assert_response_ok,
    assert_response_unauthorized,
    require,
    skip_if_not_supported,
    validate_history_reply,
    validate_search_reply,
    validate_vread_reply,
)

PATIENT = "Patient"
PATIENT_KEY = "patient"

_SEARCH_DESCRIPTION = (
    "A server has exposed a FHIR Patient search endpoint supporting at a minimum "
    "the following search parameters when at least 2 (example name and gender) "
    "are present: name, gender, birthdate."
)
_HISTORY_DESCRIPTION = (
    "All servers SHOULD make available the vread and history-instance interactions "
    "for the Argonaut Profiles the server chooses to support."
)

test = ARGONAUT_DATA_QUERY.registry.test


def _patient_id(context):
    return require(context.get(PATIENT_ID_KEY), "Patient id not configured for this run")


def _stored_patient(context):
    return require(
        context.get(PATIENT_KEY), "Expected valid DSTU2 Patient resource to be present"
    )


def _field(patient, path, label):
    return require(get_path(patient, path), f"Patient {label} not returned")


@test(
    "patient_read_unauthorized",
    "Server rejects patient read without proper authorization",
    link=ARGONAUT_GUIDE_URL,
    description="A patient read does not work without authorization.",
)
def patient_read_unauthorized(context, client, capabilities):
    patient_id = _patient_id(context)
    with client.without_credentials():
        reply = client.read(PATIENT, patient_id)
    assert_response_unauthorized(reply)


@test(
    "patient_read",
    "Server returns expected results from Patient read resource",
    link=ARGONAUT_GUIDE_URL,
    description=(
        "All servers SHALL make available the read interactions for the "
        "Argonaut Profiles the server chooses to support."
    ),
)
def patient_read(context, client, capabilities):
    reply = client.read(PATIENT, _patient_id(context))
    assert_response_ok(reply)
    patient = require(reply.resource, "Expected valid DSTU2 Patient resource to be present")
    assert_resource_type(patient, PATIENT)
    context.set(PATIENT_KEY, patient)


@test(
    "patient_search_unauthorized",
    "Server rejects Patient search without proper authorization",
    link=ARGONAUT_GUIDE_URL,
    description="A Patient search does not work without proper authorization.",
)
def patient_search_unauthorized(context, client, capabilities):
    identifier = _field(_stored_patient(context), "identifier.0.value", "identifier")
    with client.without_credentials():
        reply = client.search(PATIENT, {"identifier": identifier})
    assert_response_unauthorized(reply)


@test(
    "patient_search_identifier",
    "Server returns expected results from Patient search by identifier",
    link=ARGONAUT_GUIDE_URL,
    description=(
        "A server has exposed a FHIR Patient search endpoint supporting at a "
        "minimum the following search parameters: identifier."
    ),
)
def patient_search_identifier(context, client, capabilities):
    identifier = _field(_stored_patient(context), "identifier.0.value", "identifier")
    reply = client.search(PATIENT, {"identifier": identifier})
    validate_search_reply(reply, PATIENT)


@test(
    "patient_search_name_gender",
    "Server returns expected results from Patient search by name + gender",
    link=ARGONAUT_GUIDE_URL,
    description=_SEARCH_DESCRIPTION,
)
def patient_search_name_gender(context, client, capabilities):
    patient = _stored_patient(context)
    family = _field(patient, "name.0.family.0", "family name")
    given = _field(patient, "name.0.given.0", "given name")
    gender = _field(patient, "gender", "gender")
    reply = client.search(PATIENT, {"family": family, "given": given, "gender": gender})
    validate_search_reply(reply, PATIENT)


@test(
    "patient_search_name_birthdate",
    "Server returns expected results from Patient search by name + birthdate",
    link=ARGONAUT_GUIDE_URL,
    description=_SEARCH_DESCRIPTION,
)
def patient_search_name_birthdate(context, client, capabilities):
    patient = _stored_patient(context)
    family = _field(patient, "name.0.family.0", "family name")
    given = _field(patient, "name.0.given.0", "given name")
    birthdate = _field(patient, "birthDate", "birthDate")
    reply = client.search(
        PATIENT, {"family": family, "given": given, "birthdate": birthdate}
    )
    validate_search_reply(reply, PATIENT)


@test(
    "patient_search_gender_birthdate",
    "Server returns expected results from Patient search by gender + birthdate",
    link=ARGONAUT_GUIDE_URL,
    description=_SEARCH_DESCRIPTION,
)
def patient_search_gender_birthdate(context, client, capabilities):
    patient = _stored_patient(context)
    gender = _field(patient, "gender", "gender")
    birthdate = _field(patient, "birthDate", "birthDate")
    reply = client.search(PATIENT, {"gender": gender, "birthdate": birthdate})
    validate_search_reply(reply, PATIENT)


@test(
    "patient_history",
    "Server returns expected results from Patient history resource",
    link=ARGONAUT_GUIDE_URL,
    description=_HISTORY_DESCRIPTION,
    optional=True,
)
def patient_history(context, client, capabilities):
    skip_if_not_supported(capabilities, PATIENT, ["history"])
    validate_history_reply(client, context.get(PATIENT_KEY), PATIENT)


@test(
    "patient_vread",
    "Server returns expected results from Patient vread resource",
    link=ARGONAUT_GUIDE_URL,
    description=_HISTORY_DESCRIPTION,
    optional=True,
)
def patient_vread(context, client, capabilities):
    skip_if_not_supported(capabilities, PATIENT, ["vread"])
    validate_vread_reply(client, context.get(PATIENT_KEY), PATIENT)
