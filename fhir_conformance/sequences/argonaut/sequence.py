"""The Argonaut Data Query sequence object and its precondition."""

from fhir_conformance.sequences.registry import Sequence

PATIENT_ID_KEY = "patient_id"

ARGONAUT_DATA_QUERY = Sequence(
    name="argonaut_data_query",
    title="Argonaut Data Query",
    description=(
        "Verify that the FHIR server follows the Argonaut Data Query "
        "Implementation Guide Server."
    ),
)


@ARGONAUT_DATA_QUERY.precondition("Client must be authorized")
def _client_is_authorized(client, context):
    return client.has_credential
