"""Argonaut Data Query (DSTU2) sequence.

Importing this package registers the sequence in the catalogue. Test cases
are registered in module import order: Patient first, then the clinical
resource groups.
"""

from fhir_conformance.sequences.argonaut.sequence import ARGONAUT_DATA_QUERY, PATIENT_ID_KEY
from fhir_conformance.sequences.argonaut import patient  # noqa: F401
from fhir_conformance.sequences.argonaut import clinical  # noqa: F401
from fhir_conformance.sequences.registry import register_sequence

register_sequence(ARGONAUT_DATA_QUERY)

__all__ = ["ARGONAUT_DATA_QUERY", "PATIENT_ID_KEY"]
