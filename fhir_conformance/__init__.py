"""Conformance test execution engine for FHIR servers, with JSON and
database result storage."""

__version__ = "0.1.0"

# Core components
from fhir_conformance.context import ABSENT, ExecutionContext
from fhir_conformance.capability import CapabilityStatement, fetch_capabilities
from fhir_conformance.client import FHIRClient, Reply
from fhir_conformance.sequences.base import (
    ExpectationFailed,
    Outcome,
    OutcomeKind,
    SequenceRunResult,
    SkipRequested,
    TestCaseSpec,
)
from fhir_conformance.sequences.registry import (
    Precondition,
    Sequence,
    TestCaseRegistry,
    get_sequence,
    list_sequences,
)
from fhir_conformance.runner.aggregate import aggregate
from fhir_conformance.runner.execute import RunState, SequenceRunner, run_sequence

# Registered sequences
from fhir_conformance.sequences.argonaut import ARGONAUT_DATA_QUERY

__all__ = [
    # Version
    "__version__",
    # Core
    "ABSENT",
    "ExecutionContext",
    "CapabilityStatement",
    "fetch_capabilities",
    "FHIRClient",
    "Reply",
    "TestCaseSpec",
    "TestCaseRegistry",
    "Sequence",
    "Precondition",
    "Outcome",
    "OutcomeKind",
    "SequenceRunResult",
    "SkipRequested",
    "ExpectationFailed",
    "get_sequence",
    "list_sequences",
    # Execution
    "aggregate",
    "RunState",
    "SequenceRunner",
    "run_sequence",
    # Sequences
    "ARGONAUT_DATA_QUERY",
]
