"""Outcome classification for a single test case body."""

import time
import traceback
from datetime import datetime, timezone
from typing import Any, Callable

from fhir_conformance.logging_config import get_logger
from fhir_conformance.sequences.base import (
    ExpectationFailed,
    Outcome,
    OutcomeKind,
    SkipRequested,
    TestCaseSpec,
)

logger = get_logger("runner")


def _outcome(spec: TestCaseSpec, kind: OutcomeKind, message: str = "", detail: str = None) -> Outcome:
    return Outcome(
        test_key=spec.key,
        title=spec.title,
        kind=kind,
        message=message,
        optional=spec.optional,
        ordinal=spec.ordinal,
        detail=detail,
    )


def classify_signal(spec: TestCaseSpec, signal: Any) -> Outcome:
    """Map what a body returned (or raised) to an Outcome."""
    if isinstance(signal, SkipRequested):
        return _outcome(spec, OutcomeKind.SKIP, signal.message)
    if isinstance(signal, ExpectationFailed):
        return _outcome(spec, OutcomeKind.FAIL, signal.message)
    return _outcome(spec, OutcomeKind.PASS)


def classify(spec: TestCaseSpec, invoke: Callable[[], Any]) -> Outcome:
    """Run ``invoke`` and classify it. Never raises for faults inside the body.

    Skip and failure signals may be raised or returned. Any other exception
    becomes an ERROR outcome carrying the exception text and traceback.
    """
    start_time = time.time()
    try:
        outcome = classify_signal(spec, invoke())
    except (SkipRequested, ExpectationFailed) as signal:
        outcome = classify_signal(spec, signal)
    except Exception as e:
        logger.error(
            f"Test case {spec.key} raised unexpected error: {e}",
            extra={"test_key": spec.key, "error": str(e)},
            exc_info=True,
        )
        outcome = _outcome(
            spec,
            OutcomeKind.ERROR,
            f"Unexpected error: {type(e).__name__}: {e}",
            detail=traceback.format_exc(),
        )
    outcome.execution_time = time.time() - start_time
    outcome.executed_at = datetime.now(timezone.utc).isoformat()
    return outcome
