import json
import os
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from fhir_conformance.sequences.base import Outcome, OutcomeKind, SequenceRunResult

_wait_lock = threading.Lock()
_last_wait_index = 0


def next_wait_index() -> int:
    """Strictly increasing insertion index for stored results.

    Seeded from the wall clock in nanoseconds so that results stored by
    separate processes keep their insertion order; the lock and the
    ``last + 1`` floor keep it strictly increasing within one process.
    """
    global _last_wait_index
    with _wait_lock:
        _last_wait_index = max(time.time_ns(), _last_wait_index + 1)
        return _last_wait_index


def aggregate(
    sequence_name: str,
    outcomes: Iterable[Outcome],
    abort_reason: Optional[str] = None,
) -> SequenceRunResult:
    outcomes = list(outcomes)
    result = SequenceRunResult(
        sequence_name=sequence_name,
        id=uuid.uuid4().hex,
        outcomes=outcomes,
        wait_index=next_wait_index(),
        created_at=datetime.now(timezone.utc).isoformat(),
        abort_reason=abort_reason,
    )
    for outcome in outcomes:
        if outcome.kind is OutcomeKind.PASS:
            result.passed_count += 1
        elif outcome.kind is OutcomeKind.SKIP:
            result.skipped_count += 1
        elif outcome.is_warning:
            # optional failures and errors never count against the verdict
            result.warning_count += 1
        elif outcome.kind is OutcomeKind.FAIL:
            result.failed_count += 1
        else:
            result.error_count += 1
    return result


def write_outputs(result: SequenceRunResult, out_dir: str, run_id: str) -> str:
    """Write ``results.json`` for one sequence run and return its path."""
    target = os.path.join(out_dir, run_id, result.sequence_name)
    os.makedirs(target, exist_ok=True)
    path = os.path.join(target, "results.json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, ensure_ascii=False, indent=2)
    return path
