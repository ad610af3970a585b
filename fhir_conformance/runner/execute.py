import time
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional

from fhir_conformance.context import ExecutionContext
from fhir_conformance.exceptions import RunStateError
from fhir_conformance.logging_config import get_logger
from fhir_conformance.runner.aggregate import aggregate
from fhir_conformance.runner.classify import classify
from fhir_conformance.sequences.base import Outcome, SequenceRunResult, TestCaseSpec
from fhir_conformance.sequences.registry import Sequence

logger = get_logger("runner")

OutcomeCallback = Callable[[TestCaseSpec, Outcome], None]


class RunState(Enum):
    NOT_STARTED = "not_started"
    PRECONDITION_CHECK = "precondition_check"
    ABORTED = "aborted"
    RUNNING = "running"
    COMPLETED = "completed"


class SequenceRunner:
    """Runs one sequence once against one server.

    The runner owns the execution context and the outcome list for the run;
    nothing is shared with other runners, so separate runners may run
    concurrently in different threads.
    """

    def __init__(
        self,
        sequence: Sequence,
        client,
        capabilities,
        seed: Optional[Mapping[str, Any]] = None,
        on_outcome: Optional[OutcomeCallback] = None,
    ) -> None:
        self.sequence = sequence
        self.client = client
        self.capabilities = capabilities
        self.context = ExecutionContext(seed)
        self.outcomes: List[Outcome] = []
        self.state = RunState.NOT_STARTED
        self._on_outcome = on_outcome

    def run(self) -> SequenceRunResult:
        if self.state is not RunState.NOT_STARTED:
            raise RunStateError(
                f"Sequence runner for '{self.sequence.name}' already in state {self.state.value}"
            )
        overall_start = time.time()

        self.state = RunState.PRECONDITION_CHECK
        failed = self._failed_precondition()
        if failed is not None:
            self.state = RunState.ABORTED
            logger.warning(
                f"Sequence '{self.sequence.name}' aborted: precondition failed: {failed}",
                extra={"sequence": self.sequence.name, "precondition": failed},
            )
            return aggregate(self.sequence.name, [], abort_reason=failed)

        self.state = RunState.RUNNING
        registry = self.sequence.registry
        registry.freeze()
        logger.info(
            f"Executing {len(registry)} test cases for sequence '{self.sequence.name}'",
            extra={"sequence": self.sequence.name, "test_count": len(registry)},
        )
        for spec in registry:
            outcome = self._run_one(spec)
            self.outcomes.append(outcome)
            self._notify(spec, outcome)

        self.state = RunState.COMPLETED
        result = aggregate(self.sequence.name, self.outcomes)
        total_time = time.time() - overall_start
        logger.info(
            f"Completed {result.total} test cases in {total_time:.2f}s: "
            f"{result.passed_count} passed, {result.failed_count} failed, "
            f"{result.warning_count} warnings, {result.skipped_count} skipped, "
            f"{result.error_count} errors",
            extra={
                "sequence": self.sequence.name,
                "total_time": total_time,
                "result": result.result,
            },
        )
        return result

    def _failed_precondition(self) -> Optional[str]:
        """Description of the first precondition that does not hold, else None."""
        for precondition in self.sequence.preconditions:
            try:
                holds = precondition.holds(self.client, self.context)
            except Exception as e:
                logger.error(
                    f"Precondition '{precondition.description}' raised: {e}",
                    extra={"precondition": precondition.description, "error": str(e)},
                    exc_info=True,
                )
                holds = False
            if not holds:
                return precondition.description
        return None

    def _notify(self, spec: TestCaseSpec, outcome: Outcome) -> None:
        if self._on_outcome is None:
            return
        try:
            self._on_outcome(spec, outcome)
        except Exception as e:
            logger.error(
                f"Outcome callback failed for test case {spec.key}: {e}",
                extra={"test_key": spec.key, "error": str(e)},
                exc_info=True,
            )

    def _run_one(self, spec: TestCaseSpec) -> Outcome:
        def invoke():
            with self.client.preserve_credentials():
                return spec.run(self.context, self.client, self.capabilities)

        outcome = classify(spec, invoke)
        logger.info(
            f"Test case {spec.key}: {outcome.kind.value} in {outcome.execution_time:.2f}s",
            extra={
                "test_key": spec.key,
                "outcome": outcome.kind.value,
                "execution_time": outcome.execution_time,
            },
        )
        return outcome


def run_sequence(
    sequence: Sequence,
    client,
    capabilities,
    seed: Optional[Mapping[str, Any]] = None,
    on_outcome: Optional[OutcomeCallback] = None,
) -> SequenceRunResult:
    """Run ``sequence`` with a fresh runner and return its aggregated result."""
    runner = SequenceRunner(sequence, client, capabilities, seed=seed, on_outcome=on_outcome)
    return runner.run()
