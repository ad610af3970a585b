"""Base types for test cases: TestCaseSpec, Outcome, OutcomeKind and body signals."""

from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Any, Callable, List, Optional

# body(context, client, capabilities) -> None | SkipRequested | ExpectationFailed
TestBody = Callable[[Any, Any, Any], Any]


class SkipRequested(Exception):
    """Signal from a test body that it should not be evaluated.

    Raised (or returned) by a body, typically because the server declared
    it does not implement the interaction under test. Raising it ends the
    body at that point.
    """

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ExpectationFailed(Exception):
    """Signal from a test body that the server did not behave as expected."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class OutcomeKind(Enum):
    """Outcome kinds: PASS, FAIL, SKIP, ERROR."""

    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"
    ERROR = "error"


@dataclass(frozen=True)
class TestCaseSpec:
    """One registered check. Immutable once registered."""

    __test__ = False

    key: str
    title: str
    body: TestBody
    link: Optional[str] = None
    description: Optional[str] = None
    optional: bool = False
    ordinal: int = 0

    def run(self, context, client, capabilities) -> Any:
        return self.body(context, client, capabilities)

    def describe(self) -> dict:
        return {
            "key": self.key,
            "title": self.title,
            "link": self.link,
            "description": self.description,
            "optional": self.optional,
            "ordinal": self.ordinal,
        }


@dataclass
class Outcome:
    test_key: str
    title: str
    kind: OutcomeKind
    message: str = ""
    optional: bool = False
    ordinal: int = 0
    detail: Optional[str] = None  # traceback for ERROR outcomes
    execution_time: Optional[float] = None
    executed_at: Optional[str] = None  # ISO timestamp when the body ran

    @property
    def is_warning(self) -> bool:
        """A failed or errored optional test case."""
        return self.optional and self.kind in (OutcomeKind.FAIL, OutcomeKind.ERROR)

    def to_dict(self):
        d = asdict(self)
        d["kind"] = self.kind.value
        return d


@dataclass
class SequenceRunResult:
    sequence_name: str
    id: str
    outcomes: List[Outcome] = field(default_factory=list)
    passed_count: int = 0
    failed_count: int = 0
    warning_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    wait_index: int = 0
    created_at: Optional[str] = None
    abort_reason: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def aborted(self) -> bool:
        return self.abort_reason is not None

    @property
    def conformant(self) -> bool:
        """Optional-test failures only count as warnings and never flip this."""
        return not self.aborted and self.failed_count == 0 and self.error_count == 0

    @property
    def result(self) -> str:
        return "pass" if self.conformant else "fail"

    def to_dict(self):
        d = asdict(self)
        d["outcomes"] = [o.to_dict() for o in self.outcomes]
        d["result"] = self.result
        d["conformant"] = self.conformant
        return d
