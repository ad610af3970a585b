"""Test case registration and the catalogue of known sequences."""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from fhir_conformance.exceptions import ConfigurationError, TestCaseRegistrationError
from fhir_conformance.sequences.base import TestBody, TestCaseSpec


class TestCaseRegistry:
    """Ordered, duplicate-free collection of test cases for one sequence.

    Cases are registered once at import time; the runner freezes the
    registry before iterating it.
    """

    __test__ = False

    def __init__(self) -> None:
        self._specs: List[TestCaseSpec] = []
        self._keys = set()
        self._frozen = False

    def register(self, spec: TestCaseSpec) -> TestCaseSpec:
        if self._frozen:
            raise TestCaseRegistrationError(
                f"Cannot register '{spec.key}': registry is frozen"
            )
        if spec.key in self._keys:
            raise TestCaseRegistrationError(f"Duplicate test case key: {spec.key}")
        self._keys.add(spec.key)
        self._specs.append(spec)
        return spec

    def test(
        self,
        key: str,
        title: str,
        link: Optional[str] = None,
        description: Optional[str] = None,
        optional: bool = False,
    ):
        """Decorator to register a body function as a test case."""

        def _decorator(body: TestBody) -> TestBody:
            self.add(key, title, body, link=link, description=description, optional=optional)
            return body

        return _decorator

    def add(
        self,
        key: str,
        title: str,
        body: TestBody,
        link: Optional[str] = None,
        description: Optional[str] = None,
        optional: bool = False,
    ) -> TestCaseSpec:
        spec = TestCaseSpec(
            key=key,
            title=title,
            body=body,
            link=link,
            description=description,
            optional=optional,
            ordinal=len(self._specs),
        )
        return self.register(spec)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, key: str) -> Optional[TestCaseSpec]:
        for spec in self._specs:
            if spec.key == key:
                return spec
        return None

    def list_registered(self) -> List[Dict[str, Any]]:
        """List all registered test cases."""
        return [spec.describe() for spec in self._specs]

    def __iter__(self) -> Iterator[TestCaseSpec]:
        return iter(tuple(self._specs))

    def __len__(self) -> int:
        return len(self._specs)


# predicate(client, context) -> bool
PreconditionCheck = Callable[[Any, Any], bool]


@dataclass(frozen=True)
class Precondition:
    """Run-level gate evaluated once before any test case executes."""

    description: str
    predicate: PreconditionCheck

    def holds(self, client, context) -> bool:
        return bool(self.predicate(client, context))


@dataclass
class Sequence:
    """A named, ordered collection of test cases for one conformance guide."""

    name: str
    title: str
    description: str = ""
    registry: TestCaseRegistry = field(default_factory=TestCaseRegistry)
    preconditions: List[Precondition] = field(default_factory=list)

    def precondition(self, description: str):
        """Decorator to declare a precondition predicate."""

        def _decorator(predicate: PreconditionCheck) -> PreconditionCheck:
            self.preconditions.append(Precondition(description, predicate))
            return predicate

        return _decorator

    def __len__(self) -> int:
        return len(self.registry)


# Internal catalogue: name -> Sequence
_SEQUENCES: Dict[str, Sequence] = {}


def register_sequence(sequence: Sequence) -> Sequence:
    if sequence.name in _SEQUENCES:
        raise TestCaseRegistrationError(f"Duplicate sequence name: {sequence.name}")
    _SEQUENCES[sequence.name] = sequence
    return sequence


def get_sequence(name: str) -> Sequence:
    try:
        return _SEQUENCES[name]
    except KeyError:
        known = ", ".join(sorted(_SEQUENCES)) or "none"
        raise ConfigurationError(f"Unknown sequence '{name}' (known: {known})")


def list_sequences() -> List[Dict[str, Any]]:
    """List all registered sequences."""
    return [
        {
            "name": seq.name,
            "title": seq.title,
            "description": seq.description,
            "test_count": len(seq),
        }
        for seq in _SEQUENCES.values()
    ]
