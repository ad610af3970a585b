"""Execution context shared by the test cases of one sequence run."""

from typing import Any, Dict, Iterator, Mapping, Optional


class _Absent:
    """Marker returned for lookups that found nothing."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"

    def __reduce__(self):
        return (_Absent, ())


ABSENT = _Absent()


def is_absent(value: Any) -> bool:
    return value is ABSENT


class ExecutionContext:
    """Mutable scratch space scoped to a single sequence run.

    Test cases write values they extracted from the server (a fetched
    Patient, an identifier, ...) and later test cases read them back.
    Writes overwrite. Entries are never removed. A missing key reads as
    ``ABSENT`` so bodies can branch on it instead of catching KeyError.
    """

    def __init__(self, seed: Optional[Mapping[str, Any]] = None) -> None:
        self._values: Dict[str, Any] = dict(seed or {})

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def get(self, key: str, default: Any = ABSENT) -> Any:
        return self._values.get(key, default)

    def has(self, key: str) -> bool:
        return key in self._values

    def keys(self) -> Iterator[str]:
        return iter(list(self._values))

    def snapshot(self) -> Dict[str, Any]:
        """Shallow copy of the current entries."""
        return dict(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ExecutionContext(keys={sorted(self._values)!r})"
