"""Custom exception hierarchy for the FHIR conformance engine."""


class ConformanceError(Exception):
    """Base exception for all conformance engine errors."""

    pass


class ConfigurationError(ConformanceError):
    """Raised when configuration is invalid or missing."""

    pass


class TestCaseRegistrationError(ConformanceError):
    """Raised when test case registration fails (e.g., duplicate keys)."""

    __test__ = False


class ServerRequestError(ConformanceError):
    """Raised when a request to the server under test cannot be completed."""

    pass


class CapabilityFetchError(ConformanceError):
    """Raised when the server's capability statement cannot be retrieved."""

    pass


class RunStateError(ConformanceError):
    """Raised when a sequence runner is driven out of order."""

    pass


class ResultPersistenceError(ConformanceError):
    """Raised when a sequence run result cannot be stored."""

    def __init__(self, message: str, result_id: str = None, attempts: int = 1) -> None:
        super().__init__(message)
        self.result_id = result_id
        self.attempts = attempts
