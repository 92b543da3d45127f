"""
Exception hierarchy for alcotest.

Parse errors and failing runs reach the embedding test suite as ``TestError``;
assertion failures inside a test body are ``TestFailure`` and only ever mark
that single test as failed.
"""


class AlcotestError(Exception):
    """Base exception for all alcotest errors."""
    pass


class TestError(AlcotestError):
    """Raised to the caller when a run cannot start or did not succeed."""

    __test__ = False


class CliParseError(TestError):
    """Raised when the command line or an ALCOTEST_* variable does not parse."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EnvironmentValueError(ValueError):
    """Raised when an environment variable holds a value of the wrong shape."""

    def __init__(self, variable: str, value: str, reason: str):
        self.variable = variable
        self.value = value
        super().__init__(
            f"environment variable {variable}: invalid value {value!r}, {reason}"
        )


class TestFailure(AssertionError):
    """Raised by ``fail``/``check``; the engine records it as a failed test."""

    __test__ = False
