"""Error types raised while parsing definitions and executing requests."""

from enum import Enum


class ErrorKind(str, Enum):
    """Why a request produced no usable response."""
    CONNECTION_FAILED = "ConnectionFailed"
    TIMEOUT = "Timeout"
    INVALID_RESPONSE = "InvalidResponse"


class APITesterError(Exception):
    """Base class for all apitester errors."""


class ParseError(APITesterError):
    """
    Malformed definitions file.

    Fatal to the whole run: parsing stops at the first one.
    """

    def __init__(self, line: int, record: str, message: str):
        self.line = line
        self.record = record
        self.message = message
        super().__init__(f"line {line}, record '{record}': {message}")


class ConfigError(APITesterError):
    """
    Malformed assertion path.

    Only the test case containing the assertion is excluded from the run.
    The parser fills in ``record`` and ``line`` once it knows them.
    """

    def __init__(
        self,
        assertion: str,
        message: str,
        record: str | None = None,
        line: int | None = None,
    ):
        self.assertion = assertion
        self.message = message
        self.record = record
        self.line = line
        super().__init__(f"{assertion}: {message}")

    def __str__(self) -> str:
        prefix = ""
        if self.line is not None:
            prefix = f"line {self.line}, record '{self.record}': "
        return f"{prefix}invalid assertion '{self.assertion}': {self.message}"


class RequestFailed(APITesterError):
    """A single request failed before a response could be recorded."""

    def __init__(self, kind: ErrorKind, message: str):
        self.kind = kind
        self.message = message
        super().__init__(f"{kind.value}: {message}")
