"""Schemas for test definitions and results."""

from apitester.schemas.definitions import (
    Assertion,
    HeaderExists,
    HeaderValue,
    JSONPathExists,
    JSONPathValue,
    LiteralValue,
    Method,
    TestCase,
)
from apitester.schemas.results import (
    AssertionResult,
    RejectedTestCase,
    RunReport,
    TestResult,
)

__all__ = [
    "Assertion",
    "HeaderExists",
    "HeaderValue",
    "JSONPathExists",
    "JSONPathValue",
    "LiteralValue",
    "Method",
    "TestCase",
    "AssertionResult",
    "RejectedTestCase",
    "RunReport",
    "TestResult",
]
