"""Assertion engine for API test assertions."""

from typing import Any

from apitester.schemas.definitions import (
    Assertion,
    HeaderExists,
    HeaderValue,
    JSONPathExists,
    JSONPathValue,
    LiteralValue,
)
from apitester.schemas.results import AssertionResult
from apitester.services.http_client import ResponseRecord
from apitester.services.json_path import compile_path, find_values

BODY_NOT_JSON = "body is not JSON"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if _is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def values_match(expected: LiteralValue, actual: Any) -> bool:
    """
    Compare a literal against a JSON value.

    Numbers compare numerically (123 matches 123.0). Strings and booleans
    compare exactly. Any type mismatch is a non-match.
    """
    if _is_number(expected):
        return _is_number(actual) and expected == actual
    if isinstance(expected, bool):
        return isinstance(actual, bool) and expected is actual
    return isinstance(actual, str) and expected == actual


class AssertionEngine:
    """
    Evaluates assertions against a recorded response.

    Supported assertion kinds:
    - JSONPathExists: path resolves to at least one node
    - JSONPathValue: path resolves to one node equal to a literal
    - HeaderExists: header present (case-insensitive name)
    - HeaderValue: header present with an exact value

    Evaluation never mutates the response or the assertion. The parsed JSON
    document is owned by the ResponseRecord and shared across assertions.
    """

    def __init__(self):
        self._handlers = {
            JSONPathExists: self._assert_jsonpath_exists,
            JSONPathValue: self._assert_jsonpath_value,
            HeaderExists: self._assert_header_exists,
            HeaderValue: self._assert_header_value,
        }

    def evaluate_all(
        self,
        response: ResponseRecord,
        assertions: tuple[Assertion, ...] | list[Assertion],
    ) -> list[AssertionResult]:
        """Evaluate assertions in declaration order."""
        return [self.evaluate(response, assertion) for assertion in assertions]

    def evaluate(self, response: ResponseRecord, assertion: Assertion) -> AssertionResult:
        """
        Evaluate a single assertion.

        Args:
            response: Recorded HTTP response
            assertion: One of the four assertion kinds

        Returns:
            AssertionResult with verdict and a detail message
        """
        handler = self._handlers.get(type(assertion))
        if handler is None:
            raise TypeError(f"Unknown assertion type: {type(assertion).__name__}")

        passed, detail = handler(assertion, response)
        return AssertionResult(assertion=assertion, passed=passed, detail=detail)

    def _assert_jsonpath_exists(
        self,
        assertion: JSONPathExists,
        response: ResponseRecord,
    ) -> tuple[bool, str]:
        """Assert a JSON path resolves to at least one node."""
        if not response.is_json:
            return False, f"{assertion.path}: {BODY_NOT_JSON}"

        matches = find_values(compile_path(assertion.path), response.document)
        if matches:
            return True, f"Path {assertion.path} exists"
        return False, f"Path {assertion.path} does not exist"

    def _assert_jsonpath_value(
        self,
        assertion: JSONPathValue,
        response: ResponseRecord,
    ) -> tuple[bool, str]:
        """Assert the single node at a JSON path equals the expected literal."""
        path = assertion.path
        expected = assertion.expected

        if not response.is_json:
            return False, f"{path}: {BODY_NOT_JSON}"

        matches = find_values(compile_path(path), response.document)
        if not matches:
            return False, f"Path {path} does not exist"
        if len(matches) > 1:
            return False, f"Path {path} matched {len(matches)} nodes, expected exactly one"

        actual = matches[0]
        if values_match(expected, actual):
            return True, f"{path} == {expected!r}"

        expected_type = _type_name(expected)
        actual_type = _type_name(actual)
        if expected_type != actual_type:
            return False, (
                f"{path}: type mismatch, expected {expected_type} {expected!r}, "
                f"got {actual_type} {actual!r}"
            )
        return False, f"{path}: expected {expected!r}, got {actual!r}"

    def _assert_header_exists(
        self,
        assertion: HeaderExists,
        response: ResponseRecord,
    ) -> tuple[bool, str]:
        """Assert a response header is present."""
        passed = response.get_header(assertion.name) is not None
        return passed, f"Header '{assertion.name}' {'exists' if passed else 'does not exist'}"

    def _assert_header_value(
        self,
        assertion: HeaderValue,
        response: ResponseRecord,
    ) -> tuple[bool, str]:
        """Assert a response header has exactly the expected value."""
        name = assertion.name
        expected = assertion.expected
        actual = response.get_header(name)

        if actual is None:
            return False, f"Header '{name}' does not exist"
        if actual == expected:
            return True, f"Header '{name}' = '{actual}'"
        return False, f"Header '{name}': expected '{expected}', got '{actual}'"
