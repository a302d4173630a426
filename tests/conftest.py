"""
Shared fixtures for apitester tests.

HTTP traffic is served by ``httpx.MockTransport`` so no test touches the
network.
"""

from pathlib import Path
from typing import Callable

import httpx
import pytest

from apitester.schemas.definitions import Method, TestCase
from apitester.services.http_client import APIHttpClient, ResponseRecord

EXAMPLES_DIR = Path(__file__).parent.parent / "examples"

ITEMS_BODY = b'{"data":{"items":[{"id":123,"name":"Example Item"}]}}'


@pytest.fixture
def sample_path() -> Path:
    """Path to the two-record sample definitions file."""
    return EXAMPLES_DIR / "sample.tests"


@pytest.fixture
def items_response() -> ResponseRecord:
    """JSON response holding one item with id 123."""
    return ResponseRecord(
        status_code=200,
        headers={"content-type": "application/json"},
        body=ITEMS_BODY,
    )


@pytest.fixture
def make_test_case() -> Callable[..., TestCase]:
    """Factory for test cases with sensible defaults."""

    def factory(**overrides) -> TestCase:
        values = {
            "name": "case",
            "method": Method.GET,
            "url": "https://api.example.com/items",
            "expected_status_code": 200,
        }
        values.update(overrides)
        return TestCase(**values)

    return factory


@pytest.fixture
def make_http_client() -> Callable[..., APIHttpClient]:
    """Factory for an APIHttpClient backed by a mock transport handler."""

    def factory(handler, **kwargs) -> APIHttpClient:
        return APIHttpClient(transport=httpx.MockTransport(handler), **kwargs)

    return factory
