"""Async HTTP client wrapper that turns a TestCase into a ResponseRecord."""

import json
import logging
import time
from dataclasses import dataclass
from functools import cached_property
from types import MappingProxyType
from typing import Any, Mapping

import httpx

from apitester.errors import ErrorKind, RequestFailed
from apitester.schemas.definitions import TestCase

logger = logging.getLogger(__name__)

# Marks a body that is not valid JSON (None is a valid JSON document)
NOT_JSON = object()


@dataclass(frozen=True)
class ResponseRecord:
    """Captured HTTP response. The body is buffered in full."""
    status_code: int
    headers: Mapping[str, str]
    body: bytes
    elapsed_ms: int = 0

    def __post_init__(self):
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @cached_property
    def document(self) -> Any:
        """Body parsed as JSON once per response, or NOT_JSON."""
        if not self.body.strip():
            return NOT_JSON
        try:
            return json.loads(self.body)
        except (ValueError, RecursionError):
            # ValueError covers JSONDecodeError and UnicodeDecodeError
            return NOT_JSON

    @property
    def is_json(self) -> bool:
        return self.document is not NOT_JSON

    def get_header(self, name: str) -> str | None:
        """Get a header value by case-insensitive name."""
        name = name.lower()
        for key, value in self.headers.items():
            if key.lower() == name:
                return value
        return None


class APIHttpClient:
    """Async HTTP client issuing exactly one request per test case."""

    def __init__(
        self,
        timeout: float = 30.0,
        follow_redirects: bool = True,
        verify_ssl: bool = True,
        max_body_size: int = 10 * 1024 * 1024,  # 10MB max response body
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.verify_ssl = verify_ssl
        self.max_body_size = max_body_size
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "APIHttpClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=self.follow_redirects,
                verify=self.verify_ssl,
                transport=self.transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def execute(self, test_case: TestCase) -> ResponseRecord:
        """
        Send the request described by a test case.

        Args:
            test_case: Parsed test case (method, URL, headers, payload)

        Returns:
            ResponseRecord with status, headers, body and timing

        Raises:
            RequestFailed: On timeout, connection failure or unusable response
        """
        client = await self._get_client()

        kwargs: dict[str, Any] = {
            "method": test_case.method.value,
            "url": test_case.url,
            "headers": dict(test_case.headers),
        }

        # Payload is only meaningful for methods with a body; an empty one is sent as {}
        if test_case.method.sends_payload:
            kwargs["json"] = dict(test_case.payload)

        start_time = time.perf_counter()

        try:
            response = await client.request(**kwargs)
            body_bytes = await response.aread()
        except httpx.TimeoutException as e:
            raise RequestFailed(
                ErrorKind.TIMEOUT,
                f"no response within {self.timeout}s: {e}",
            )
        except httpx.NetworkError as e:
            raise RequestFailed(
                ErrorKind.CONNECTION_FAILED,
                f"could not reach {test_case.url}: {e}",
            )
        except httpx.HTTPError as e:
            raise RequestFailed(
                ErrorKind.INVALID_RESPONSE,
                f"{type(e).__name__}: {e}",
            )

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)

        if len(body_bytes) > self.max_body_size:
            raise RequestFailed(
                ErrorKind.INVALID_RESPONSE,
                f"response body of {len(body_bytes)} bytes exceeds limit of {self.max_body_size}",
            )

        logger.debug(
            "%s %s -> %s in %sms",
            test_case.method.value,
            test_case.url,
            response.status_code,
            elapsed_ms,
        )

        return ResponseRecord(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=body_bytes,
            elapsed_ms=elapsed_ms,
        )
