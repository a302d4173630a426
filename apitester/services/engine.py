"""Main API test execution engine."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable

from apitester.config import get_settings
from apitester.errors import ErrorKind, RequestFailed
from apitester.schemas.definitions import TestCase
from apitester.schemas.results import RejectedTestCase, RunReport, TestResult
from apitester.services.assertion_engine import AssertionEngine
from apitester.services.http_client import APIHttpClient
from apitester.services.parser import DefinitionParser, ParsedDefinitions

logger = logging.getLogger(__name__)


class APITestEngine:
    """
    Runs parsed test cases and aggregates their results.

    Features:
    - Bounded concurrent execution (max in-flight requests)
    - Results in file order regardless of completion order
    - Per-test failure isolation: one failing request never stops the run
    - Streaming callbacks for progress reporting
    """

    def __init__(
        self,
        on_test_start: Callable[[TestCase], Awaitable[None]] | None = None,
        on_test_complete: Callable[[TestResult], Awaitable[None]] | None = None,
        timeout: float | None = None,
        max_concurrency: int | None = None,
        http_client: APIHttpClient | None = None,
    ):
        """
        Initialize the API test engine.

        Args:
            on_test_start: Callback when a test case starts
            on_test_complete: Callback when a test case result is ready
            timeout: Request timeout in seconds (defaults to settings)
            max_concurrency: Max in-flight requests (defaults to settings)
            http_client: Client to use instead of one built from settings
        """
        settings = get_settings()
        self.max_concurrency = max_concurrency or settings.max_concurrency
        self.http_client = http_client or APIHttpClient(
            timeout=timeout or settings.request_timeout,
            follow_redirects=settings.follow_redirects,
            verify_ssl=settings.verify_ssl,
            max_body_size=settings.max_body_size,
        )
        self.assertion_engine = AssertionEngine()
        self.parser = DefinitionParser()

        self.on_test_start = on_test_start
        self.on_test_complete = on_test_complete

    async def close(self):
        """Close the HTTP client."""
        await self.http_client.close()

    async def run_file(self, path: str | Path) -> RunReport:
        """Parse a definitions file and run it. ParseError propagates."""
        return await self.run(self.parser.parse_file(path))

    async def run_text(self, content: str) -> RunReport:
        """Parse definitions text and run it. ParseError propagates."""
        return await self.run(self.parser.parse(content))

    async def run(self, definitions: ParsedDefinitions) -> RunReport:
        """
        Execute every runnable test case.

        Args:
            definitions: Parser output (test cases and rejected records)

        Returns:
            RunReport with one TestResult per test case, in file order
        """
        report = RunReport(
            rejected=[
                RejectedTestCase(
                    record=e.record,
                    line=e.line,
                    assertion=e.assertion,
                    message=e.message,
                )
                for e in definitions.rejected
            ],
        )
        report.started_at = datetime.utcnow()

        for e in definitions.rejected:
            logger.warning("Skipping test case: %s", e)

        test_cases = definitions.test_cases
        semaphore = asyncio.Semaphore(self.max_concurrency)
        results: list[TestResult | None] = [None] * len(test_cases)

        async def run_indexed(index: int, test_case: TestCase):
            async with semaphore:
                results[index] = await self.execute_test_case(test_case)

        await asyncio.gather(
            *(run_indexed(i, test_case) for i, test_case in enumerate(test_cases))
        )

        report.results = results
        report.finished_at = datetime.utcnow()

        logger.info(
            "Run finished: %d passed, %d failed, %d errored, %d rejected",
            report.passed,
            report.failed,
            report.errored,
            len(report.rejected),
        )
        return report

    async def execute_test_case(self, test_case: TestCase) -> TestResult:
        """
        Execute a single test case: one request, then status and assertions.

        Never raises: request failures, unexpected errors while checking the
        response and callback errors are folded into or logged against the
        returned TestResult.
        """
        if self.on_test_start:
            await self._notify(self.on_test_start, test_case, test_case)

        logger.info("Running '%s': %s %s", test_case.name, test_case.method.value, test_case.url)

        try:
            response = await self.http_client.execute(test_case)
            result = TestResult(
                test_case=test_case,
                status_match=response.status_code == test_case.expected_status_code,
                actual_status_code=response.status_code,
                assertion_results=self.assertion_engine.evaluate_all(
                    response, test_case.assertions
                ),
                elapsed_ms=response.elapsed_ms,
            )
        except RequestFailed as e:
            logger.warning("Request for '%s' failed: %s", test_case.name, e)
            result = TestResult(
                test_case=test_case,
                error=e.kind,
                error_detail=e.message,
            )
        except Exception as e:
            logger.exception("Unexpected error while running '%s'", test_case.name)
            result = TestResult(
                test_case=test_case,
                error=ErrorKind.INVALID_RESPONSE,
                error_detail=f"unexpected error: {type(e).__name__}: {e}",
            )

        logger.info(
            "'%s' %s",
            test_case.name,
            "passed" if result.overall_passed else "failed",
        )

        if self.on_test_complete:
            await self._notify(self.on_test_complete, result, test_case)

        return result

    async def _notify(
        self,
        callback: Callable[[Any], Awaitable[None]],
        arg: Any,
        test_case: TestCase,
    ):
        """Invoke a progress callback; its errors are logged, never raised."""
        try:
            await callback(arg)
        except Exception:
            logger.exception("Progress callback failed for '%s'", test_case.name)
