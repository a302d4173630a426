"""Pydantic schemas for test execution results."""

from datetime import datetime

from pydantic import BaseModel, Field, computed_field

from apitester.errors import ErrorKind
from apitester.schemas.definitions import Assertion, TestCase


class AssertionResult(BaseModel):
    """Result of a single assertion evaluation."""
    assertion: Assertion
    passed: bool
    detail: str


class TestResult(BaseModel):
    """Outcome of one test case: status check, assertions, or request error."""
    __test__ = False  # not a pytest class

    test_case: TestCase
    status_match: bool = False
    actual_status_code: int | None = None
    assertion_results: list[AssertionResult] = Field(default_factory=list)
    error: ErrorKind | None = None
    error_detail: str | None = None
    elapsed_ms: int | None = None

    @computed_field
    @property
    def overall_passed(self) -> bool:
        if self.error is not None:
            return False
        return self.status_match and all(r.passed for r in self.assertion_results)

    @property
    def failure_reasons(self) -> list[str]:
        """Human-readable reasons this test failed, empty if it passed."""
        if self.error is not None:
            return [f"{self.error.value}: {self.error_detail}"]
        reasons = []
        if not self.status_match:
            reasons.append(
                f"expected status code {self.test_case.expected_status_code}, "
                f"got {self.actual_status_code}"
            )
        reasons.extend(r.detail for r in self.assertion_results if not r.passed)
        return reasons


class RejectedTestCase(BaseModel):
    """A record excluded from the run because an assertion path is invalid."""
    record: str
    line: int
    assertion: str
    message: str


class RunReport(BaseModel):
    """Results of running a definitions file, in file order."""
    results: list[TestResult] = Field(default_factory=list)
    rejected: list[RejectedTestCase] = Field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.overall_passed)

    @property
    def errored(self) -> int:
        return sum(1 for r in self.results if r.error is not None)

    @property
    def failed(self) -> int:
        return self.total - self.passed - self.errored

    @property
    def total_assertions(self) -> int:
        return sum(len(r.assertion_results) for r in self.results)

    @property
    def passed_assertions(self) -> int:
        return sum(
            sum(1 for a in r.assertion_results if a.passed)
            for r in self.results
        )

    @property
    def duration_ms(self) -> int | None:
        if self.started_at and self.finished_at:
            return int((self.finished_at - self.started_at).total_seconds() * 1000)
        return None

    @computed_field
    @property
    def all_passed(self) -> bool:
        return not self.rejected and all(r.overall_passed for r in self.results)

    @computed_field
    @property
    def summary(self) -> dict:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "errored": self.errored,
            "rejected": len(self.rejected),
            "total_assertions": self.total_assertions,
            "passed_assertions": self.passed_assertions,
            "failed_assertions": self.total_assertions - self.passed_assertions,
            "duration_ms": self.duration_ms,
        }
