"""Render a RunReport as JSON or as a terminal table."""

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from apitester.schemas.results import RunReport


def render_json(report: RunReport) -> str:
    """Serialize the report, including per-assertion details, as JSON."""
    return report.model_dump_json(indent=2)


def render_table(report: RunReport, console: Console) -> None:
    """Print one row per test case plus a summary line."""
    table = Table(title="API test results")
    table.add_column("#", justify="right")
    table.add_column("Test case")
    table.add_column("Request")
    table.add_column("Status", justify="center")
    table.add_column("Result")
    table.add_column("Details")

    for i, result in enumerate(report.results, start=1):
        test_case = result.test_case
        if result.error is not None:
            status = "-"
        else:
            status = f"{result.actual_status_code}/{test_case.expected_status_code}"
        verdict = "[green]PASS[/green]" if result.overall_passed else "[red]FAIL[/red]"
        table.add_row(
            str(i),
            escape(test_case.name),
            escape(f"{test_case.method.value} {test_case.url}"),
            status,
            verdict,
            escape("\n".join(result.failure_reasons)),
        )

    console.print(table)

    for rejected in report.rejected:
        console.print(
            "[yellow]Skipped[/yellow] "
            + escape(
                f"'{rejected.record}' (line {rejected.line}): "
                f"invalid assertion '{rejected.assertion}': {rejected.message}"
            )
        )

    summary = report.summary
    console.print(
        f"{summary['passed']}/{summary['total']} passed, "
        f"{summary['failed']} failed, {summary['errored']} errored, "
        f"{summary['rejected']} skipped "
        f"({summary['passed_assertions']}/{summary['total_assertions']} assertions passed)"
    )
