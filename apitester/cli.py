"""Command line front-end: run a definitions file and report the results."""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console

from apitester.config import get_settings
from apitester.errors import ParseError
from apitester.services.engine import APITestEngine
from apitester.services.parser import DefinitionParser
from apitester.services.report import render_json, render_table

app = typer.Typer(help="Run declarative API tests from a definitions file.")

EXIT_FAILED = 1
EXIT_INVALID = 2

ARG_FILE = typer.Argument(..., help="Path to the test definitions file")
OPT_JSON = typer.Option(False, "--json", "-j", help="Output the report as JSON")
OPT_TIMEOUT = typer.Option(None, "--timeout", "-t", help="Request timeout in seconds")
OPT_CONCURRENCY = typer.Option(None, "--concurrency", "-c", help="Max in-flight requests")
OPT_VERBOSE = typer.Option(False, "--verbose", "-v", help="Log each request")


async def _run(path: Path, timeout: float | None, concurrency: int | None):
    engine = APITestEngine(timeout=timeout, max_concurrency=concurrency)
    try:
        return await engine.run_file(path)
    finally:
        await engine.close()


@app.command("run")
def cmd_run(
    file: Path = ARG_FILE,
    json_output: bool = OPT_JSON,
    timeout: float | None = OPT_TIMEOUT,
    concurrency: int | None = OPT_CONCURRENCY,
    verbose: bool = OPT_VERBOSE,
):
    """Run every test case in FILE. Exit code is 0 only if all passed."""
    settings = get_settings()
    logging.basicConfig(
        level=logging.INFO if verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    console = Console()
    err_console = Console(stderr=True)

    try:
        report = asyncio.run(_run(file, timeout, concurrency))
    except ParseError as e:
        err_console.print(f"[red]Parse error[/red] in {file}: {e}")
        raise typer.Exit(EXIT_INVALID)
    except OSError as e:
        err_console.print(f"[red]Cannot read[/red] {file}: {e}")
        raise typer.Exit(EXIT_INVALID)

    if json_output:
        typer.echo(render_json(report))
    else:
        render_table(report, console)

    if not report.all_passed:
        raise typer.Exit(EXIT_FAILED)


@app.command("check")
def cmd_check(file: Path = ARG_FILE):
    """Parse FILE without sending any request."""
    try:
        definitions = DefinitionParser().parse_file(file)
    except ParseError as e:
        typer.echo(f"Parse error in {file}: {e}", err=True)
        raise typer.Exit(EXIT_INVALID)
    except OSError as e:
        typer.echo(f"Cannot read {file}: {e}", err=True)
        raise typer.Exit(EXIT_INVALID)

    for test_case in definitions.test_cases:
        typer.echo(f"ok   {test_case.name} ({test_case.method.value} {test_case.url})")
    for error in definitions.rejected:
        typer.echo(f"skip {error}")
    if definitions.rejected:
        raise typer.Exit(EXIT_FAILED)
