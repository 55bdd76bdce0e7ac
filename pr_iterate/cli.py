"""CLI interface for pr-iterate."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from pr_iterate.agents.ci_monitor import GitHubCheckPoller
from pr_iterate.agents.orchestrator import IterationController
from pr_iterate.core.config import LOG_DIR, load_config
from pr_iterate.core.constants import (
    EXIT_CODES,
    EXIT_INVALID_CONFIGURATION,
    BackoffStrategy,
    RunStatus,
)
from pr_iterate.core.errors import InvalidConfiguration
from pr_iterate.core.output_formatter import format_iteration, format_record_lines, format_status
from pr_iterate.models.iteration_record import IterationRecord
from pr_iterate.models.report import Report
from pr_iterate.services.notifier import send_webhook
from pr_iterate.services.reporter import generate_report
from pr_iterate.services.results_writer import ResultsWriter
from pr_iterate.state.iteration_state import IterationState
from pr_iterate.utils.logging_config import setup_logging

console = Console()
err_console = Console(stderr=True)


@click.group()
@click.version_option(package_name="pr-iterate")
def main() -> None:
    """Iteratively remediate a pull request until its CI checks pass."""
    pass


@main.command()
@click.option("--target", "-t", required=True, help="Pull request number to iterate on")
@click.option("--max-iterations", "-m", type=int, default=None, help="Maximum iteration attempts")
@click.option("--timeout", type=float, default=None, help="Total timeout in seconds")
@click.option("--parallel/--sequential", default=None, help="Run fixes for different categories in parallel")
@click.option(
    "--backoff",
    type=click.Choice([s.value for s in BackoffStrategy]),
    default=None,
    help="Backoff strategy between iterations",
)
@click.option("--config", "-c", "config_path", type=click.Path(exists=True, dir_okay=False), help="YAML/JSON config file")
@click.option("--repo", default=None, help="Repository as owner/repo or GitHub URL")
@click.option("--dry-run", is_flag=True, help="Log fixes instead of spawning agents")
@click.option("--auto-fix/--no-auto-fix", default=None, help="Dispatch remediation strategies (default: on)")
@click.option("--webhook", default=None, help="Webhook URL notified when the run ends")
@click.option("--report-file", type=click.Path(dir_okay=False), default=None, help="Write the JSON report here")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.option("--log-dir", default=LOG_DIR, show_default=True, help="Directory for the log file ('' to disable)")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output with detailed logs")
def run(
    target: str,
    max_iterations: int | None,
    timeout: float | None,
    parallel: bool | None,
    backoff: str | None,
    config_path: str | None,
    repo: str | None,
    dry_run: bool,
    auto_fix: bool | None,
    webhook: str | None,
    report_file: str | None,
    as_json: bool,
    log_dir: str,
    verbose: bool,
) -> None:
    """Poll, classify, fix and re-check a PR until success, the cap or the timeout.

    Exit codes: 0 succeeded, 1 failed, 2 invalid configuration,
    3 iteration cap reached, 4 timed out.
    """
    setup_logging(level=logging.DEBUG if verbose else logging.INFO, log_dir=log_dir or None)

    overrides = {
        "max_iterations": max_iterations,
        "timeout": timeout,
        "parallel": parallel,
        "backoff_strategy": backoff,
        "repository": GitHubCheckPoller.extract_repo_path(repo) if repo else None,
        "dry_run": dry_run or None,
        "auto_fix": auto_fix,
        "webhook_url": webhook,
    }
    try:
        cfg = load_config(config_path, overrides)
    except InvalidConfiguration as exc:
        err_console.print(f"[bold red]Configuration error:[/bold red] {escape(str(exc))}")
        sys.exit(EXIT_INVALID_CONFIGURATION)

    if cfg.dry_run and not as_json:
        console.print("[yellow]Dry run mode - no agents will be spawned[/yellow]\n")

    on_record = None if as_json else _print_progress
    controller = IterationController.from_config(cfg, target, on_record=on_record)
    state = asyncio.run(controller.run(target))
    report = generate_report(state)

    if report_file:
        ResultsWriter.write_report(report, report_file)

    if cfg.webhook_url:
        asyncio.run(send_webhook(cfg.webhook_url, report))

    if as_json:
        click.echo(json.dumps(report.model_dump(mode="json"), indent=2))
    else:
        display_report(report, verbose=verbose)

    sys.exit(EXIT_CODES[report.status])


def _print_progress(state: IterationState, record: IterationRecord) -> None:
    console.print(f"[dim]{escape(format_iteration(record))}[/dim]")


def _get_status_style(status: RunStatus) -> str:
    """Get Rich style for a run status."""
    styles = {
        RunStatus.RUNNING: "blue",
        RunStatus.SUCCEEDED: "green bold",
        RunStatus.FAILED: "red bold",
        RunStatus.TIMED_OUT: "yellow",
        RunStatus.CAP_REACHED: "yellow",
    }
    return styles.get(status, "white")


def display_report(report: Report, verbose: bool = False) -> None:
    """Render the report to the console."""
    style = _get_status_style(report.status)
    console.print(Panel(f"[bold]PR Iteration Report: #{report.target_id}[/bold]"))
    console.print(f"Status: [{style}]{format_status(report.status)}[/{style}]")
    console.print(f"Reason: {escape(report.reason)}")
    console.print(f"Iterations: {report.iterations}")
    console.print(f"Total Time: {report.total_elapsed:.0f}s")
    console.print(f"Avg Time/Iteration: {report.average_iteration_time:.1f}s")
    console.print(f"Total Fixes: {report.total_fixes}")

    if report.fixes_by_category:
        table = Table(title="\nFixes by Category")
        table.add_column("Category", style="cyan")
        table.add_column("Fixes", style="magenta", justify="right")
        for category, count in sorted(report.fixes_by_category.items()):
            table.add_row(category, str(count))
        console.print(table)

    if report.unresolved:
        table = Table(title="\nUnresolved Failures")
        table.add_column("Category", style="red")
        table.add_column("Check", style="cyan")
        table.add_column("Last Detail", style="dim")
        for item in report.unresolved:
            table.add_row(item.category.value, escape(item.check_name), escape(item.last_detail or "-"))
        console.print(table)

    if verbose and report.history:
        console.print("\n[bold]Iteration History:[/bold]")
        for record in report.history:
            for line in format_record_lines(record):
                console.print(f"  {escape(line)}")


if __name__ == "__main__":
    main()
