"""Shared plumbing for CLI commands: settings, logging, collaborators, exit codes."""

from __future__ import annotations

import logging
from typing import Any

import httpx
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from bluegreen.config import DeploySettings
from bluegreen.core.config_guard import ConfigGuardError
from bluegreen.core.orchestrator import Orchestrator
from bluegreen.core.runner import CommandRunner, SubprocessRunner
from bluegreen.models.report import RunReport
from bluegreen.monitor.renderer import ReportRenderer

console = Console()
err_console = Console(stderr=True)


def load_settings(**overrides: Any) -> DeploySettings:
    """Settings from the environment, with non-``None`` CLI overrides applied."""
    return DeploySettings(**{k: v for k, v in overrides.items() if v is not None})


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, markup=False)],
        force=True,
    )


def make_runner() -> CommandRunner:
    return SubprocessRunner()


def make_http() -> httpx.Client:
    return httpx.Client(follow_redirects=True)


def fail(message: str, code: int = 1) -> typer.Exit:
    """Print a ``!!!`` line and return the Exit to raise."""
    err_console.print(f"[bold red]!!! {escape(message)}[/bold red]")
    return typer.Exit(code=code)


def print_failure(report: RunReport) -> None:
    failed = report.failed_step
    if failed is None:
        return
    log_tail = failed.data.get("log_tail")
    if log_tail:
        err_console.print("[bold]--- service log (tail) ---[/bold]")
        err_console.print(escape(log_tail), highlight=False)


def run_plan(settings: DeploySettings, plan: str | None = None) -> RunReport:
    """Run a plan, render the report, and exit 1 on a fatal step."""
    configure_logging(settings.log_level)
    with make_http() as http:
        try:
            orchestrator = Orchestrator(settings, runner=make_runner(), http=http)
        except ConfigGuardError as exc:
            raise fail(str(exc)) from exc
        report = orchestrator.run(plan)

    console.print(ReportRenderer(console=console).render_report(report))
    failed = report.failed_step
    if failed is not None:
        print_failure(report)
        raise fail(f"{failed.step_id} failed: {failed.detail}")
    return report
