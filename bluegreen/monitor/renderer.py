"""Rich terminal renderer for run reports, host status and audit history.

Color scheme
------------
- green     : SUCCEEDED
- yellow    : DEGRADED
- red       : FAILED
- bold red  : BLOCKED
- cyan      : SKIPPED
- dim       : NOT_STARTED
"""

from __future__ import annotations

from pathlib import Path

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from bluegreen.models.audit import AuditManifest
from bluegreen.models.releases import DeployState, Release
from bluegreen.models.report import RunReport
from bluegreen.models.steps import PLANS, StepState

# ---------------------------------------------------------------------------
# State -> Rich markup
# ---------------------------------------------------------------------------

_STATE_LABELS: dict[StepState, str] = {
    StepState.SUCCEEDED: "[green]OK[/green]",
    StepState.DEGRADED: "[yellow]DEGRADED[/yellow]",
    StepState.FAILED: "[bold red]FAILED[/bold red]",
    StepState.BLOCKED: "[bold red]BLOCKED[/bold red]",
    StepState.SKIPPED: "[cyan]SKIPPED[/cyan]",
    StepState.RUNNING: "[yellow]RUNNING[/yellow]",
    StepState.NOT_STARTED: "[dim]NOT STARTED[/dim]",
}


class ReportRenderer:
    """Renders bluegreen models as Rich renderables.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Run report
    # ------------------------------------------------------------------

    def render_report(self, report: RunReport) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=3, justify="right")
        table.add_column("Step", min_width=24)
        table.add_column("State", min_width=10, justify="center")
        table.add_column("Details", min_width=20)
        table.add_column("Time", justify="right", width=8)

        names = {d.step_id: d.display_name for d in PLANS.get(report.plan, [])}
        skip_reasons = {
            t.step_id: t.reason
            for t in report.transitions
            if t.to_state in (StepState.SKIPPED, StepState.BLOCKED)
        }

        for i, (step_id, state) in enumerate(report.states.items(), start=1):
            result = report.result_for(step_id)
            if result is not None:
                details = result.detail or "[dim]-[/dim]"
                elapsed = f"{result.duration_seconds:.1f}s"
            else:
                details = f"[dim]{skip_reasons.get(step_id) or '-'}[/dim]"
                elapsed = "[dim]-[/dim]"
            table.add_row(
                str(i),
                names.get(step_id, step_id),
                _STATE_LABELS.get(state, state.value),
                details,
                elapsed,
            )

        if report.succeeded:
            status = "[bold green]success[/bold green]"
        else:
            status = "[bold red]failed[/bold red]"
        summary = "  |  ".join([
            f"[bold]Plan:[/bold] {report.plan} ({report.mode})",
            f"[bold]Target:[/bold] {report.target_port or '-'}",
            f"[bold]Release:[/bold] {report.release or '-'}",
            f"[bold]Status:[/bold] {status}",
        ])
        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title="[bold]bluegreen run[/bold]",
            subtitle=f"Finished: {report.finished_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            border_style="green" if report.succeeded else "red",
            padding=(1, 2),
        )

    # ------------------------------------------------------------------
    # Host status
    # ------------------------------------------------------------------

    def render_status(
        self, app: str, state: DeployState, releases: list[Release]
    ) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Release", min_width=24)
        table.add_column("SHA-256", min_width=16)
        table.add_column("SBOM", justify="center")
        table.add_column("Current", justify="center")

        for release in reversed(releases):
            is_current = release.name == state.current_release
            table.add_row(
                f"[bold]{release.name}[/bold]" if is_current else release.name,
                release.checksum[:16] or "[dim]-[/dim]",
                "yes" if release.sbom_path else "[dim]no[/dim]",
                "[green]*[/green]" if is_current else "",
            )

        lines = [
            f"[bold]Active port:[/bold] {state.active_port or '[dim]none[/dim]'}",
            f"[bold]Current:[/bold] {state.current_release or '[dim]none[/dim]'}",
        ]
        if state.canary_open:
            lines.append(f"[yellow][bold]Canary window:[/bold] port {state.canary_port}[/yellow]")
        return Panel(
            Group(Text.from_markup("\n".join(lines)), Text(""), table),
            title=f"[bold]{app}[/bold]",
            border_style="blue",
            padding=(1, 2),
        )

    # ------------------------------------------------------------------
    # Audit history
    # ------------------------------------------------------------------

    def render_history(self, manifests: list[tuple[Path, AuditManifest]]) -> Table:
        table = Table(title="Audit manifests", header_style="bold cyan", expand=True)
        table.add_column("Timestamp")
        table.add_column("Release")
        table.add_column("Port", justify="right")
        table.add_column("JAR SHA-256")
        table.add_column("SBOM", justify="center")
        table.add_column("Java")
        for _, manifest in manifests:
            table.add_row(
                manifest.timestamp,
                manifest.release,
                str(manifest.active_port),
                manifest.jar_sha256[:16],
                manifest.sbom,
                manifest.java_version,
            )
        return table
