"""``bluegreen status`` and ``bluegreen history`` — read-only views of the host."""

from __future__ import annotations

import typer

from bluegreen.cli import runtime
from bluegreen.core.audit import AuditRecorder
from bluegreen.core.release_manager import ReleaseManager
from bluegreen.core.state_store import StateStore
from bluegreen.models.layout import HostLayout
from bluegreen.monitor.renderer import ReportRenderer


def status_cmd() -> None:
    """Show the active port, canary window and releases."""
    settings = runtime.load_settings()
    layout = HostLayout.from_settings(settings)
    state = StateStore(layout, settings.ports).load()
    releases = ReleaseManager(layout).list_releases()
    renderer = ReportRenderer(console=runtime.console)
    runtime.console.print(renderer.render_status(settings.app_name, state, releases))


def history_cmd(
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Newest manifests to show."),
) -> None:
    """List audit manifests, newest last."""
    settings = runtime.load_settings()
    layout = HostLayout.from_settings(settings)
    manifests = AuditRecorder(layout, runtime.make_runner()).list_manifests()
    if not manifests:
        runtime.console.print("[dim]No audit manifests recorded.[/dim]")
        return
    renderer = ReportRenderer(console=runtime.console)
    runtime.console.print(renderer.render_history(manifests[-limit:]))
