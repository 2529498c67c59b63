"""``bluegreen destroy`` — remove everything a deploy created for the app.

SSH, firewall rules and installed packages are never touched.
"""

from __future__ import annotations

import typer
from rich.panel import Panel

from bluegreen.cli import runtime
from bluegreen.core.config_guard import ConfigGuardError, enforce_teardown_constraints
from bluegreen.core.destroyer import Destroyer
from bluegreen.models.layout import HostLayout


def destroy_cmd(
    clean_certs: bool = typer.Option(
        None,
        "--clean-certs/--keep-certs",
        help="Also delete the Let's Encrypt certificate (CLEAN_CERTS).",
        show_default=False,
    ),
    keep_backups: int = typer.Option(
        None,
        "--keep-backups",
        min=0,
        help="nginx.conf backups to keep; 0 removes the fresh one (KEEP_BACKUPS).",
        show_default=False,
    ),
    domain: str = typer.Option(
        None,
        "--domain",
        help="Certificate domain; detected from the site when omitted (DOMAIN).",
        show_default=False,
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Do not ask for confirmation."
    ),
) -> None:
    """Tear down the configured application."""
    settings = runtime.load_settings(
        clean_certs=clean_certs, keep_backups=keep_backups, domain=domain
    )
    runtime.configure_logging(settings.log_level)
    try:
        enforce_teardown_constraints(settings)
    except ConfigGuardError as exc:
        raise runtime.fail(str(exc)) from exc

    if not yes:
        typer.confirm(
            f"Remove {settings.app_name} (services, site, releases, env)?", abort=True
        )

    layout = HostLayout.from_settings(settings)
    summary = Destroyer(layout, runtime.make_runner(), settings.ports).destroy(
        domain=settings.domain,
        clean_certs=settings.clean_certs,
        keep_backups=settings.keep_backups,
    )

    lines = [
        f"[bold]Stopped:[/bold] {', '.join(summary.stopped_units) or '-'}",
        f"[bold]Unit template removed:[/bold] {summary.unit_template_removed}",
        f"[bold]Site removed:[/bold] {summary.site_removed}",
        f"[bold]Rate-limit zone removed:[/bold] {summary.rate_limit_removed}",
        f"[bold]Nginx reloaded:[/bold] {summary.nginx_reloaded}",
        f"[bold]Certificate deleted:[/bold] {summary.certificate_deleted}",
        f"[bold]Install dir removed:[/bold] {summary.install_dir_removed}",
        f"[bold]Service user removed:[/bold] {summary.user_removed}",
    ]
    for warning in summary.warnings:
        lines.append(f"[yellow]warning:[/yellow] {warning}")
    runtime.console.print(
        Panel("\n".join(lines), title=f"[bold]destroyed {summary.app}[/bold]", border_style="red")
    )
