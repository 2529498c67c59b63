"""Main Typer application — imports and registers all CLI commands.

Entry point: ``bluegreen`` (configured via pyproject.toml scripts).

Every option has an environment variable counterpart; the options only
override what the environment says.
"""

from __future__ import annotations

import typer

from bluegreen.cli.commands.deploy import deploy_cmd, promote_cmd, rollback_cmd
from bluegreen.cli.commands.destroy import destroy_cmd
from bluegreen.cli.commands.status import history_cmd, status_cmd

app = typer.Typer(
    name="bluegreen",
    help="bluegreen: blue/green Spring Boot deploys behind Nginx on a single host.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="deploy", help="Build, release and cut over to the new release.")(deploy_cmd)
app.command(name="rollback", help="Roll back to the previous release.")(rollback_cmd)
app.command(name="promote", help="Promote an open canary window to 100%.")(promote_cmd)
app.command(name="destroy", help="Remove everything the deploy created.")(destroy_cmd)
app.command(name="status", help="Show active port, canary window and releases.")(status_cmd)
app.command(name="history", help="List audit manifests.")(history_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
