"""``bluegreen deploy`` — build, release and cut over (or roll back / promote).

With no options the plan is chosen from the environment: ``ROLLBACK=yes`` rolls back, ``PROMOTE=yes`` promotes an
open canary window, ``CANARY_PERCENT`` opens one.
"""

from __future__ import annotations

import typer

from bluegreen.cli import runtime


def deploy_cmd(
    rollback: bool = typer.Option(
        None,
        "--rollback/--no-rollback",
        help="Roll back to the previous release instead of building (ROLLBACK).",
        show_default=False,
    ),
    promote: bool = typer.Option(
        None,
        "--promote/--no-promote",
        help="Finalize an open canary window at 100% (PROMOTE).",
        show_default=False,
    ),
    canary: int = typer.Option(
        None,
        "--canary",
        min=0,
        max=100,
        help="Percent of traffic for the new release (CANARY_PERCENT).",
        show_default=False,
    ),
) -> None:
    """Run the deploy pipeline for the configured application."""
    settings = runtime.load_settings(
        rollback=rollback, promote=promote, canary_percent=canary
    )
    runtime.run_plan(settings)


def rollback_cmd() -> None:
    """Point ``current`` at the previous release and cut traffic back to it."""
    runtime.run_plan(runtime.load_settings(), "rollback")


def promote_cmd() -> None:
    """Send 100% of traffic to the canary and stop the old instance."""
    runtime.run_plan(runtime.load_settings(), "promote")
