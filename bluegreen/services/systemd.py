"""Service Controller — one systemd template unit, one instance per port.

The unit ``<app>@.service`` is parameterized by installation path,
environment file and current pointer; the port arrives as the instance
name (``<app>@8081``). Supervision is delegated entirely to systemd's
``Restart=always`` policy.
"""

from __future__ import annotations

import logging
from textwrap import dedent

from bluegreen.core.release_manager import ARTIFACT_NAME, atomic_write_text
from bluegreen.core.runner import CommandRunner
from bluegreen.models.layout import HostLayout

logger = logging.getLogger(__name__)

JOURNAL_LINES = 200


def render_unit_template(layout: HostLayout, user: str) -> str:
    """Render the ``<app>@.service`` template unit."""
    current = layout.current_link
    return dedent(f"""\
        [Unit]
        Description={layout.app_name} instance on port %i
        Wants=network-online.target
        After=network-online.target

        [Service]
        Type=simple
        User={user}
        EnvironmentFile={layout.env_file}
        WorkingDirectory={current}
        ExecStart=/usr/bin/java $JAVA_OPTS -jar {current / ARTIFACT_NAME} --server.port=%i
        SuccessExitStatus=143
        Restart=always
        RestartSec=2
        NoNewPrivileges=true
        PrivateTmp=true

        [Install]
        WantedBy=multi-user.target
        """)


def render_env_file(java_opts: str, spring_profile: str) -> str:
    """Render the environment file consumed by the unit."""
    return (
        f'JAVA_OPTS="{java_opts}"\n'
        f"SPRING_PROFILES_ACTIVE={spring_profile}\n"
    )


class ServiceController:
    """Installs the unit template and drives instances through systemctl.

    Parameters
    ----------
    layout:
        Host paths for the application.
    runner:
        External command collaborator.
    """

    def __init__(self, layout: HostLayout, runner: CommandRunner) -> None:
        self._layout = layout
        self._runner = runner

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    def install(self, *, user: str, java_opts: str, spring_profile: str) -> None:
        """Write the env file and unit template, then ``daemon-reload``."""
        atomic_write_text(self._layout.env_file, render_env_file(java_opts, spring_profile))
        atomic_write_text(
            self._layout.unit_template, render_unit_template(self._layout, user)
        )
        self._runner.run(["systemctl", "daemon-reload"])
        logger.info("Installed unit template %s", self._layout.unit_template)

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def is_active(self, port: int) -> bool:
        result = self._runner.run(
            ["systemctl", "is-active", "--quiet", self._layout.unit_name(port)],
            check=False,
        )
        return result.ok

    def ensure_running(self, port: int) -> str:
        """Start the instance if stopped, restart it if running.

        Returns the action taken (``"started"`` or ``"restarted"``).
        """
        unit = self._layout.unit_name(port)
        self._runner.run(["systemctl", "enable", unit])
        if self.is_active(port):
            self._runner.run(["systemctl", "restart", unit])
            action = "restarted"
        else:
            self._runner.run(["systemctl", "start", unit])
            action = "started"
        logger.info("%s %s", action.capitalize(), unit)
        return action

    def stop(self, port: int, *, disable: bool = True) -> None:
        unit = self._layout.unit_name(port)
        self._runner.run(["systemctl", "stop", unit], check=False)
        if disable:
            self._runner.run(["systemctl", "disable", unit], check=False)
        logger.info("Stopped %s", unit)

    def journal_tail(self, port: int, lines: int = JOURNAL_LINES) -> str:
        """Last *lines* lines of the instance's journal (best-effort)."""
        result = self._runner.run(
            [
                "journalctl", "-u", self._layout.unit_name(port),
                "-n", str(lines), "--no-pager",
            ],
            check=False,
        )
        return result.stdout if result.ok else result.stderr

    def list_instances(self) -> list[str]:
        """All loaded ``<app>@*.service`` units, active or not."""
        result = self._runner.run(
            [
                "systemctl", "list-units", "--all", "--no-legend", "--plain",
                f"{self._layout.app_name}@*.service",
            ],
            check=False,
        )
        if not result.ok:
            return []
        return [line.split()[0] for line in result.stdout.splitlines() if line.strip()]
