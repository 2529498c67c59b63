"""Network Safety Guard — keeps remote access reachable around firewall work.

Policy is never tightened: the guard only adds ``allow`` rules, and only
when ufw is already active. The SSH port is checked before and after.
"""

from __future__ import annotations

import logging

from bluegreen.core.errors import PreconditionError
from bluegreen.core.runner import CommandRunner

logger = logging.getLogger(__name__)

WEB_PORTS: tuple[int, ...] = (80, 443)


class NetworkSafetyGuard:
    """Adds allow rules for SSH and web traffic, verifying SSH stays up."""

    def __init__(self, runner: CommandRunner, ssh_port: int = 22) -> None:
        self._runner = runner
        self._ssh_port = ssh_port

    def is_listening(self, port: int) -> bool:
        """True when something listens on TCP *port* (``ss -ltn``)."""
        result = self._runner.run(["ss", "-ltnH"], check=False)
        if not result.ok:
            return False
        for line in result.stdout.splitlines():
            fields = line.split()
            # State Recv-Q Send-Q Local:Port Peer:Port
            if len(fields) >= 4 and fields[3].rsplit(":", 1)[-1] == str(port):
                return True
        return False

    def ufw_active(self) -> bool:
        if self._runner.which("ufw") is None:
            return False
        result = self._runner.run(["ufw", "status"], check=False)
        return result.ok and "Status: active" in result.stdout

    def secure(self) -> dict[str, object]:
        """Run the guarded firewall pass.

        Returns a summary dict. Raises ``PreconditionError`` if SSH was
        listening before and is not afterwards.
        """
        ssh_before = self.is_listening(self._ssh_port)
        if not ssh_before:
            logger.warning(
                "Nothing listening on SSH port %d; continuing without firewall checks",
                self._ssh_port,
            )

        added: list[str] = []
        failed: list[str] = []
        if self.ufw_active():
            for port in (self._ssh_port, *WEB_PORTS):
                rule = f"{port}/tcp"
                result = self._runner.run(["ufw", "allow", rule], check=False)
                (added if result.ok else failed).append(rule)
            if failed:
                logger.warning("ufw allow failed for: %s", ", ".join(failed))
        else:
            logger.info("ufw inactive or absent; no firewall rules changed")

        ssh_after = self.is_listening(self._ssh_port)
        if ssh_before and not ssh_after:
            raise PreconditionError(
                f"SSH port {self._ssh_port} stopped listening during firewall changes"
            )
        return {
            "ssh_listening": ssh_after,
            "rules_added": added,
            "rules_failed": failed,
        }
