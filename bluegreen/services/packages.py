"""Dependency Installer — idempotent, best-effort apt package setup.

Also owns the dedicated service account the instances run as.
"""

from __future__ import annotations

import logging
from pathlib import Path

from bluegreen.core.runner import CommandRunner

logger = logging.getLogger(__name__)

REQUIRED_PACKAGES: tuple[str, ...] = (
    "openjdk-17-jdk",
    "maven",
    "nginx",
    "certbot",
    "python3-certbot-nginx",
    "openssh-server",
    "curl",
    "ca-certificates",
    "unzip",
)

APT_ENV_PREFIX = ["env", "DEBIAN_FRONTEND=noninteractive"]


class DependencyInstaller:
    """Installs missing OS packages and the service account."""

    def __init__(
        self,
        runner: CommandRunner,
        packages: tuple[str, ...] = REQUIRED_PACKAGES,
    ) -> None:
        self._runner = runner
        self._packages = packages

    def missing_packages(self) -> list[str]:
        missing = []
        for name in self._packages:
            result = self._runner.run(["dpkg", "-s", name], check=False)
            if not result.ok or "Status: install ok installed" not in result.stdout:
                missing.append(name)
        return missing

    def install(self) -> dict[str, list[str]]:
        """Install whatever is missing; one failing package never stops the rest.

        Returns ``{"installed": [...], "failed": [...]}``.
        """
        missing = self.missing_packages()
        if not missing:
            logger.info("All %d packages already installed", len(self._packages))
            return {"installed": [], "failed": []}

        logger.info("Installing: %s", " ".join(missing))
        update = self._runner.run(APT_ENV_PREFIX + ["apt-get", "update", "-y"], check=False)
        if not update.ok:
            logger.warning("apt-get update failed: %s", update.stderr.strip())

        installed: list[str] = []
        failed: list[str] = []
        for name in missing:
            result = self._runner.run(
                APT_ENV_PREFIX + ["apt-get", "install", "-y", "--no-install-recommends", name],
                check=False,
                timeout=900,
            )
            if result.ok:
                installed.append(name)
            else:
                logger.warning("apt-get install %s failed: %s", name, result.stderr.strip())
                failed.append(name)
        return {"installed": installed, "failed": failed}

    # ------------------------------------------------------------------
    # Service account
    # ------------------------------------------------------------------

    def user_home(self, user: str) -> str | None:
        """Home directory of *user* from the passwd database, or None."""
        result = self._runner.run(["getent", "passwd", user], check=False)
        if not result.ok or not result.stdout.strip():
            return None
        fields = result.stdout.strip().splitlines()[0].split(":")
        return fields[5] if len(fields) > 5 else None

    def ensure_service_user(self, user: str, home: Path) -> bool:
        """Create a nologin system user with *home*; True when created."""
        if self.user_home(user) is not None:
            return False
        self._runner.run(
            [
                "useradd", "--system",
                "--home-dir", str(home),
                "--no-create-home",
                "--shell", "/usr/sbin/nologin",
                user,
            ]
        )
        logger.info("Created service user %s (home %s)", user, home)
        return True
