"""External command execution — the single seam to the host's tools.

Every call to ``systemctl``, ``nginx``, ``certbot``, ``apt-get``, ``mvn`` and
friends goes through a ``CommandRunner``. Production uses
``SubprocessRunner``; tests substitute a recording fake.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from bluegreen.core.errors import CommandError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600.0


class CommandResult(BaseModel):
    """Captured result of one external command."""

    model_config = ConfigDict(frozen=True)

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@runtime_checkable
class CommandRunner(Protocol):
    """Protocol for external command backends."""

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run *argv* and return its result.

        Raises ``CommandError`` when *check* is true and the command exits
        non-zero. With *check* false a missing executable comes back as
        ``returncode=127`` and a timeout as ``124``.
        """
        ...

    def which(self, name: str) -> str | None:
        """Return the path of an executable on PATH, or ``None``."""
        ...


class SubprocessRunner:
    """Runs commands on the local host via ``subprocess.run``."""

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT) -> None:
        self._default_timeout = default_timeout

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        cmd = [str(a) for a in argv]
        logger.debug("$ %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                cwd=str(cwd) if cwd else None,
                timeout=timeout or self._default_timeout,
            )
        except FileNotFoundError as exc:
            result = CommandResult(argv=cmd, returncode=127, stderr=str(exc))
        except subprocess.TimeoutExpired as exc:
            result = CommandResult(
                argv=cmd, returncode=124, stderr=f"timed out after {exc.timeout}s"
            )
        else:
            result = CommandResult(
                argv=cmd,
                returncode=proc.returncode,
                stdout=proc.stdout or "",
                stderr=proc.stderr or "",
            )
        if check and not result.ok:
            logger.error("Command failed (rc=%d): %s", result.returncode, " ".join(cmd))
            raise CommandError(cmd, result.returncode, result.stderr)
        return result

    def which(self, name: str) -> str | None:
        return shutil.which(name)
