"""Exception hierarchy shared by the deploy pipeline.

``DeployError`` is the root; steps translate these into ``StepResult``
outcomes and the CLI turns a fatal one into exit code 1.
"""

from __future__ import annotations

from collections.abc import Sequence


class DeployError(RuntimeError):
    """Base class for every expected deploy failure."""


class PreconditionError(DeployError):
    """A fatal precondition is not met (missing artifact, no prior release)."""


class CommandError(DeployError):
    """An external command exited non-zero or could not be started."""

    def __init__(
        self,
        argv: Sequence[str],
        returncode: int,
        stderr: str = "",
    ) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(
            f"Command failed (rc={returncode}): {' '.join(self.argv)}{detail}"
        )


class HealthCheckTimeout(DeployError):
    """The health gate ran out of attempts.

    ``log_tail`` holds the recent service journal for diagnostics.
    """

    def __init__(self, port: int, attempts: int, log_tail: str = "") -> None:
        self.port = port
        self.attempts = attempts
        self.log_tail = log_tail
        super().__init__(
            f"Instance on port {port} not healthy after {attempts} attempts"
        )


class PackageInstallError(DeployError):
    """One or more OS packages could not be installed."""

    def __init__(self, failed: Sequence[str]) -> None:
        self.failed = list(failed)
        super().__init__(f"Package install failed: {', '.join(self.failed)}")


class ProxyConfigError(DeployError):
    """``nginx -t`` rejected a change; the previous config was restored."""
