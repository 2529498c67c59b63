"""Configuration guard — validates settings once before any step runs.

Collects every violation and raises a single ``ConfigGuardError`` so the
operator sees the whole list at once. Nothing on the host is touched until
the guard passes.
"""

from __future__ import annotations

import logging
import os
import re

from bluegreen.config import DeploySettings
from bluegreen.core.errors import DeployError

logger = logging.getLogger(__name__)

_APP_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9._-]*$")
_RATE_RE = re.compile(r"^\d+r/[sm]$")


class ConfigGuardError(DeployError):
    """Raised when deploy configuration constraints are violated.

    The process must exit; it is never downgraded to a warning.
    """


def _root_violation(settings: DeploySettings) -> str | None:
    if settings.require_root and os.geteuid() != 0:
        return "Must run as root (set REQUIRE_ROOT=no to skip this check)."
    return None


def enforce_teardown_constraints(settings: DeploySettings) -> None:
    """Subset of the guard that applies to ``destroy``.

    The app name becomes a path that is removed recursively, so it is
    checked here too; deploy-only settings are not.
    """
    violations: list[str] = []
    if not _APP_NAME_RE.match(settings.app_name):
        violations.append(f"APP_NAME={settings.app_name!r} is not a valid application name.")
    if settings.keep_backups < 0:
        violations.append(f"KEEP_BACKUPS={settings.keep_backups} must be >= 0.")
    root_violation = _root_violation(settings)
    if root_violation:
        violations.append(root_violation)
    if violations:
        msg = "Configuration guard failed.\n" + "\n".join(f"  - {v}" for v in violations)
        logger.critical(msg)
        raise ConfigGuardError(msg)


def enforce_config_constraints(settings: DeploySettings) -> None:
    """Validate all deploy configuration constraints.

    Constraints enforced
    --------------------
    1. APP_NAME is a safe unit/user/path component.
    2. BLUE_PORT and GREEN_PORT are distinct, valid TCP ports and not SSH.
    3. CANARY_PERCENT is within 0..100.
    4. KEEP_RELEASES >= 1 and KEEP_BACKUPS >= 0.
    5. RATE_LIMIT uses nginx syntax (``10r/s``, ``600r/m``).
    6. EMAIL is set whenever DOMAIN is.
    7. HEALTH_ATTEMPTS >= 1.
    8. Running as root when REQUIRE_ROOT is set.

    Raises
    ------
    ConfigGuardError
        If any constraint is violated.
    """
    violations: list[str] = []

    if not _APP_NAME_RE.match(settings.app_name):
        violations.append(
            f"APP_NAME={settings.app_name!r} must be lowercase letters, digits, '.', '_' or '-'."
        )

    for name, port in (("BLUE_PORT", settings.blue_port), ("GREEN_PORT", settings.green_port)):
        if not 1 <= port <= 65535:
            violations.append(f"{name}={port} is not a valid TCP port.")
        if port == settings.ssh_port:
            violations.append(f"{name}={port} collides with SSH_PORT.")
    if settings.blue_port == settings.green_port:
        violations.append("BLUE_PORT and GREEN_PORT must differ.")

    if not 0 <= settings.canary_percent <= 100:
        violations.append(
            f"CANARY_PERCENT={settings.canary_percent} must be between 0 and 100."
        )

    if settings.keep_releases < 1:
        violations.append(f"KEEP_RELEASES={settings.keep_releases} must be >= 1.")
    if settings.keep_backups < 0:
        violations.append(f"KEEP_BACKUPS={settings.keep_backups} must be >= 0.")

    if not _RATE_RE.match(settings.rate_limit):
        violations.append(
            f"RATE_LIMIT={settings.rate_limit!r} must look like '10r/s' or '600r/m'."
        )

    if settings.domain and not settings.email:
        violations.append("EMAIL is required when DOMAIN is set.")

    if settings.health_attempts < 1:
        violations.append(f"HEALTH_ATTEMPTS={settings.health_attempts} must be >= 1.")

    root_violation = _root_violation(settings)
    if root_violation:
        violations.append(root_violation)

    if violations:
        msg = "Configuration guard failed.\n" + "\n".join(f"  - {v}" for v in violations)
        logger.critical(msg)
        raise ConfigGuardError(msg)

    logger.debug("Configuration guard passed.")
