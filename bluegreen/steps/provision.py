"""Host provisioning steps: OS packages, service account, firewall safety."""

from __future__ import annotations

from typing import Any, ClassVar

from bluegreen.core.errors import PackageInstallError
from bluegreen.steps.base import BaseStep
from bluegreen.steps.context import RunContext


class DependenciesStep(BaseStep):
    """Installs missing packages and ensures the service account exists."""

    best_effort: ClassVar[bool] = True

    @property
    def step_id(self) -> str:
        return "dependencies"

    @property
    def display_name(self) -> str:
        return "Dependency Installer"

    def execute(self, context: RunContext) -> dict[str, Any]:
        installer = context.tools.installer
        report: dict[str, list[str]] = {"installed": [], "failed": []}
        if context.settings.install_deps:
            report = installer.install()
        created = installer.ensure_service_user(
            context.layout.app_name, context.layout.install_dir
        )
        if report["failed"]:
            raise PackageInstallError(report["failed"])
        detail = f"{len(report['installed'])} installed"
        if not context.settings.install_deps:
            detail = "package install disabled"
        return {
            "detail": detail,
            "installed": report["installed"],
            "user_created": created,
        }


class NetworkGuardStep(BaseStep):
    @property
    def step_id(self) -> str:
        return "network_guard"

    @property
    def display_name(self) -> str:
        return "Network Safety Guard"

    def execute(self, context: RunContext) -> dict[str, Any]:
        summary = context.tools.network.secure()
        rules = summary["rules_added"]
        detail = f"allowed {', '.join(rules)}" if rules else "no firewall changes"
        return {"detail": detail, **summary}
