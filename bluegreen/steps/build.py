"""Build steps: scaffold the project, package the jar, scan the SBOM."""

from __future__ import annotations

from typing import Any, ClassVar

from bluegreen.core.errors import PreconditionError
from bluegreen.services.scaffold import ProjectSpec
from bluegreen.steps.base import BaseStep
from bluegreen.steps.context import RunContext


class ScaffoldStep(BaseStep):
    @property
    def step_id(self) -> str:
        return "scaffold"

    @property
    def display_name(self) -> str:
        return "Project Scaffolder"

    def execute(self, context: RunContext) -> dict[str, Any]:
        settings = context.settings
        spec = ProjectSpec(
            artifact_id=settings.app_name,
            group_id=settings.group_id,
            package=settings.package,
            boot_version=settings.boot_version,
            java_release=settings.java_release,
        )
        project_dir, source = context.tools.scaffolder.scaffold(spec)
        context.project_dir = project_dir
        return {"detail": f"{source} scaffold", "project_dir": str(project_dir)}


class BuildStep(BaseStep):
    @property
    def step_id(self) -> str:
        return "build"

    @property
    def display_name(self) -> str:
        return "Builder"

    def execute(self, context: RunContext) -> dict[str, Any]:
        if context.project_dir is None:
            raise PreconditionError("No project directory to build")
        output = context.tools.builder.build(context.project_dir)
        context.build = output
        return {
            "detail": output.artifact.name,
            "artifact": str(output.artifact),
            "sbom": str(output.sbom) if output.sbom else None,
        }


class ScanStep(BaseStep):
    """Vulnerability scan of the SBOM; reported, never gating."""

    best_effort: ClassVar[bool] = True

    @property
    def step_id(self) -> str:
        return "scan"

    @property
    def display_name(self) -> str:
        return "SBOM Scan"

    def skip_reason(self, context: RunContext) -> str | None:
        if context.build is None or context.build.sbom is None:
            return "no SBOM generated"
        if context.tools.runner.which("grype") is None:
            return "grype not installed"
        return None

    def execute(self, context: RunContext) -> dict[str, Any]:
        sbom = context.build.sbom if context.build else None
        report = context.tools.builder.scan(sbom)
        return {"detail": report.summary, "scanned": report.scanned}
