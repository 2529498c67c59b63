"""Builder — Maven package, SBOM generation and an optional vulnerability scan.

The jar build is mandatory. SBOM generation (CycloneDX) and the grype scan
are best effort: a failure is logged and the release simply carries no SBOM.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from bluegreen.core.errors import CommandError, PreconditionError
from bluegreen.core.runner import CommandRunner

logger = logging.getLogger(__name__)

CYCLONEDX_GOAL = "org.cyclonedx:cyclonedx-maven-plugin:makeAggregateBom"
SBOM_FILE = "bom.json"
_EXCLUDED_SUFFIXES = ("-sources.jar", "-javadoc.jar", "-tests.jar")


class BuildOutput(BaseModel):
    """Artifacts produced by one build."""

    model_config = ConfigDict(frozen=True)

    artifact: Path
    sbom: Path | None = None


class ScanReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    scanned: bool
    summary: str = ""


def find_artifact(target_dir: Path) -> Path:
    """Pick the executable jar from ``target/``.

    Raises ``PreconditionError`` when the build left no runnable jar.
    """
    candidates = sorted(
        p for p in target_dir.glob("*.jar")
        if p.is_file() and not p.name.endswith(_EXCLUDED_SUFFIXES)
    )
    if not candidates:
        raise PreconditionError(f"Build produced no jar in {target_dir}")
    if len(candidates) > 1:
        logger.warning(
            "Multiple jars in %s, using %s", target_dir, candidates[0].name
        )
    return candidates[0]


class Builder:
    """Runs Maven inside the scaffolded project directory."""

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def build(self, project_dir: Path) -> BuildOutput:
        """Package the project and try to produce an SBOM.

        Raises
        ------
        CommandError
            Maven exited non-zero.
        PreconditionError
            No jar was produced.
        """
        logger.info(">>> Building %s", project_dir)
        self._runner.run(
            ["mvn", "-q", "-DskipTests", "package"], cwd=project_dir, timeout=1800
        )
        artifact = find_artifact(project_dir / "target")
        sbom = self.generate_sbom(project_dir)
        return BuildOutput(artifact=artifact, sbom=sbom)

    def generate_sbom(self, project_dir: Path) -> Path | None:
        try:
            self._runner.run(["mvn", "-q", CYCLONEDX_GOAL], cwd=project_dir, timeout=900)
        except CommandError as exc:
            logger.warning("SBOM generation failed (continuing): %s", exc)
            return None
        sbom = project_dir / "target" / SBOM_FILE
        if not sbom.is_file():
            logger.warning("CycloneDX ran but %s is missing", sbom)
            return None
        return sbom

    def scan(self, sbom: Path | None) -> ScanReport:
        """Scan *sbom* with grype when it is installed. Never gates the deploy."""
        if sbom is None:
            return ScanReport(scanned=False, summary="no SBOM")
        if self._runner.which("grype") is None:
            return ScanReport(scanned=False, summary="grype not installed")
        result = self._runner.run(["grype", f"sbom:{sbom}"], check=False, timeout=600)
        if not result.ok:
            logger.warning("grype exited %d: %s", result.returncode, result.stderr.strip())
        lines = [ln for ln in result.stdout.splitlines() if ln.strip()]
        # header line plus one line per finding
        findings = max(len(lines) - 1, 0)
        return ScanReport(scanned=True, summary=f"{findings} findings")
