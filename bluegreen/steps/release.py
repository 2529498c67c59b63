"""Release steps: publish a new release, or select one to roll back to."""

from __future__ import annotations

from typing import Any

from bluegreen.core.errors import PreconditionError
from bluegreen.steps.base import BaseStep
from bluegreen.steps.context import RunContext


class ReleaseStep(BaseStep):
    """Create the release, move ``current`` to it, then apply retention."""

    @property
    def step_id(self) -> str:
        return "release"

    @property
    def display_name(self) -> str:
        return "Release Manager"

    def execute(self, context: RunContext) -> dict[str, Any]:
        if context.build is None:
            raise PreconditionError("No build output to release")
        releases = context.tools.releases
        release = releases.create_release(context.build.artifact, context.build.sbom)
        releases.point_current(release)
        pruned = releases.prune(context.settings.keep_releases)
        context.release = release
        return {
            "detail": release.name,
            "release": release.name,
            "sha256": release.checksum,
            "pruned": pruned,
        }


class SelectReleaseStep(BaseStep):
    """Rollback: repoint ``current`` at the most recent other release."""

    @property
    def step_id(self) -> str:
        return "select_release"

    @property
    def display_name(self) -> str:
        return "Rollback Controller"

    def execute(self, context: RunContext) -> dict[str, Any]:
        releases = context.tools.releases
        current = releases.current_release()
        candidate = releases.previous_release()
        if candidate is None:
            raise PreconditionError("No previous release to roll back to")
        if not releases.verify_checksum(candidate):
            raise PreconditionError(
                f"Checksum mismatch for {candidate.name}; refusing to roll back"
            )
        releases.point_current(candidate)
        context.release = candidate
        return {
            "detail": f"{current.name if current else '-'} -> {candidate.name}",
            "from": current.name if current else None,
            "to": candidate.name,
        }
