"""Release and persisted-state models (immutable snapshots)."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict


class Release(BaseModel):
    """One immutable build output living under ``releases/release-<id>``.

    Never mutated after creation; removed only by the retention policy.
    """

    model_config = ConfigDict(frozen=True)

    release_id: str  # UTC timestamp, e.g. "20261019143005" (or "...-1" on collision)
    path: Path
    artifact_path: Path
    checksum: str  # sha256 hex of the artifact
    sbom_path: Path | None = None

    @property
    def name(self) -> str:
        return self.path.name


class DeployState(BaseModel):
    """Snapshot of the on-disk state record read at process start."""

    model_config = ConfigDict(frozen=True)

    active_port: int | None = None
    canary_port: int | None = None  # set while a canary window is open
    current_release: str | None = None  # release dir name, e.g. "release-2026..."

    @property
    def canary_open(self) -> bool:
        return self.canary_port is not None
