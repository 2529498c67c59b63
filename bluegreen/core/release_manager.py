"""Timestamp-keyed, immutable release store with an atomic ``current`` pointer.

Storage layout::

    {install_dir}/releases/release-<id>/app.jar
    {install_dir}/releases/release-<id>/sbom.json     (optional)
    {install_dir}/checksums/<id>.sha256               (sha256sum format)
    {install_dir}/current -> releases/release-<id>

Releases are never modified after creation. The only delete path is the
retention policy, which always exempts the current pointer's target.
"""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from bluegreen.core.errors import PreconditionError
from bluegreen.core.hasher import (
    format_checksum_line,
    parse_checksum_line,
    sha256_file,
)
from bluegreen.models.layout import HostLayout
from bluegreen.models.releases import Release

logger = logging.getLogger(__name__)

ARTIFACT_NAME = "app.jar"
SBOM_NAME = "sbom.json"
RELEASE_PREFIX = "release-"
RELEASE_ID_FORMAT = "%Y%m%d%H%M%S"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sort_key(release_id: str) -> tuple[str, int]:
    """Order ids by timestamp, then by collision suffix (``-1``, ``-2``, ...)."""
    root, _, suffix = release_id.partition("-")
    return root, int(suffix) if suffix.isdigit() else 0


def atomic_write_text(path: Path, text: str) -> None:
    """Write *text* to a sibling temp file, then rename it over *path*."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
    tmp.write_text(text, encoding="utf-8")
    os.replace(tmp, path)


def atomic_symlink(link: Path, target: Path | str) -> None:
    """Point *link* at *target* by renaming a fresh symlink over it."""
    link = Path(link)
    tmp = link.with_name(f".{link.name}.{uuid.uuid4().hex[:8]}.tmp")
    os.symlink(str(target), tmp)
    os.replace(tmp, link)


class ReleaseManager:
    """Creates, lists, points at and prunes releases.

    Parameters
    ----------
    layout:
        Host paths for the application.
    clock:
        Returns the current UTC time; injectable for deterministic ids.
    """

    def __init__(
        self,
        layout: HostLayout,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._layout = layout
        self._clock = clock

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_release(self, artifact: Path, sbom: Path | None = None) -> Release:
        """Copy *artifact* (and optional *sbom*) into a new release dir.

        Raises ``PreconditionError`` before touching the filesystem when the
        artifact is missing.
        """
        artifact = Path(artifact)
        if not artifact.is_file():
            raise PreconditionError(f"Build artifact not found: {artifact}")

        release_id = self._next_release_id()
        release_dir = self._layout.releases_dir / f"{RELEASE_PREFIX}{release_id}"
        release_dir.mkdir(parents=True, exist_ok=False)

        target = release_dir / ARTIFACT_NAME
        shutil.copy2(artifact, target)
        target.chmod(0o444)

        sbom_target: Path | None = None
        if sbom is not None and Path(sbom).is_file():
            sbom_target = release_dir / SBOM_NAME
            shutil.copy2(sbom, sbom_target)
            sbom_target.chmod(0o444)

        digest = sha256_file(target)
        atomic_write_text(
            self._checksum_path(release_id),
            format_checksum_line(digest, ARTIFACT_NAME),
        )
        logger.info(
            "Created release %s (sha256=%s, sbom=%s)",
            release_id,
            digest[:12],
            "present" if sbom_target else "absent",
        )
        return Release(
            release_id=release_id,
            path=release_dir,
            artifact_path=target,
            checksum=digest,
            sbom_path=sbom_target,
        )

    def _next_release_id(self) -> str:
        """Timestamp id, suffixed so ids stay unique and strictly increasing."""
        base = self._clock().strftime(RELEASE_ID_FORMAT)
        ids = self._release_ids()
        if not ids:
            return base
        latest_root, latest_suffix = _sort_key(ids[-1])
        if base > latest_root:
            return base
        return f"{latest_root}-{latest_suffix + 1}"

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def _release_ids(self) -> list[str]:
        releases_dir = self._layout.releases_dir
        if not releases_dir.is_dir():
            return []
        ids = [
            p.name.removeprefix(RELEASE_PREFIX)
            for p in releases_dir.iterdir()
            if p.is_dir() and p.name.startswith(RELEASE_PREFIX)
        ]
        return sorted(ids, key=_sort_key)

    def _checksum_path(self, release_id: str) -> Path:
        return self._layout.checksums_dir / f"{release_id}.sha256"

    def _load(self, release_id: str) -> Release:
        release_dir = self._layout.releases_dir / f"{RELEASE_PREFIX}{release_id}"
        checksum = ""
        checksum_file = self._checksum_path(release_id)
        if checksum_file.is_file():
            checksum, _ = parse_checksum_line(checksum_file.read_text(encoding="utf-8"))
        sbom = release_dir / SBOM_NAME
        return Release(
            release_id=release_id,
            path=release_dir,
            artifact_path=release_dir / ARTIFACT_NAME,
            checksum=checksum,
            sbom_path=sbom if sbom.is_file() else None,
        )

    def list_releases(self) -> list[Release]:
        """All releases, oldest first."""
        return [self._load(rid) for rid in self._release_ids()]

    def current_release(self) -> Release | None:
        """The release the ``current`` symlink resolves to, if any."""
        link = self._layout.current_link
        if not link.is_symlink():
            return None
        target = link.resolve()
        if not target.is_dir():
            logger.warning("current pointer is dangling: %s", os.readlink(link))
            return None
        return self._load(target.name.removeprefix(RELEASE_PREFIX))

    def previous_release(self) -> Release | None:
        """Most recent release that is not the current pointer's target."""
        current = self.current_release()
        current_id = current.release_id if current else None
        for rid in reversed(self._release_ids()):
            if rid != current_id:
                return self._load(rid)
        return None

    # ------------------------------------------------------------------
    # Pointer
    # ------------------------------------------------------------------

    def point_current(self, release: Release) -> None:
        """Atomically redirect ``current`` to *release*."""
        if not release.path.is_dir():
            raise PreconditionError(f"Release directory missing: {release.path}")
        relative = Path(self._layout.releases_dir.name) / release.path.name
        atomic_symlink(self._layout.current_link, relative)
        logger.info("current -> %s", relative)

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------

    def prune(self, keep: int) -> list[str]:
        """Delete the oldest releases beyond *keep*; returns removed ids.

        The current pointer's target is never removed.
        """
        if keep < 1:
            raise ValueError("keep must be >= 1")
        current = self.current_release()
        current_id = current.release_id if current else None

        ids = self._release_ids()
        survivors = set(ids[-keep:])
        removed: list[str] = []
        for rid in ids:
            if rid in survivors or rid == current_id:
                continue
            shutil.rmtree(self._layout.releases_dir / f"{RELEASE_PREFIX}{rid}")
            self._checksum_path(rid).unlink(missing_ok=True)
            removed.append(rid)

        if removed:
            logger.info("Pruned %d release(s): %s", len(removed), ", ".join(removed))
        return removed

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_checksum(self, release: Release) -> bool:
        """Re-hash the release artifact and compare against the checksum file."""
        checksum_file = self._checksum_path(release.release_id)
        if not checksum_file.is_file() or not release.artifact_path.is_file():
            return False
        recorded, _ = parse_checksum_line(checksum_file.read_text(encoding="utf-8"))
        return sha256_file(release.artifact_path) == recorded
