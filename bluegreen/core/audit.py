"""Audit Recorder — one JSON manifest per completed deploy.

Manifests are append-only: a new file per run under ``audit/``, never
rewritten. Tool versions are collected best-effort and fall back to
``"unknown"``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from bluegreen.core.hasher import sha256_file_or_empty
from bluegreen.core.runner import CommandRunner
from bluegreen.models.audit import AuditManifest
from bluegreen.models.layout import HostLayout
from bluegreen.models.releases import Release

logger = logging.getLogger(__name__)

MANIFEST_PREFIX = "manifest-"
MANIFEST_STAMP_FORMAT = "%Y%m%d%H%M%S"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _manifest_key(path: Path) -> tuple[str, int]:
    stamp, _, suffix = path.stem.removeprefix(MANIFEST_PREFIX).partition("-")
    return stamp, int(suffix) if suffix.isdigit() else 0


class AuditRecorder:
    """Writes and lists ``audit/manifest-<timestamp>.json`` files.

    Parameters
    ----------
    layout:
        Host paths for the application.
    runner:
        Used for ``java -version`` and ``nginx -v``.
    clock:
        Returns the current UTC time.
    """

    def __init__(
        self,
        layout: HostLayout,
        runner: CommandRunner,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._layout = layout
        self._runner = runner
        self._clock = clock

    # ------------------------------------------------------------------
    # Tool versions
    # ------------------------------------------------------------------

    def java_version(self) -> str:
        """First line of ``java -version`` (printed on stderr)."""
        result = self._runner.run(["java", "-version"], check=False)
        text = (result.stderr or result.stdout).strip()
        if not result.ok or not text:
            return "unknown"
        return text.splitlines()[0]

    def nginx_version(self) -> str:
        result = self._runner.run(["nginx", "-v"], check=False)
        text = (result.stderr or result.stdout).strip()
        if not result.ok or not text:
            return "unknown"
        return text.splitlines()[0].removeprefix("nginx version: ")

    # ------------------------------------------------------------------
    # Record
    # ------------------------------------------------------------------

    def build_manifest(
        self, release: Release, active_port: int, now: datetime | None = None
    ) -> AuditManifest:
        now = now or self._clock()
        return AuditManifest(
            timestamp=now.isoformat(timespec="seconds"),
            app=self._layout.app_name,
            active_port=active_port,
            release=release.name,
            jar_sha256=release.checksum or sha256_file_or_empty(release.artifact_path),
            sbom="present" if release.sbom_path is not None else "absent",
            nginx_site_sha256=sha256_file_or_empty(self._layout.nginx_site),
            systemd_unit_sha256=sha256_file_or_empty(self._layout.unit_template),
            java_version=self.java_version(),
            nginx_version=self.nginx_version(),
        )

    def record(self, release: Release, active_port: int) -> Path:
        """Write a new manifest and return its path.

        An existing manifest with the same timestamp is never overwritten;
        the new file gets a ``-N`` suffix instead.
        """
        now = self._clock()
        manifest = self.build_manifest(release, active_port, now)
        audit_dir = self._layout.audit_dir
        audit_dir.mkdir(parents=True, exist_ok=True)

        stamp = now.strftime(MANIFEST_STAMP_FORMAT)
        path = audit_dir / f"{MANIFEST_PREFIX}{stamp}.json"
        n = 1
        while path.exists():
            path = audit_dir / f"{MANIFEST_PREFIX}{stamp}-{n}.json"
            n += 1

        # exclusive create: never clobber
        with path.open("x", encoding="utf-8") as fh:
            json.dump(manifest.model_dump(), fh, indent=2)
            fh.write("\n")
        logger.info("Wrote audit manifest %s", path.name)
        return path

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def list_manifests(self) -> list[tuple[Path, AuditManifest]]:
        """All manifests, oldest first. Unreadable files are skipped with a warning."""
        audit_dir = self._layout.audit_dir
        if not audit_dir.is_dir():
            return []
        entries: list[tuple[Path, AuditManifest]] = []
        paths = sorted(audit_dir.glob(f"{MANIFEST_PREFIX}*.json"), key=_manifest_key)
        for path in paths:
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                entries.append((path, AuditManifest.model_validate(data)))
            except (OSError, ValueError) as exc:
                logger.warning("Skipping unreadable manifest %s: %s", path.name, exc)
        return entries
