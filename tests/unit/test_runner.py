"""Tests for SubprocessRunner against the real host.

A PATH pointing at an empty directory stands in for a host where a tool is
not installed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from bluegreen.core.audit import AuditRecorder
from bluegreen.core.destroyer import Destroyer
from bluegreen.core.errors import CommandError
from bluegreen.core.runner import SubprocessRunner
from bluegreen.models.layout import HostLayout
from bluegreen.models.releases import Release
from bluegreen.services.systemd import ServiceController


@pytest.fixture
def bare_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Point PATH at an empty directory for the duration of the test."""
    empty = tmp_path / "empty-bin"
    empty.mkdir()
    monkeypatch.setenv("PATH", str(empty))
    return empty


class TestSubprocessRunner:
    def test_missing_executable_without_check(self, bare_path: Path):
        result = SubprocessRunner().run(["java", "-version"], check=False)
        assert result.returncode == 127
        assert not result.ok
        assert "java" in result.stderr

    def test_missing_executable_with_check(self, bare_path: Path):
        with pytest.raises(CommandError) as excinfo:
            SubprocessRunner().run(["java", "-version"])
        assert excinfo.value.returncode == 127

    def test_which_misses(self, bare_path: Path):
        assert SubprocessRunner().which("nginx") is None

    def test_timeout_without_check(self):
        result = SubprocessRunner().run(["sleep", "5"], check=False, timeout=0.05)
        assert result.returncode == 124
        assert "timed out" in result.stderr

    def test_timeout_with_check(self):
        with pytest.raises(CommandError) as excinfo:
            SubprocessRunner().run(["sleep", "5"], timeout=0.05)
        assert excinfo.value.returncode == 124


# ---------------------------------------------------------------------------
# Test: best-effort callers on a host without the tools
# ---------------------------------------------------------------------------


class TestMissingTools:
    def test_audit_versions_fall_back(self, bare_path: Path, layout: HostLayout, tmp_path: Path):
        release = Release(
            release_id="20261019120000",
            path=tmp_path / "release-20261019120000",
            artifact_path=tmp_path / "release-20261019120000" / "app.jar",
            checksum="ab" * 32,
        )
        recorder = AuditRecorder(
            layout,
            SubprocessRunner(),
            clock=lambda: datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc),
        )
        manifest = recorder.build_manifest(release, 8082)
        assert manifest.java_version == "unknown"
        assert manifest.nginx_version == "unknown"

    def test_journal_tail_reports_the_error(self, bare_path: Path, layout: HostLayout):
        tail = ServiceController(layout, SubprocessRunner()).journal_tail(8081)
        assert "journalctl" in tail

    def test_destroy_warns_instead_of_crashing(self, bare_path: Path, layout: HostLayout):
        layout.install_dir.mkdir(parents=True)
        summary = Destroyer(layout, SubprocessRunner(), (8081, 8082)).destroy()

        assert "systemctl daemon-reload failed" in summary.warnings
        assert summary.install_dir_removed
        assert not layout.install_dir.exists()
        assert not summary.nginx_reloaded
        assert not summary.user_removed
