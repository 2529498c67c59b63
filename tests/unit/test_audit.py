"""Tests for audit manifests."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from bluegreen.core.audit import AuditRecorder
from bluegreen.core.release_manager import ReleaseManager
from bluegreen.models.layout import HostLayout
from bluegreen.models.releases import Release

FIXED = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def release(layout: HostLayout, clock, make_artifact) -> Release:
    return ReleaseManager(layout, clock=clock).create_release(make_artifact(b"jar"))


class TestAuditRecorder:
    def test_manifest_contents(self, layout: HostLayout, fake_host, release: Release):
        recorder = AuditRecorder(layout, fake_host.runner, clock=lambda: FIXED)
        path = recorder.record(release, 8082)

        assert path.name == "manifest-20261019120000.json"
        data = json.loads(path.read_text())
        assert list(data) == [
            "timestamp", "app", "active_port", "release", "jar_sha256", "sbom",
            "nginx_site_sha256", "systemd_unit_sha256", "java_version", "nginx_version",
        ]
        assert data["timestamp"] == "2026-10-19T12:00:00+00:00"
        assert data["active_port"] == 8082
        assert data["release"] == release.name
        assert data["jar_sha256"] == release.checksum
        assert data["sbom"] == "absent"
        # neither the site nor the unit exist yet
        assert data["nginx_site_sha256"] == ""
        assert data["java_version"] == 'openjdk version "17.0.12" 2024-07-16'
        assert data["nginx_version"] == "nginx/1.24.0 (Ubuntu)"

    def test_same_second_never_overwrites(self, layout: HostLayout, fake_host, release: Release):
        recorder = AuditRecorder(layout, fake_host.runner, clock=lambda: FIXED)
        first = recorder.record(release, 8081)
        before = first.read_text()
        second = recorder.record(release, 8082)

        assert second.name == "manifest-20261019120000-1.json"
        assert first.read_text() == before
        assert [m.active_port for _, m in recorder.list_manifests()] == [8081, 8082]

    def test_missing_tools_report_unknown(self, layout: HostLayout, runner_with, release: Release):
        runner = runner_with()
        runner.uninstall("java", "nginx")
        manifest = AuditRecorder(layout, runner, clock=lambda: FIXED).build_manifest(release, 8081)
        assert manifest.java_version == "unknown"
        assert manifest.nginx_version == "unknown"

    def test_unreadable_manifest_skipped(self, layout: HostLayout, fake_host, release: Release):
        recorder = AuditRecorder(layout, fake_host.runner, clock=lambda: FIXED)
        recorder.record(release, 8081)
        (layout.audit_dir / "manifest-20260101000000.json").write_text("{not json")
        assert len(recorder.list_manifests()) == 1

    def test_no_audit_dir(self, layout: HostLayout, fake_runner):
        assert AuditRecorder(layout, fake_runner).list_manifests() == []
