"""Tests for project scaffolding and the Maven build."""

from __future__ import annotations

import io
import zipfile
from pathlib import Path

import httpx
import pytest

from bluegreen.core.errors import CommandError, PreconditionError
from bluegreen.services.build import CYCLONEDX_GOAL, Builder, find_artifact
from bluegreen.services.scaffold import INITIALIZR_URL, ProjectScaffolder, ProjectSpec

SPEC = ProjectSpec(artifact_id="demo")


def _zip(members: dict[str, str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, text in members.items():
            zf.writestr(name, text)
    return buf.getvalue()


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _props(project_dir: Path) -> str:
    return (project_dir / "src" / "main" / "resources" / "application.properties").read_text()


class TestProjectScaffolder:
    def test_initializr_archive_is_extracted(self, tmp_path: Path):
        archive = _zip({
            "demo/pom.xml": "<project/>",
            "demo/mvnw": "#!/bin/sh\n",
            "demo/src/main/resources/application.properties": "spring.application.name=demo",
        })
        seen: list[httpx.URL] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url)
            return httpx.Response(200, content=archive)

        project_dir, source = ProjectScaffolder(_client(handler), tmp_path).scaffold(SPEC)

        assert source == "initializr"
        assert str(seen[0]).startswith(INITIALIZR_URL)
        assert seen[0].params["bootVersion"] == "3.3.4"
        assert seen[0].params["dependencies"] == "web,actuator"
        assert (project_dir / "mvnw").stat().st_mode & 0o111
        props = _props(project_dir)
        assert props.startswith("spring.application.name=demo\n")
        assert "management.endpoints.web.exposure.include=health" in props

    def test_retries_without_boot_version(self, tmp_path: Path):
        archive = _zip({"demo/pom.xml": "<project/>"})
        seen: list[httpx.URL] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url)
            if "bootVersion" in request.url.params:
                return httpx.Response(400, text="unsupported boot version")
            return httpx.Response(200, content=archive)

        _, source = ProjectScaffolder(_client(handler), tmp_path).scaffold(SPEC)

        assert source == "initializr"
        assert len(seen) == 2
        assert "bootVersion" not in seen[1].params

    def test_unreachable_falls_back_to_local(self, tmp_path: Path):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        project_dir, source = ProjectScaffolder(_client(handler), tmp_path).scaffold(SPEC)

        assert source == "local"
        pom = (project_dir / "pom.xml").read_text()
        assert "<version>3.3.4</version>" in pom
        assert "spring-boot-starter-actuator" in pom
        assert (project_dir / "src/main/java/com/example/demo/DemoApplication.java").is_file()
        assert "exposure.include=health" in _props(project_dir)

    def test_zip_slip_rejected(self, tmp_path: Path):
        archive = _zip({"../evil.txt": "x", "demo/pom.xml": "<project/>"})
        workdir = tmp_path / "work"
        scaffolder = ProjectScaffolder(
            _client(lambda r: httpx.Response(200, content=archive)), workdir
        )

        _, source = scaffolder.scaffold(SPEC)

        assert source == "local"
        assert not (tmp_path / "evil.txt").exists()

    def test_regenerates_existing_project(self, tmp_path: Path):
        stale = tmp_path / "demo" / "stale.txt"
        stale.parent.mkdir()
        stale.write_text("old")
        ProjectScaffolder(_client(lambda r: httpx.Response(503)), tmp_path).scaffold(SPEC)
        assert not stale.exists()


class TestBuilder:
    def test_build_returns_jar_and_sbom(self, fake_host, tmp_path: Path):
        output = Builder(fake_host.runner).build(tmp_path)
        assert output.artifact.name == "demo-1.0.0.jar"
        assert output.sbom == tmp_path / "target" / "bom.json"
        assert fake_host.runner.cwds[0] == tmp_path

    def test_sbom_failure_is_not_fatal(self, fake_host, tmp_path: Path):
        fake_host.runner.on("mvn", "-q", CYCLONEDX_GOAL, returncode=1, stderr="plugin missing")
        output = Builder(fake_host.runner).build(tmp_path)
        assert output.sbom is None

    def test_maven_failure_propagates(self, fake_runner, tmp_path: Path):
        fake_runner.on("mvn", returncode=1, stderr="COMPILATION ERROR")
        with pytest.raises(CommandError):
            Builder(fake_runner).build(tmp_path)

    def test_find_artifact_skips_auxiliary_jars(self, tmp_path: Path):
        for name in ("demo-1.0.0-sources.jar", "demo-1.0.0-javadoc.jar", "demo-1.0.0.jar"):
            (tmp_path / name).write_bytes(b"x")
        assert find_artifact(tmp_path).name == "demo-1.0.0.jar"

    def test_find_artifact_requires_a_jar(self, tmp_path: Path):
        with pytest.raises(PreconditionError):
            find_artifact(tmp_path)

    def test_scan_skipped_without_grype(self, fake_runner, tmp_path: Path):
        report = Builder(fake_runner).scan(tmp_path / "bom.json")
        assert report.scanned is False
        assert "grype" in report.summary

    def test_scan_counts_findings(self, runner_with, tmp_path: Path):
        runner = runner_with("grype")
        runner.on("grype", stdout="NAME INSTALLED\nlib-a 1.0\nlib-b 2.0\n")
        report = Builder(runner).scan(tmp_path / "bom.json")
        assert report.scanned is True
        assert report.summary == "2 findings"
