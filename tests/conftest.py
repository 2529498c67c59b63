"""Shared test fixtures for bluegreen.

Nothing here touches the real host: external commands go to a recording
``FakeRunner`` and HTTP to an ``httpx.MockTransport``. ``FakeHost`` layers
a tiny model of systemd, Maven and a health endpoint on top of both so the
pipeline can run end to end inside ``tmp_path``.
"""

from __future__ import annotations

import itertools
import json
from collections.abc import Callable, Iterator, Sequence
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import httpx
import pytest

from bluegreen.config import DeploySettings
from bluegreen.core.errors import CommandError
from bluegreen.core.runner import CommandResult
from bluegreen.models.layout import HostLayout
from bluegreen.services.build import CYCLONEDX_GOAL

APP = "demo"

NGINX_CONF = """\
user www-data;
worker_processes auto;

events {
    worker_connections 768;
}

http {
    sendfile on;
    include /etc/nginx/conf.d/*.conf;
    include /etc/nginx/sites-enabled/*;
}
"""

Effect = Callable[[list[str], Path | None], CommandResult | None]


# ---------------------------------------------------------------------------
# Fake command runner
# ---------------------------------------------------------------------------


class FakeRunner:
    """Records every argv and answers from scripted rules.

    Rules match on an argv prefix; the most recently added matching rule
    wins. Unmatched commands succeed with empty output.
    """

    def __init__(self, available: Sequence[str] = ("nginx", "certbot", "java", "mvn")) -> None:
        self.calls: list[list[str]] = []
        self.cwds: list[Path | None] = []
        self.available = set(available)
        self.absent: set[str] = set()
        self._rules: list[tuple[tuple[str, ...], dict[str, Any]]] = []

    def on(
        self,
        *prefix: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        effect: Effect | None = None,
    ) -> None:
        self._rules.append(
            (
                tuple(prefix),
                {"returncode": returncode, "stdout": stdout, "stderr": stderr, "effect": effect},
            )
        )

    def uninstall(self, *names: str) -> None:
        """Behave as SubprocessRunner does when *names* are not on PATH."""
        self.absent.update(names)
        self.available.difference_update(names)

    def run(
        self,
        argv: Sequence[str],
        *,
        check: bool = True,
        cwd: Path | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        cmd = [str(a) for a in argv]
        self.calls.append(cmd)
        self.cwds.append(cwd)

        if cmd[0] in self.absent:
            result = CommandResult(
                argv=cmd,
                returncode=127,
                stderr=f"[Errno 2] No such file or directory: '{cmd[0]}'",
            )
            if check:
                raise CommandError(cmd, result.returncode, result.stderr)
            return result

        rule: dict[str, Any] = {"returncode": 0, "stdout": "", "stderr": "", "effect": None}
        for prefix, candidate in reversed(self._rules):
            if tuple(cmd[: len(prefix)]) == prefix:
                rule = candidate
                break

        result = None
        if rule["effect"] is not None:
            result = rule["effect"](cmd, cwd)
        if result is None:
            result = CommandResult(
                argv=cmd,
                returncode=rule["returncode"],
                stdout=rule["stdout"],
                stderr=rule["stderr"],
            )
        if check and not result.ok:
            raise CommandError(cmd, result.returncode, result.stderr)
        return result

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.available else None

    # Query helpers -------------------------------------------------------

    def commands(self, *prefix: str) -> list[list[str]]:
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]

    def ran(self, *prefix: str) -> bool:
        return bool(self.commands(*prefix))


# ---------------------------------------------------------------------------
# Fake host: systemd + maven + health endpoint
# ---------------------------------------------------------------------------


class FakeHost:
    """Simulates just enough of an Ubuntu host for full pipeline runs."""

    def __init__(self, app: str = APP) -> None:
        self.app = app
        self.runner = FakeRunner()
        self.running: set[str] = set()
        self.enabled: set[str] = set()
        self.unhealthy_ports: set[int] = set()
        self.journal = "Started demo.\nApplication failed to start: port in use\n"
        self._builds = itertools.count(1)

        self.runner.on("systemctl", effect=self._systemctl)
        self.runner.on("journalctl", stdout=self.journal)
        self.runner.on("mvn", "-q", "-DskipTests", "package", effect=self._mvn_package)
        self.runner.on("mvn", "-q", CYCLONEDX_GOAL, effect=self._mvn_sbom)
        self.runner.on("ss", "-ltnH", stdout="LISTEN 0 128 0.0.0.0:22 0.0.0.0:*\n")
        self.runner.on("nginx", "-v", stderr="nginx version: nginx/1.24.0 (Ubuntu)\n")
        self.runner.on("java", "-version", stderr='openjdk version "17.0.12" 2024-07-16\n')

        self.http = self.client()

    def client(self) -> httpx.Client:
        """A fresh client backed by this host (the CLI closes its own)."""
        return httpx.Client(transport=httpx.MockTransport(self._handle))

    # systemctl -----------------------------------------------------------

    def _systemctl(self, cmd: list[str], cwd: Path | None) -> CommandResult | None:
        verb = cmd[1]
        unit = cmd[-1]
        if verb in ("start", "restart"):
            self.running.add(unit)
        elif verb == "stop":
            self.running.discard(unit)
        elif verb == "enable":
            self.enabled.add(unit)
        elif verb == "disable":
            self.enabled.discard(unit)
        elif verb == "is-active":
            return CommandResult(argv=cmd, returncode=0 if unit in self.running else 3)
        elif verb == "list-units":
            units = sorted(self.running | self.enabled)
            lines = [f"{u} loaded active running {self.app}" for u in units]
            return CommandResult(argv=cmd, returncode=0, stdout="\n".join(lines))
        return None

    def unit(self, port: int) -> str:
        return f"{self.app}@{port}.service"

    def is_running(self, port: int) -> bool:
        return self.unit(port) in self.running

    # maven ---------------------------------------------------------------

    def _mvn_package(self, cmd: list[str], cwd: Path | None) -> CommandResult | None:
        assert cwd is not None
        target = Path(cwd) / "target"
        target.mkdir(parents=True, exist_ok=True)
        n = next(self._builds)
        (target / f"{self.app}-1.0.0.jar").write_bytes(f"jar build {n}".encode())
        (target / f"{self.app}-1.0.0.jar.original").write_bytes(b"thin")
        return None

    def _mvn_sbom(self, cmd: list[str], cwd: Path | None) -> CommandResult | None:
        assert cwd is not None
        (Path(cwd) / "target" / "bom.json").write_text(json.dumps({"bomFormat": "CycloneDX"}))
        return None

    # http ----------------------------------------------------------------

    def _handle(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "start.spring.io":
            return httpx.Response(503, text="unavailable")
        port = request.url.port
        if port is not None and self.is_running(port) and port not in self.unhealthy_ports:
            return httpx.Response(200, json={"status": "UP"})
        raise httpx.ConnectError("connection refused", request=request)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's shell environment out of DeploySettings."""
    for name in DeploySettings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def runner_with() -> Callable[..., FakeRunner]:
    """Factory fixture: a FakeRunner with a chosen set of installed tools."""

    def _factory(*available: str) -> FakeRunner:
        return FakeRunner(available=available)

    return _factory


@pytest.fixture
def fake_host() -> Iterator[FakeHost]:
    host = FakeHost()
    yield host
    host.http.close()


@pytest.fixture
def settings(tmp_path: Path) -> DeploySettings:
    """Settings rooted entirely inside ``tmp_path``."""
    etc = tmp_path / "etc"
    return DeploySettings(
        _env_file=None,
        app_name=APP,
        install_root=tmp_path / "opt",
        etc_root=etc,
        nginx_root=etc / "nginx",
        systemd_dir=etc / "systemd" / "system",
        letsencrypt_root=etc / "letsencrypt",
        workdir=tmp_path / "work",
        require_root=False,
        install_deps=False,
        health_attempts=3,
        health_interval=0.0,
    )


@pytest.fixture
def layout(settings: DeploySettings) -> HostLayout:
    return HostLayout.from_settings(settings)


@pytest.fixture
def nginx_tree(layout: HostLayout) -> Path:
    """A minimal /etc/nginx with nginx.conf and the distro default site enabled."""
    (layout.nginx_root / "sites-available").mkdir(parents=True)
    (layout.nginx_root / "sites-enabled").mkdir(parents=True)
    layout.nginx_conf.write_text(NGINX_CONF)
    default = layout.nginx_root / "sites-available" / "default"
    default.write_text("server { listen 80 default_server; }\n")
    layout.nginx_default_link.symlink_to(default)
    return layout.nginx_root


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Deterministic UTC clock advancing one minute per call."""
    start = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)
    ticks = itertools.count()

    def _now() -> datetime:
        return start + timedelta(minutes=next(ticks))

    return _now


@pytest.fixture
def make_artifact(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture: write a fake jar with the given content."""
    counter = itertools.count(1)

    def _factory(content: bytes | None = None, name: str = "app-1.0.0.jar") -> Path:
        path = tmp_path / "build" / f"{next(counter)}" / name
        path.parent.mkdir(parents=True)
        path.write_bytes(content if content is not None else b"jar-" + name.encode())
        return path

    return _factory
