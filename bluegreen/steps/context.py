"""Run context shared by every step of one pipeline run.

``Collaborators`` bundles the host-facing services so tests can swap any
of them; ``RunContext`` carries what earlier steps produced for later ones.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

import httpx

from bluegreen.config import DeploySettings
from bluegreen.core.audit import AuditRecorder
from bluegreen.core.cutover import CutoverController, CutoverMode
from bluegreen.core.release_manager import ReleaseManager
from bluegreen.core.runner import CommandRunner, SubprocessRunner
from bluegreen.core.state_store import StateStore
from bluegreen.models.layout import HostLayout
from bluegreen.models.releases import Release
from bluegreen.models.steps import StepResult
from bluegreen.services.build import Builder, BuildOutput
from bluegreen.services.firewall import NetworkSafetyGuard
from bluegreen.services.health import HealthGate
from bluegreen.services.nginx import ProxyConfigurator, Upstream
from bluegreen.services.packages import DependencyInstaller
from bluegreen.services.scaffold import ProjectScaffolder
from bluegreen.services.systemd import ServiceController
from bluegreen.services.tls import TlsProvisioner


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Collaborators:
    """Every service a step may call, wired for one host layout."""

    def __init__(
        self,
        *,
        runner: CommandRunner,
        http: httpx.Client,
        releases: ReleaseManager,
        state: StateStore,
        services: ServiceController,
        health: HealthGate,
        proxy: ProxyConfigurator,
        tls: TlsProvisioner,
        audit: AuditRecorder,
        cutover: CutoverController,
        scaffolder: ProjectScaffolder,
        builder: Builder,
        installer: DependencyInstaller,
        network: NetworkSafetyGuard,
    ) -> None:
        self.runner = runner
        self.http = http
        self.releases = releases
        self.state = state
        self.services = services
        self.health = health
        self.proxy = proxy
        self.tls = tls
        self.audit = audit
        self.cutover = cutover
        self.scaffolder = scaffolder
        self.builder = builder
        self.installer = installer
        self.network = network

    @classmethod
    def build(
        cls,
        settings: DeploySettings,
        layout: HostLayout,
        *,
        runner: CommandRunner | None = None,
        http: httpx.Client | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Collaborators:
        """Default wiring; any injected collaborator replaces the real one."""
        runner = runner or SubprocessRunner()
        http = http or httpx.Client(follow_redirects=True)
        state = StateStore(layout, settings.ports)
        services = ServiceController(layout, runner)
        return cls(
            runner=runner,
            http=http,
            releases=ReleaseManager(layout, clock=clock),
            state=state,
            services=services,
            health=HealthGate(
                http,
                path=settings.health_path,
                attempts=settings.health_attempts,
                interval=settings.health_interval,
                log_fetcher=services.journal_tail,
                sleep=sleep,
            ),
            proxy=ProxyConfigurator(layout, runner),
            tls=TlsProvisioner(layout, runner),
            audit=AuditRecorder(layout, runner, clock=clock),
            cutover=CutoverController(state, services),
            scaffolder=ProjectScaffolder(http, settings.workdir),
            builder=Builder(runner),
            installer=DependencyInstaller(runner),
            network=NetworkSafetyGuard(runner, settings.ssh_port),
        )


class RunContext:
    """Mutable state threaded through the steps of one run.

    Parameters
    ----------
    settings:
        Configuration read at process start.
    layout:
        Host paths for the application.
    tools:
        Host-facing collaborators.
    plan:
        ``"deploy"``, ``"rollback"`` or ``"promote"``.
    mode:
        How the cutover step finishes traffic ownership.
    """

    def __init__(
        self,
        settings: DeploySettings,
        layout: HostLayout,
        tools: Collaborators,
        *,
        plan: str,
        mode: CutoverMode,
    ) -> None:
        self.settings = settings
        self.layout = layout
        self.tools = tools
        self.plan = plan
        self.mode = mode

        # Ports: the instance being brought up and the one serving now.
        self.target_port: int | None = None
        self.previous_port: int | None = None

        # Produced along the way
        self.project_dir: Path | None = None
        self.build: BuildOutput | None = None
        self.release: Release | None = None
        self.upstreams: list[Upstream] = []
        self.site_has_tls = False

        self.results: dict[str, StepResult] = {}

    @property
    def canary_percent(self) -> int:
        return self.settings.canary_percent if self.mode == CutoverMode.CANARY else 0

    def require_target_port(self) -> int:
        if self.target_port is None:
            raise RuntimeError("target port not resolved before use")
        return self.target_port
