"""bluegreen pipeline steps and the registry the orchestrator resolves them from."""

from bluegreen.steps.audit import AuditStep
from bluegreen.steps.base import BaseStep
from bluegreen.steps.build import BuildStep, ScaffoldStep, ScanStep
from bluegreen.steps.context import Collaborators, RunContext
from bluegreen.steps.provision import DependenciesStep, NetworkGuardStep
from bluegreen.steps.release import ReleaseStep, SelectReleaseStep
from bluegreen.steps.runtime import HealthStep, ServiceStep
from bluegreen.steps.traffic import CanaryWindowStep, CutoverStep, ProxyStep, TlsStep

STEP_REGISTRY: dict[str, type[BaseStep]] = {
    "dependencies": DependenciesStep,
    "network_guard": NetworkGuardStep,
    "scaffold": ScaffoldStep,
    "build": BuildStep,
    "scan": ScanStep,
    "release": ReleaseStep,
    "select_release": SelectReleaseStep,
    "service": ServiceStep,
    "health": HealthStep,
    "proxy": ProxyStep,
    "cutover": CutoverStep,
    "canary_window": CanaryWindowStep,
    "tls": TlsStep,
    "audit": AuditStep,
}

__all__ = [
    "BaseStep",
    "Collaborators",
    "RunContext",
    "STEP_REGISTRY",
    "AuditStep",
    "BuildStep",
    "CanaryWindowStep",
    "CutoverStep",
    "DependenciesStep",
    "HealthStep",
    "NetworkGuardStep",
    "ProxyStep",
    "ReleaseStep",
    "ScaffoldStep",
    "ScanStep",
    "SelectReleaseStep",
    "ServiceStep",
    "TlsStep",
]
