"""Pipeline step models — deterministic transitions and the three plans."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class StepState(str, Enum):
    """Strict state model for each pipeline step."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    DEGRADED = "degraded"  # recoverable failure: logged, pipeline continues
    FAILED = "failed"  # fatal: pipeline halts
    BLOCKED = "blocked"  # an upstream step failed
    SKIPPED = "skipped"  # not applicable for this invocation


class StepOutcome(str, Enum):
    """Result classification returned by every step."""

    SUCCESS = "success"
    RECOVERABLE = "recoverable"
    FATAL = "fatal"


# Terminal states (SUCCEEDED, DEGRADED, FAILED, BLOCKED, SKIPPED) have no
# outgoing transitions: a deploy is a single forward pass.
VALID_TRANSITIONS: dict[StepState, set[StepState]] = {
    StepState.NOT_STARTED: {StepState.RUNNING, StepState.BLOCKED, StepState.SKIPPED},
    StepState.RUNNING: {StepState.SUCCEEDED, StepState.DEGRADED, StepState.FAILED},
    StepState.SUCCEEDED: set(),
    StepState.DEGRADED: set(),
    StepState.FAILED: set(),
    StepState.BLOCKED: set(),
    StepState.SKIPPED: set(),
}

# States that satisfy a downstream prerequisite.
SATISFIED_STATES: frozenset[StepState] = frozenset(
    {StepState.SUCCEEDED, StepState.DEGRADED, StepState.SKIPPED}
)

_OUTCOME_TO_STATE: dict[StepOutcome, StepState] = {
    StepOutcome.SUCCESS: StepState.SUCCEEDED,
    StepOutcome.RECOVERABLE: StepState.DEGRADED,
    StepOutcome.FATAL: StepState.FAILED,
}


def state_for_outcome(outcome: StepOutcome) -> StepState:
    return _OUTCOME_TO_STATE[outcome]


class StepDefinition(BaseModel):
    """Defines a pipeline step and its prerequisites.

    The prerequisite list encodes the ordering guarantees: release creation
    before pointer update, pointer update before instance start, instance
    health before proxy cutover, proxy cutover before old-instance stop.
    """

    model_config = ConfigDict(frozen=True)

    step_id: str
    display_name: str
    ordinal: float
    prerequisites: list[str] = []
    best_effort: bool = False


class StepResult(BaseModel):
    """What one step produced."""

    model_config = ConfigDict(frozen=True)

    step_id: str
    outcome: StepOutcome
    detail: str = ""
    data: dict[str, Any] = {}
    duration_seconds: float = 0.0

    @property
    def is_fatal(self) -> bool:
        return self.outcome == StepOutcome.FATAL


class StepTransition(BaseModel):
    """Records a single state transition for the run summary."""

    model_config = ConfigDict(frozen=True)

    step_id: str
    from_state: StepState
    to_state: StepState
    reason: str | None = None


DEPLOY_PLAN: list[StepDefinition] = [
    StepDefinition(step_id="dependencies", display_name="Dependency Installer",
                   ordinal=1.0, best_effort=True),
    StepDefinition(step_id="network_guard", display_name="Network Safety Guard",
                   ordinal=2.0, prerequisites=["dependencies"]),
    StepDefinition(step_id="scaffold", display_name="Project Scaffolder",
                   ordinal=3.0, prerequisites=["network_guard"]),
    StepDefinition(step_id="build", display_name="Builder",
                   ordinal=4.0, prerequisites=["scaffold"]),
    StepDefinition(step_id="scan", display_name="SBOM Scan",
                   ordinal=4.5, prerequisites=["build"], best_effort=True),
    StepDefinition(step_id="release", display_name="Release Manager",
                   ordinal=5.0, prerequisites=["build"]),
    StepDefinition(step_id="service", display_name="Service Controller",
                   ordinal=6.0, prerequisites=["release"]),
    StepDefinition(step_id="health", display_name="Health Gate",
                   ordinal=7.0, prerequisites=["service"]),
    StepDefinition(step_id="proxy", display_name="Reverse Proxy Configurator",
                   ordinal=8.0, prerequisites=["health"]),
    StepDefinition(step_id="cutover", display_name="Cutover Controller",
                   ordinal=9.0, prerequisites=["proxy"]),
    StepDefinition(step_id="tls", display_name="TLS Provisioner",
                   ordinal=10.0, prerequisites=["cutover"], best_effort=True),
    StepDefinition(step_id="audit", display_name="Audit Recorder",
                   ordinal=11.0, prerequisites=["cutover", "tls"]),
]

ROLLBACK_PLAN: list[StepDefinition] = [
    StepDefinition(step_id="select_release", display_name="Rollback Controller",
                   ordinal=1.0),
    StepDefinition(step_id="service", display_name="Service Controller",
                   ordinal=2.0, prerequisites=["select_release"]),
    StepDefinition(step_id="health", display_name="Health Gate",
                   ordinal=3.0, prerequisites=["service"]),
    StepDefinition(step_id="proxy", display_name="Reverse Proxy Configurator",
                   ordinal=4.0, prerequisites=["health"]),
    StepDefinition(step_id="cutover", display_name="Cutover Controller",
                   ordinal=5.0, prerequisites=["proxy"]),
    StepDefinition(step_id="audit", display_name="Audit Recorder",
                   ordinal=6.0, prerequisites=["cutover"]),
]

PROMOTE_PLAN: list[StepDefinition] = [
    StepDefinition(step_id="canary_window", display_name="Canary Window Check",
                   ordinal=1.0),
    StepDefinition(step_id="health", display_name="Health Gate",
                   ordinal=2.0, prerequisites=["canary_window"]),
    StepDefinition(step_id="proxy", display_name="Reverse Proxy Configurator",
                   ordinal=3.0, prerequisites=["health"]),
    StepDefinition(step_id="cutover", display_name="Cutover Controller",
                   ordinal=4.0, prerequisites=["proxy"]),
    StepDefinition(step_id="audit", display_name="Audit Recorder",
                   ordinal=5.0, prerequisites=["cutover"]),
]

PLANS: dict[str, list[StepDefinition]] = {
    "deploy": DEPLOY_PLAN,
    "rollback": ROLLBACK_PLAN,
    "promote": PROMOTE_PLAN,
}
