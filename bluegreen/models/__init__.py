"""bluegreen data models — all Pydantic v2, all frozen (immutable)."""

from bluegreen.models.audit import AuditManifest
from bluegreen.models.layout import HostLayout
from bluegreen.models.releases import DeployState, Release
from bluegreen.models.report import RunReport
from bluegreen.models.steps import (
    DEPLOY_PLAN,
    PLANS,
    PROMOTE_PLAN,
    ROLLBACK_PLAN,
    VALID_TRANSITIONS,
    StepDefinition,
    StepOutcome,
    StepResult,
    StepState,
    StepTransition,
)

__all__ = [
    # layout
    "HostLayout",
    # releases
    "Release",
    "DeployState",
    # steps
    "StepState",
    "StepOutcome",
    "StepDefinition",
    "StepResult",
    "StepTransition",
    "VALID_TRANSITIONS",
    "DEPLOY_PLAN",
    "ROLLBACK_PLAN",
    "PROMOTE_PLAN",
    "PLANS",
    # audit
    "AuditManifest",
    # report
    "RunReport",
]
