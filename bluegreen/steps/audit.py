"""Audit step — the last step of every plan."""

from __future__ import annotations

from typing import Any

from bluegreen.core.errors import PreconditionError
from bluegreen.steps.base import BaseStep
from bluegreen.steps.context import RunContext


class AuditStep(BaseStep):
    @property
    def step_id(self) -> str:
        return "audit"

    @property
    def display_name(self) -> str:
        return "Audit Recorder"

    def execute(self, context: RunContext) -> dict[str, Any]:
        tools = context.tools
        release = context.release or tools.releases.current_release()
        if release is None:
            raise PreconditionError("No current release to record")
        active = tools.state.active_port()
        if active is None:
            raise PreconditionError("No active port recorded")
        path = tools.audit.record(release, active)
        return {"detail": path.name, "manifest": str(path), "active_port": active}
