"""Runtime steps: bring up the target instance and wait for it to be healthy."""

from __future__ import annotations

from typing import Any

from bluegreen.steps.base import BaseStep
from bluegreen.steps.context import RunContext


class ServiceStep(BaseStep):
    @property
    def step_id(self) -> str:
        return "service"

    @property
    def display_name(self) -> str:
        return "Service Controller"

    def execute(self, context: RunContext) -> dict[str, Any]:
        port = context.require_target_port()
        settings = context.settings
        services = context.tools.services
        services.install(
            user=settings.app_name,
            java_opts=settings.java_opts,
            spring_profile=settings.spring_profile,
        )
        action = services.ensure_running(port)
        return {
            "detail": f"{action} {context.layout.unit_name(port)}",
            "port": port,
            "action": action,
        }


class HealthStep(BaseStep):
    @property
    def step_id(self) -> str:
        return "health"

    @property
    def display_name(self) -> str:
        return "Health Gate"

    def execute(self, context: RunContext) -> dict[str, Any]:
        port = context.require_target_port()
        attempts = context.tools.health.wait_healthy(port)
        return {
            "detail": f"port {port} healthy after {attempts} attempt(s)",
            "port": port,
            "attempts": attempts,
        }
