"""Pipeline orchestrator — the central coordinator for bluegreen runs.

The Orchestrator wires together the config guard, the StepGraph, the
StepMachine and the step registry into a single forward pass over one of
the three plans (``deploy``, ``rollback``, ``promote``).

Plan precedence when several switches are set: ROLLBACK, then PROMOTE,
then a canary deploy, then a standard deploy.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

import httpx

from bluegreen.config import DeploySettings
from bluegreen.core.config_guard import enforce_config_constraints
from bluegreen.core.cutover import CutoverMode, cutover_mode
from bluegreen.core.runner import CommandRunner
from bluegreen.core.step_graph import StepGraph
from bluegreen.core.step_machine import StepMachine
from bluegreen.models.layout import HostLayout
from bluegreen.models.report import RunReport
from bluegreen.models.steps import PLANS, StepState, state_for_outcome
from bluegreen.steps import STEP_REGISTRY, Collaborators, RunContext

logger = logging.getLogger(__name__)


def select_plan(settings: DeploySettings) -> str:
    """Resolve which plan the settings ask for."""
    if settings.rollback:
        return "rollback"
    if settings.promote:
        return "promote"
    return "deploy"


class Orchestrator:
    """Runs one plan end to end against the host.

    Parameters
    ----------
    settings:
        Configuration read at process start. Validated immediately.
    runner:
        External command backend; defaults to ``SubprocessRunner``.
    http:
        HTTP client for health polling and project download.
    tools:
        Fully wired collaborators; overrides *runner* and *http*.
    """

    def __init__(
        self,
        settings: DeploySettings,
        *,
        runner: CommandRunner | None = None,
        http: httpx.Client | None = None,
        tools: Collaborators | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        # Config guard: fails hard before anything on the host is touched
        enforce_config_constraints(settings)

        self.settings = settings
        self.layout = HostLayout.from_settings(settings)
        self._owns_http = tools is None and http is None
        self.tools = tools or Collaborators.build(
            settings, self.layout, runner=runner, http=http, sleep=sleep
        )

    # ------------------------------------------------------------------
    # Resource handling
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._owns_http:
            self.tools.http.close()

    def __enter__(self) -> Orchestrator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _prepare(self, plan: str) -> RunContext:
        if plan == "promote":
            mode = CutoverMode.PROMOTE
        elif plan == "rollback":
            mode = CutoverMode.STANDARD
        else:
            mode = cutover_mode(self.settings.canary_percent)

        context = RunContext(
            self.settings, self.layout, self.tools, plan=plan, mode=mode
        )
        if plan != "promote":
            state = self.tools.state
            context.target_port = state.inactive_port()
            context.previous_port = state.active_port()
        return context

    def run(self, plan: str | None = None) -> RunReport:
        """Execute *plan* (default: resolved from settings) and report.

        A fatal step halts the run; every dependent step is recorded as
        BLOCKED. Steps that do not apply are recorded as SKIPPED.
        """
        plan = plan or select_plan(self.settings)
        if plan not in PLANS:
            raise ValueError(f"Unknown plan {plan!r}; expected one of {sorted(PLANS)}")

        started_at = datetime.now(timezone.utc)
        graph = StepGraph(PLANS[plan])
        machine = StepMachine(graph)
        context = self._prepare(plan)
        logger.info(
            ">>> %s %s (%s) target=%s previous=%s",
            plan, self.layout.app_name, context.mode.value,
            context.target_port, context.previous_port,
        )

        for step_id in graph.step_ids:
            if machine.get_state(step_id) != StepState.NOT_STARTED:
                continue
            step = STEP_REGISTRY[step_id]()

            reason = step.skip_reason(context)
            if reason is not None:
                machine.transition(step_id, StepState.SKIPPED, reason=reason)
                logger.info("%s skipped: %s", step.display_name, reason)
                continue

            machine.transition(step_id, StepState.RUNNING)
            result = step.run_step(context)
            machine.transition(
                step_id, state_for_outcome(result.outcome), reason=result.detail or None
            )
            if result.is_fatal:
                logger.error("!!! %s failed: %s", step_id, result.detail)
                break

        release = context.release.name if context.release else None
        return RunReport(
            plan=plan,
            mode=context.mode.value,
            target_port=context.target_port,
            previous_port=context.previous_port,
            release=release,
            results=list(context.results.values()),
            states=machine.get_all_states(),
            transitions=machine.transitions,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
