"""Run report — the immutable outcome of one pipeline run."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from bluegreen.models.steps import StepOutcome, StepResult, StepState, StepTransition


class RunReport(BaseModel):
    """Everything the CLI needs to summarize a run and pick an exit code."""

    model_config = ConfigDict(frozen=True)

    plan: str
    mode: str
    target_port: int | None = None
    previous_port: int | None = None
    release: str | None = None
    results: list[StepResult] = []
    states: dict[str, StepState] = {}
    transitions: list[StepTransition] = []
    started_at: datetime
    finished_at: datetime

    @property
    def failed_step(self) -> StepResult | None:
        for result in self.results:
            if result.outcome == StepOutcome.FATAL:
                return result
        return None

    @property
    def succeeded(self) -> bool:
        return self.failed_step is None

    @property
    def degraded_steps(self) -> list[StepResult]:
        return [r for r in self.results if r.outcome == StepOutcome.RECOVERABLE]

    def result_for(self, step_id: str) -> StepResult | None:
        for result in self.results:
            if result.step_id == step_id:
                return result
        return None
