"""Abstract base step with an enforced lifecycle.

Every concrete step inherits from BaseStep and implements only ``execute()``.
The ``run_step()`` wrapper is **not overridable**; it fixes the ordering:

    execute -> classify -> record

so every step, whatever it does, produces exactly one ``StepResult``.
"""

from __future__ import annotations

import abc
import logging
import time
from typing import Any, ClassVar, final

from bluegreen.core.errors import DeployError, HealthCheckTimeout
from bluegreen.models.steps import StepOutcome, StepResult
from bluegreen.steps.context import RunContext

logger = logging.getLogger(__name__)


class BaseStep(abc.ABC):
    """Abstract base for all pipeline steps.

    Subclasses **must** implement:
        * ``step_id``      — unique identifier (e.g. ``"health"``).
        * ``display_name`` — name shown in the run summary.
        * ``execute(context)`` — the step's logic; raises ``DeployError``
          on failure and returns a data dict otherwise. A ``"detail"`` key,
          when present, becomes the result's one-line detail.

    Subclasses **may** override:
        * ``best_effort`` — failures become ``RECOVERABLE`` instead of ``FATAL``.
        * ``skip_reason(context)`` — return a reason to skip the step.

    Subclasses **must not** override ``run_step()``.
    """

    best_effort: ClassVar[bool] = False

    @property
    @abc.abstractmethod
    def step_id(self) -> str:
        """Unique step identifier (e.g. ``'release'``)."""
        ...

    @property
    @abc.abstractmethod
    def display_name(self) -> str:
        ...

    @abc.abstractmethod
    def execute(self, context: RunContext) -> dict[str, Any]:
        """Run the step against *context*; see class docstring."""
        ...

    def skip_reason(self, context: RunContext) -> str | None:
        """Reason this step does not apply to the run, or ``None``."""
        return None

    # ------------------------------------------------------------------
    # Lifecycle (not overridable)
    # ------------------------------------------------------------------

    @final
    def run_step(self, context: RunContext) -> StepResult:
        """Execute the full step lifecycle.  **Do not override.**

        Expected failures (``DeployError``, ``OSError``) are classified,
        never propagated: fatal for normal steps, recoverable for
        best-effort ones.
        """
        logger.info(">>> %s", self.display_name)
        started = time.monotonic()
        data: dict[str, Any]
        try:
            data = dict(self.execute(context))
        except (DeployError, OSError) as exc:
            outcome = StepOutcome.RECOVERABLE if self.best_effort else StepOutcome.FATAL
            data = {"error": type(exc).__name__}
            if isinstance(exc, HealthCheckTimeout):
                data["log_tail"] = exc.log_tail
            detail = str(exc)
            if outcome == StepOutcome.FATAL:
                logger.error("%s [%s] failed: %s", self.display_name, self.step_id, exc)
            else:
                logger.warning(
                    "%s [%s] degraded (continuing): %s", self.display_name, self.step_id, exc
                )
        else:
            outcome = StepOutcome.SUCCESS
            detail = str(data.pop("detail", ""))

        result = StepResult(
            step_id=self.step_id,
            outcome=outcome,
            detail=detail,
            data=data,
            duration_seconds=round(time.monotonic() - started, 3),
        )
        context.results[self.step_id] = result
        return result

    def __repr__(self) -> str:
        effort = " [best-effort]" if self.best_effort else ""
        return f"<{type(self).__name__} step_id={self.step_id!r}{effort}>"
