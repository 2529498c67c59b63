"""Deterministic step state machine for one pipeline run.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Prerequisites checked before RUNNING
- Cascade blocking on fatal failure
- Every transition recorded for the run summary
"""

from __future__ import annotations

import logging

from bluegreen.core.step_graph import PrerequisiteNotMetError, StepGraph
from bluegreen.models.steps import VALID_TRANSITIONS, StepState, StepTransition

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class StepMachine:
    """Tracks and validates step states for a single run.

    Parameters
    ----------
    graph:
        The prerequisite graph of the plan being executed.
    """

    def __init__(self, graph: StepGraph) -> None:
        self._graph = graph
        self._states: dict[str, StepState] = {
            sid: StepState.NOT_STARTED for sid in graph.step_ids
        }
        self._transitions: list[StepTransition] = []

    @property
    def transitions(self) -> list[StepTransition]:
        return list(self._transitions)

    def get_state(self, step_id: str) -> StepState:
        return self._states.get(step_id, StepState.NOT_STARTED)

    def get_all_states(self) -> dict[str, StepState]:
        return dict(self._states)

    def transition(
        self,
        step_id: str,
        target_state: StepState,
        *,
        reason: str | None = None,
    ) -> StepTransition:
        """Move *step_id* to *target_state*, recording the transition.

        A transition to FAILED blocks every dependent step.
        """
        current = self.get_state(step_id)
        allowed = VALID_TRANSITIONS.get(current, set())
        if target_state not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {step_id} from {current.value} to {target_state.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        if target_state == StepState.RUNNING and not self._graph.are_prerequisites_met(
            step_id, self._states
        ):
            reasons = self._graph.get_blocking_reasons(step_id, self._states)
            raise PrerequisiteNotMetError(
                f"Cannot start {step_id}: prerequisites not met. "
                f"Blocked by: {'; '.join(reasons)}"
            )

        record = StepTransition(
            step_id=step_id,
            from_state=current,
            to_state=target_state,
            reason=reason,
        )
        self._transitions.append(record)
        self._states[step_id] = target_state

        if target_state == StepState.FAILED:
            for blocked_id in self._graph.cascade_block(step_id, self._states):
                self._transitions.append(
                    StepTransition(
                        step_id=blocked_id,
                        from_state=StepState.NOT_STARTED,
                        to_state=StepState.BLOCKED,
                        reason=f"upstream {step_id} failed",
                    )
                )
                logger.debug("%s blocked by failed %s", blocked_id, step_id)

        return record
