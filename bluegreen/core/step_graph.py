"""Step prerequisite DAG with cascade blocking.

The graph enforces:
- No step runs unless all prerequisites are SUCCEEDED, DEGRADED or SKIPPED.
- When a step fails fatally, all transitive dependents are BLOCKED.
"""

from __future__ import annotations

from collections import deque

from bluegreen.models.steps import SATISFIED_STATES, StepDefinition, StepState


class PrerequisiteNotMetError(RuntimeError):
    """Raised when a step cannot run because prerequisites are not met."""


class CyclicDependencyError(ValueError):
    """Raised when the prerequisite graph contains a cycle."""


class StepGraph:
    """Directed acyclic graph of step prerequisites for one plan."""

    def __init__(self, step_definitions: list[StepDefinition]) -> None:
        self._steps: dict[str, StepDefinition] = {
            sd.step_id: sd for sd in step_definitions
        }
        self._prerequisites: dict[str, list[str]] = {
            sd.step_id: list(sd.prerequisites) for sd in step_definitions
        }
        self._dependents: dict[str, list[str]] = {
            sd.step_id: [] for sd in step_definitions
        }
        for sd in step_definitions:
            for prereq in sd.prerequisites:
                if prereq not in self._dependents:
                    raise ValueError(
                        f"Step {sd.step_id!r} depends on unknown step {prereq!r}"
                    )
                self._dependents[prereq].append(sd.step_id)

        self._order = self._topological_order()

    def _topological_order(self) -> list[str]:
        """Kahn's algorithm, ties broken by ordinal."""
        in_degree = {sid: len(prereqs) for sid, prereqs in self._prerequisites.items()}
        queue = deque(
            sorted(
                (sid for sid, deg in in_degree.items() if deg == 0),
                key=lambda s: self._steps[s].ordinal,
            )
        )
        result: list[str] = []
        while queue:
            node = queue.popleft()
            result.append(node)
            for dep in sorted(
                self._dependents.get(node, []),
                key=lambda s: self._steps[s].ordinal,
            ):
                in_degree[dep] -= 1
                if in_degree[dep] == 0:
                    queue.append(dep)

        if len(result) != len(self._steps):
            raise CyclicDependencyError(
                f"Step graph has a cycle. "
                f"Ordered {len(result)}/{len(self._steps)} steps."
            )
        return result

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    @property
    def step_ids(self) -> list[str]:
        """All step_ids in execution order."""
        return list(self._order)

    def get_dependents(self, step_id: str) -> list[str]:
        """All transitive dependents (BFS)."""
        result = []
        queue = deque(self._dependents.get(step_id, []))
        visited: set[str] = set()
        while queue:
            node = queue.popleft()
            if node in visited:
                continue
            visited.add(node)
            result.append(node)
            queue.extend(self._dependents.get(node, []))
        return result

    # ------------------------------------------------------------------
    # Prerequisite checking
    # ------------------------------------------------------------------

    def are_prerequisites_met(
        self, step_id: str, states: dict[str, StepState]
    ) -> bool:
        return all(
            states.get(prereq) in SATISFIED_STATES
            for prereq in self._prerequisites.get(step_id, [])
        )

    def get_blocking_reasons(
        self, step_id: str, states: dict[str, StepState]
    ) -> list[str]:
        reasons = []
        for prereq in self._prerequisites.get(step_id, []):
            state = states.get(prereq, StepState.NOT_STARTED)
            if state not in SATISFIED_STATES:
                name = self._steps[prereq].display_name
                reasons.append(f"{name} ({prereq}) is {state.value}")
        return reasons

    def cascade_block(
        self, failed_step_id: str, states: dict[str, StepState]
    ) -> list[str]:
        """Block every not-yet-started transitive dependent of a failed step."""
        blocked: list[str] = []
        for step_id in self.get_dependents(failed_step_id):
            if states.get(step_id, StepState.NOT_STARTED) == StepState.NOT_STARTED:
                states[step_id] = StepState.BLOCKED
                blocked.append(step_id)
        return blocked
