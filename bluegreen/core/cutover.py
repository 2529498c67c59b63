"""Cutover Controller — flips traffic ownership between the two ports.

The proxy has already been pointed at the new upstream(s) when these
methods run. What remains is instance lifecycle and the persisted record:

* standard: stop the previously active instance, persist the new port
* canary:   keep both instances, record the canary window
* promote:  finalize an open window as a standard cutover
"""

from __future__ import annotations

import logging
from enum import Enum

from bluegreen.core.errors import PreconditionError
from bluegreen.core.state_store import StateStore
from bluegreen.services.systemd import ServiceController

logger = logging.getLogger(__name__)


class CutoverMode(str, Enum):
    STANDARD = "standard"
    CANARY = "canary"
    PROMOTE = "promote"


def cutover_mode(canary_percent: int, promote: bool = False) -> CutoverMode:
    """Mode for a run; promote wins over a canary percentage."""
    if promote:
        return CutoverMode.PROMOTE
    if 0 < canary_percent < 100:
        return CutoverMode.CANARY
    return CutoverMode.STANDARD


class CutoverController:
    """Applies the instance/state half of a cutover.

    Parameters
    ----------
    state:
        Persisted active-port and canary record.
    services:
        Used to stop the instance that lost traffic.
    """

    def __init__(self, state: StateStore, services: ServiceController) -> None:
        self._state = state
        self._services = services

    def complete(self, new_port: int, old_port: int | None) -> dict[str, object]:
        """Standard cutover: stop *old_port*, persist *new_port* as active."""
        stopped = None
        if old_port is not None and old_port != new_port:
            self._services.stop(old_port)
            stopped = old_port
        self._state.set_active_port(new_port)
        self._state.close_canary()
        logger.info(">>> Cutover complete: active port %d", new_port)
        return {"mode": CutoverMode.STANDARD.value, "active_port": new_port, "stopped": stopped}

    def open_canary(
        self, new_port: int, old_port: int | None, canary_percent: int
    ) -> dict[str, object]:
        """Canary cutover: both instances serve, active port unchanged."""
        if old_port is None or old_port == new_port:
            # nothing to split traffic with; a canary degenerates to a full cutover
            logger.info("No previous instance; canary becomes a full cutover")
            return self.complete(new_port, old_port)
        self._state.open_canary(new_port)
        logger.info(
            ">>> Canary window open: %d%% -> %d, %d%% -> %d",
            canary_percent, new_port, 100 - canary_percent, old_port,
        )
        return {
            "mode": CutoverMode.CANARY.value,
            "active_port": old_port,
            "canary_port": new_port,
            "canary_percent": canary_percent,
        }

    def promotion_ports(self) -> tuple[int, int | None]:
        """``(canary_port, active_port)`` of the open window.

        Raises ``PreconditionError`` when no canary window is open.
        """
        canary = self._state.canary_port()
        if canary is None:
            raise PreconditionError("PROMOTE requested but no canary window is open")
        return canary, self._state.active_port()

    def promote(self) -> dict[str, object]:
        canary, active = self.promotion_ports()
        summary = self.complete(canary, active)
        summary["mode"] = CutoverMode.PROMOTE.value
        return summary
