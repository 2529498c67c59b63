"""Persisted blue/green state: the active-port record and the canary window.

Both are single-integer files replaced atomically (write-new-then-rename),
read once at process start and written once per transition.
"""

from __future__ import annotations

import logging
from pathlib import Path

from bluegreen.core.release_manager import atomic_write_text
from bluegreen.models.layout import HostLayout
from bluegreen.models.releases import DeployState

logger = logging.getLogger(__name__)


def _read_port(path: Path) -> int | None:
    if not path.is_file():
        return None
    text = path.read_text(encoding="utf-8").strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        logger.warning("Ignoring malformed port record %s: %r", path, text)
        return None


class StateStore:
    """Reads and writes the on-disk deploy state record.

    Parameters
    ----------
    layout:
        Host paths for the application.
    ports:
        The two fixed ports, blue first.
    """

    def __init__(self, layout: HostLayout, ports: tuple[int, int]) -> None:
        self._layout = layout
        self._ports = ports

    @property
    def ports(self) -> tuple[int, int]:
        return self._ports

    def load(self) -> DeployState:
        current = None
        link = self._layout.current_link
        if link.is_symlink() and link.resolve().is_dir():
            current = link.resolve().name
        return DeployState(
            active_port=self.active_port(),
            canary_port=self.canary_port(),
            current_release=current,
        )

    # ------------------------------------------------------------------
    # Active port
    # ------------------------------------------------------------------

    def active_port(self) -> int | None:
        return _read_port(self._layout.active_port_file)

    def inactive_port(self) -> int:
        """The fixed port not currently serving; blue before the first deploy."""
        blue, green = self._ports
        active = self.active_port()
        if active == blue:
            return green
        if active == green:
            return blue
        return blue

    def set_active_port(self, port: int) -> None:
        if port not in self._ports:
            raise ValueError(f"Port {port} is not one of {self._ports}")
        atomic_write_text(self._layout.active_port_file, f"{port}\n")
        logger.info("Active port -> %d", port)

    # ------------------------------------------------------------------
    # Canary window
    # ------------------------------------------------------------------

    def canary_port(self) -> int | None:
        return _read_port(self._layout.canary_port_file)

    def open_canary(self, port: int) -> None:
        if port not in self._ports:
            raise ValueError(f"Port {port} is not one of {self._ports}")
        atomic_write_text(self._layout.canary_port_file, f"{port}\n")
        logger.info("Canary window opened on port %d", port)

    def close_canary(self) -> None:
        self._layout.canary_port_file.unlink(missing_ok=True)

