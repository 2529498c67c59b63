"""Health Gate — bounded 1 Hz polling of an instance's health endpoint.

No backoff, no jitter: one GET per interval, up to a fixed number of
attempts. On exhaustion the instance's recent journal is attached to the
raised ``HealthCheckTimeout``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import httpx

from bluegreen.core.errors import HealthCheckTimeout

logger = logging.getLogger(__name__)

READY_STATUSES = frozenset({"UP", "READY", "OK"})


def is_healthy_body(response: httpx.Response) -> bool:
    """True when the response reports an UP/ready status.

    Accepts Spring Actuator JSON (``{"status": "UP"}``) or a body containing
    ``UP``, either plain text or a bare JSON string.
    """
    if response.status_code != 200:
        return False
    try:
        payload = response.json()
    except ValueError:
        return "UP" in response.text.upper().split()
    if isinstance(payload, dict):
        return str(payload.get("status", "")).upper() in READY_STATUSES
    if isinstance(payload, str):
        return "UP" in payload.upper().split()
    return False


class HealthGate:
    """Polls ``http://127.0.0.1:<port><path>`` until healthy or exhausted.

    Parameters
    ----------
    client:
        HTTP client; tests pass one backed by ``httpx.MockTransport``.
    path:
        Health endpoint path.
    attempts:
        Maximum number of polls.
    interval:
        Seconds between polls.
    log_fetcher:
        ``port -> str`` returning recent service logs for diagnostics.
    sleep:
        Injectable sleep function.
    """

    def __init__(
        self,
        client: httpx.Client,
        *,
        path: str = "/actuator/health",
        attempts: int = 60,
        interval: float = 1.0,
        host: str = "127.0.0.1",
        log_fetcher: Callable[[int], str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._path = path if path.startswith("/") else f"/{path}"
        self._attempts = attempts
        self._interval = interval
        self._host = host
        self._log_fetcher = log_fetcher
        self._sleep = sleep

    def url_for(self, port: int) -> str:
        return f"http://{self._host}:{port}{self._path}"

    def probe(self, port: int) -> bool:
        """Single health probe; connection errors count as unhealthy."""
        try:
            response = self._client.get(self.url_for(port), timeout=2.0)
        except httpx.HTTPError as exc:
            logger.debug("Probe %s failed: %s", self.url_for(port), type(exc).__name__)
            return False
        return is_healthy_body(response)

    def wait_healthy(self, port: int) -> int:
        """Block until the instance on *port* is healthy.

        Returns the number of attempts used. Raises ``HealthCheckTimeout``
        with the journal tail when every attempt fails.
        """
        url = self.url_for(port)
        logger.info("Waiting for %s (up to %d attempts)", url, self._attempts)
        for attempt in range(1, self._attempts + 1):
            if self.probe(port):
                logger.info("Port %d healthy after %d attempt(s)", port, attempt)
                return attempt
            if attempt < self._attempts:
                self._sleep(self._interval)

        log_tail = self._log_fetcher(port) if self._log_fetcher else ""
        logger.error("Port %d not healthy after %d attempts", port, self._attempts)
        raise HealthCheckTimeout(port, self._attempts, log_tail)
