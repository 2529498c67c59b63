"""bluegreen: blue/green Spring Boot deploys behind Nginx on a single host.

Two fixed ports, one systemd template unit, health-gated cutover,
immutable releases with retention, rollback, canary windows, optional
Let's Encrypt TLS and an append-only audit trail.
"""

__version__ = "1.0.0"
__description__ = "Health-gated blue/green deploys for Spring Boot on one host"

from bluegreen.core.orchestrator import Orchestrator
from bluegreen.cli.app import app as cli

__all__ = ["Orchestrator", "cli", "__version__"]
