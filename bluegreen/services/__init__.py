"""Host-facing services: packages, firewall, scaffold, build, systemd, health, nginx, TLS.

Every service reaches the host only through a ``CommandRunner`` or an
``httpx.Client`` handed to it, never directly.
"""
