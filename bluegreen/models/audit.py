"""Audit manifest model — point-in-time deployment record (never mutated)."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class AuditManifest(BaseModel):
    """One ``audit/manifest-<timestamp>.json`` document.

    Field names and order are the on-disk JSON shape.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: str
    app: str
    active_port: int
    release: str
    jar_sha256: str
    sbom: Literal["present", "absent"]
    nginx_site_sha256: str
    systemd_unit_sha256: str
    java_version: str
    nginx_version: str
